"""
Tests for Position Risk Flags
"""

import pytest

from optionscan.core.quote import ValidationError
from optionscan.core.risk import (
    RiskFlag,
    assess_position_risk,
    is_in_the_money,
)


class TestInTheMoney:
    def test_call(self):
        assert is_in_the_money("call", 110, 100)
        assert not is_in_the_money("call", 100, 100)
        assert not is_in_the_money("call", 90, 100)

    def test_put(self):
        assert is_in_the_money("put", 90, 100)
        assert not is_in_the_money("put", 100, 100)
        assert not is_in_the_money("put", 110, 100)

    def test_invalid_type(self):
        with pytest.raises(ValidationError):
            is_in_the_money("straddle", 100, 100)


class TestAssessPositionRisk:
    def test_otm_low_delta_is_safe(self):
        risk = assess_position_risk("call", 100, 110, 0.2)
        assert risk.flag is RiskFlag.SAFE
        assert not risk.is_in_the_money

    def test_high_delta_is_risky(self):
        assert assess_position_risk("call", 120, 100, 0.85).flag is RiskFlag.RISKY

    def test_put_delta_sign_ignored(self):
        risk = assess_position_risk("put", 80, 100, -0.9)
        assert risk.flag is RiskFlag.RISKY
        assert risk.probability_itm == pytest.approx(0.9)

    def test_itm_low_delta_is_neutral(self):
        """An in-the-money position is never flagged safe."""
        assert assess_position_risk("call", 101, 100, 0.25).flag is RiskFlag.NEUTRAL

    def test_boundaries_are_neutral(self):
        assert assess_position_risk("call", 100, 105, 0.30).flag is RiskFlag.NEUTRAL
        assert assess_position_risk("call", 100, 105, 0.70).flag is RiskFlag.NEUTRAL

    def test_to_dict(self):
        data = assess_position_risk("call", 100, 110, 0.2).to_dict()
        assert data == {"flag": "safe", "probabilityItm": 20.0, "isInTheMoney": False}

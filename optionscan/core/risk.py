"""
Position Risk Flag

Classifies a single option position by its approximate probability of
finishing in the money. The probability is approximated by |delta|.

    SAFE     option is out of the money and P(ITM) < 0.30
    RISKY    P(ITM) > 0.70
    NEUTRAL  everything else
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from optionscan.core.quote import OptionType

logger = logging.getLogger(__name__)

SAFE_PROBABILITY_THRESHOLD = 0.30
RISKY_PROBABILITY_THRESHOLD = 0.70


class RiskFlag(str, Enum):
    SAFE = "safe"
    NEUTRAL = "neutral"
    RISKY = "risky"


@dataclass(frozen=True)
class PositionRisk:
    """Risk flag together with the inputs that produced it."""

    flag: RiskFlag
    probability_itm: float
    is_in_the_money: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flag": self.flag.value,
            "probabilityItm": round(self.probability_itm * 100.0, 1),
            "isInTheMoney": self.is_in_the_money,
        }


def is_in_the_money(option_type: Any, spot: float, strike: float) -> bool:
    if OptionType.parse(option_type) is OptionType.CALL:
        return spot > strike
    return spot < strike


def assess_position_risk(
    option_type: Any,
    spot: float,
    strike: float,
    delta: float
) -> PositionRisk:
    """
    Flag a position as safe, neutral or risky.

    Args:
        option_type: 'call' or 'put'.
        spot: Current underlying price.
        strike: Option strike.
        delta: Option delta (sign ignored).

    Returns:
        PositionRisk with the flag and probability (0..1).
    """
    probability = min(abs(float(delta)), 1.0)
    itm = is_in_the_money(option_type, spot, strike)

    if not itm and probability < SAFE_PROBABILITY_THRESHOLD:
        flag = RiskFlag.SAFE
    elif probability > RISKY_PROBABILITY_THRESHOLD:
        flag = RiskFlag.RISKY
    else:
        flag = RiskFlag.NEUTRAL

    return PositionRisk(flag=flag, probability_itm=probability, is_in_the_money=itm)


__all__ = [
    "RiskFlag",
    "PositionRisk",
    "assess_position_risk",
    "is_in_the_money",
    "SAFE_PROBABILITY_THRESHOLD",
    "RISKY_PROBABILITY_THRESHOLD",
]

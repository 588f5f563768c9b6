"""
Screener Criteria and Scan Modes

Defines what a scan looks for:

    - ScanMode: covered calls (short-dated OTM calls on cheap stocks) or
      LEAPS (long-dated calls and puts)
    - ScreenerCriteria: caller thresholds (max |delta|, min premium, min
      annualized return, optional symbol universe)
    - ModeSettings / MODE_SETTINGS: per-mode constants (expiry band, price
      ceiling, premium floor, result cap, default universe, model grid)

Thresholds are inclusive: a candidate passes when |delta| <= max_delta,
premium >= min_premium and annualized_return >= min_annualized_return.
Returns are expressed in percent (15 means 15%).
"""

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from optionscan.core.quote import SYMBOL_PATTERN

logger = logging.getLogger(__name__)


class CriteriaError(ValueError):
    """Exception raised when screener criteria are invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ScanMode(str, Enum):
    """Screening strategy."""

    COVERED_CALLS = "covered_calls"
    LEAPS = "leaps"

    @classmethod
    def parse(cls, value: Any) -> "ScanMode":
        if isinstance(value, ScanMode):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        aliases = {"covered_call": cls.COVERED_CALLS, "cc": cls.COVERED_CALLS, "leap": cls.LEAPS}
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise CriteriaError(f"Invalid scan mode '{value}'. Valid modes: {valid}")


# =============================================================================
# Default Universes
# =============================================================================

LOW_PRICE_UNIVERSE: Tuple[str, ...] = (
    'SOFI', 'PLTR', 'NIO', 'LCID', 'RIVN', 'SNAP', 'HOOD', 'PLUG', 'CLOV',
    'BB', 'NOK', 'F', 'AAL', 'DAL', 'UAL', 'CCL', 'NCLH', 'RCL',
    'PARA', 'WBD', 'PYPL', 'INTC', 'PFE', 'T', 'VZ', 'BMY', 'CSCO',
    'KMI', 'KEY', 'USB', 'SCHW', 'C', 'WFC', 'BAC',
)

LEAPS_UNIVERSE: Tuple[str, ...] = (
    'AAPL', 'MSFT', 'GOOGL', 'AMZN', 'NVDA', 'TSLA', 'META', 'AMD', 'NFLX',
    'SPY', 'QQQ', 'IWM', 'DIA', 'PLTR', 'SOFI', 'NIO', 'COIN', 'SQ',
    'PYPL', 'DIS', 'BA', 'JPM', 'GS', 'V', 'MA', 'CRM', 'ORCL',
)


@dataclass(frozen=True)
class ModeSettings:
    """
    Per-mode screening constants.

    Attributes:
        min_days: Shortest expiry considered (inclusive).
        max_days: Longest expiry considered (inclusive), None for no bound.
        max_stock_price: Ceiling on the underlying price, None for none.
            Applied to the default universe only unless criteria set one.
        min_premium_floor: Premium must be strictly greater than this.
        option_types: Contract rights considered.
        contracts_per_side: Contracts kept per expiry and right, nearest
            the money first. None keeps all.
        otm_calls_only: Only strikes strictly above spot.
        strike_multipliers: Model grid strikes as multiples of spot.
        model_expiries: Model grid expiries in days.
        result_cap: Maximum results returned.
        max_symbols: Symbols scanned from the universe.
        default_universe: Universe when the caller supplies none.
        default_max_delta: max |delta| when the caller supplies no criteria.
        sample_size: Symbols used by the synthetic fallback (LEAPS).
    """

    min_days: int
    max_days: Optional[int]
    max_stock_price: Optional[float]
    min_premium_floor: float
    option_types: Tuple[str, ...]
    contracts_per_side: Optional[int]
    otm_calls_only: bool
    strike_multipliers: Tuple[float, ...]
    model_expiries: Tuple[int, ...]
    result_cap: int
    max_symbols: int
    default_universe: Tuple[str, ...]
    default_max_delta: float
    sample_size: int = 10

    def in_expiry_band(self, days: int) -> bool:
        if days < self.min_days:
            return False
        return self.max_days is None or days <= self.max_days

    def validate(self) -> None:
        """
        Check the overridable constants.

        Raises:
            CriteriaError: Listing every invalid field.
        """
        errors = []

        for name in ("min_days", "result_cap", "max_symbols"):
            value = getattr(self, name)
            if not _is_int(value) or value < 1:
                errors.append(f"{name} must be an integer of at least 1, got {value!r}")

        if self.max_days is not None:
            if not _is_int(self.max_days) or self.max_days < 1:
                errors.append(f"max_days must be an integer of at least 1, got {self.max_days!r}")
            elif _is_int(self.min_days) and self.min_days > self.max_days:
                errors.append(f"min_days ({self.min_days}) must not exceed max_days ({self.max_days})")

        if self.max_stock_price is not None:
            price = self.max_stock_price
            if not _is_number(price) or not math.isfinite(price) or price <= 0:
                errors.append(f"max_stock_price must be positive, got {price!r}")

        if errors:
            raise CriteriaError(f"Invalid mode settings: {'; '.join(errors)}", errors)

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "ModeSettings":
        """
        Return a validated copy with the given fields replaced.

        Raises:
            CriteriaError: For unknown fields or out-of-range values.
        """
        if not overrides:
            return self
        unknown = set(overrides) - set(self.__dataclass_fields__)
        if unknown:
            raise CriteriaError(f"Unknown mode settings: {sorted(unknown)}")
        settings = replace(self, **dict(overrides))
        settings.validate()
        return settings


MODE_SETTINGS: Dict[ScanMode, ModeSettings] = {
    ScanMode.COVERED_CALLS: ModeSettings(
        min_days=14,
        max_days=45,
        max_stock_price=20.0,
        min_premium_floor=0.05,
        option_types=('call',),
        contracts_per_side=None,
        otm_calls_only=True,
        strike_multipliers=(1.02, 1.05, 1.08, 1.10),
        model_expiries=(14, 21, 30, 45),
        result_cap=50,
        max_symbols=20,
        default_universe=LOW_PRICE_UNIVERSE,
        default_max_delta=0.30,
    ),
    ScanMode.LEAPS: ModeSettings(
        min_days=270,
        max_days=None,
        max_stock_price=None,
        min_premium_floor=0.0,
        option_types=('call', 'put'),
        contracts_per_side=5,
        otm_calls_only=False,
        strike_multipliers=(0.9, 1.0, 1.1),
        model_expiries=(270, 365, 540, 730),
        result_cap=50,
        max_symbols=15,
        default_universe=LEAPS_UNIVERSE,
        default_max_delta=1.0,
    ),
}


def get_mode_settings(mode: Any) -> ModeSettings:
    return MODE_SETTINGS[ScanMode.parse(mode)]


@dataclass
class ScreenerCriteria:
    """
    Caller thresholds for a scan.

    Attributes:
        max_delta: Maximum |delta|, in (0, 1].
        min_premium: Minimum premium per share in dollars.
        min_annualized_return: Minimum annualized return in percent.
        symbols: Universe to scan; empty uses the mode's default universe.
        max_stock_price: Optional ceiling on the underlying price.
    """

    max_delta: float = 0.30
    min_premium: float = 0.0
    min_annualized_return: float = 0.0
    symbols: Sequence[str] = field(default_factory=tuple)
    max_stock_price: Optional[float] = None

    @classmethod
    def for_mode(cls, mode: Any, **kwargs: Any) -> "ScreenerCriteria":
        """Criteria with the mode's default max delta unless given."""
        settings = get_mode_settings(mode)
        kwargs = {k: v for k, v in kwargs.items() if v is not None}
        kwargs.setdefault('max_delta', settings.default_max_delta)
        return cls(**kwargs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], mode: Any = None) -> "ScreenerCriteria":
        """Build from snake_case or camelCase keys."""
        aliases = {
            'maxDelta': 'max_delta',
            'minPremium': 'min_premium',
            'minAnnualizedReturn': 'min_annualized_return',
            'maxStockPrice': 'max_stock_price',
        }
        kwargs = {}
        for key, value in (data or {}).items():
            name = aliases.get(key, key)
            if name in cls.__dataclass_fields__:
                kwargs[name] = value
        if mode is not None:
            return cls.for_mode(mode, **kwargs)
        return cls(**kwargs)

    def validate(self) -> None:
        """
        Check thresholds and normalize symbols to upper case.

        Raises:
            CriteriaError: With every problem found in ``errors``.
        """
        errors: List[str] = []

        def number(name: str) -> Optional[float]:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                errors.append(f"{name} must be a finite number, got {value!r}")
                return None
            return float(value)

        max_delta = number('max_delta')
        if max_delta is not None and not 0 < max_delta <= 1:
            errors.append(f"max_delta must be in (0, 1], got {max_delta}")

        for name in ('min_premium', 'min_annualized_return'):
            value = number(name)
            if value is not None and value < 0:
                errors.append(f"{name} must be >= 0, got {value}")

        if self.max_stock_price is not None:
            ceiling = number('max_stock_price')
            if ceiling is not None and ceiling <= 0:
                errors.append(f"max_stock_price must be positive, got {ceiling}")

        if isinstance(self.symbols, str):
            self.symbols = [s for s in self.symbols.split(',') if s.strip()]

        normalized = []
        for symbol in self.symbols or ():
            text = str(symbol).strip()
            if not SYMBOL_PATTERN.match(text):
                errors.append(f"Invalid symbol format: {symbol!r}")
            else:
                normalized.append(text.upper())

        if errors:
            raise CriteriaError(f"Invalid screener criteria: {'; '.join(errors)}", errors)

        self.symbols = tuple(normalized)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'maxDelta': self.max_delta,
            'minPremium': self.min_premium,
            'minAnnualizedReturn': self.min_annualized_return,
            'symbols': list(self.symbols),
            'maxStockPrice': self.max_stock_price,
        }


__all__ = [
    'CriteriaError',
    'ScanMode',
    'ScreenerCriteria',
    'ModeSettings',
    'MODE_SETTINGS',
    'get_mode_settings',
    'LOW_PRICE_UNIVERSE',
    'LEAPS_UNIVERSE',
]

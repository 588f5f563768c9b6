"""
Screener Result Types

    - ScreenerCandidate: one contract to evaluate (inputs only)
    - ScreenerResult: a candidate plus its Greeks and return metrics
    - ScanResult: the envelope returned by a scan, carrying the ranked
      results and how they were produced (live vs synthetic, skipped
      symbols, incomplete scans)

``to_dict`` methods emit camelCase interchange names. Percent fields
(premium percent, returns, implied volatility) are in percent units.
"""

import logging
import math
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

SOURCE_CHAIN = "chain"
SOURCE_MODEL = "model"
SOURCE_SYNTHETIC = "synthetic"


def _round(value: Optional[float], digits: int = 2) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return round(value, digits)


@dataclass
class ScreenerCandidate:
    """One contract instance to evaluate."""

    symbol: str
    stock_price: float
    strike_price: float
    expiration_date: date
    days_to_expiry: int
    option_type: str
    premium: float
    implied_volatility: Optional[float] = None
    open_interest: Optional[int] = None
    volume: Optional[int] = None
    bid: Optional[float] = None
    ask: Optional[float] = None
    source: str = SOURCE_CHAIN


@dataclass
class ScreenerResult(ScreenerCandidate):
    """A candidate with Greeks and computed return metrics."""

    delta: float = 0.0
    theta: float = 0.0
    premium_percent: float = 0.0
    annualized_return: float = 0.0
    downside_protection: Optional[float] = None
    max_profit: Optional[float] = None
    max_profit_percent: Optional[float] = None
    breakeven: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ScreenerResult":
        """Build from a metrics DataFrame row; NaN becomes None."""
        kwargs = {}
        for f in fields(cls):
            if f.name not in row:
                continue
            value = row[f.name]
            if isinstance(value, datetime):
                value = value.date()
            elif isinstance(value, float) and math.isnan(value):
                value = None
            elif hasattr(value, 'item') and not isinstance(value, (str, date)):
                value = value.item()
            kwargs[f.name] = value
        for name in ('open_interest', 'volume', 'days_to_expiry'):
            if kwargs.get(name) is not None:
                kwargs[name] = int(kwargs[name])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        iv = self.implied_volatility
        return {
            'symbol': self.symbol,
            'stockPrice': _round(self.stock_price),
            'strikePrice': _round(self.strike_price),
            'expirationDate': self.expiration_date.isoformat(),
            'daysToExpiry': self.days_to_expiry,
            'optionType': self.option_type,
            'premium': _round(self.premium),
            'bid': _round(self.bid),
            'ask': _round(self.ask),
            'impliedVolatility': _round(iv * 100.0) if iv is not None else None,
            'openInterest': self.open_interest,
            'volume': self.volume,
            'delta': _round(self.delta, 3),
            'theta': _round(self.theta, 4),
            'premiumPercent': _round(self.premium_percent),
            'annualizedReturn': _round(self.annualized_return),
            'downsideProtection': _round(self.downside_protection),
            'maxProfit': _round(self.max_profit),
            'maxProfitPercent': _round(self.max_profit_percent),
            'breakeven': _round(self.breakeven),
            'source': self.source,
        }


@dataclass
class ScanResult:
    """
    Envelope returned by a scan.

    Attributes:
        mode: Scan mode value ('covered_calls' or 'leaps').
        results: Ranked results, best annualized return first.
        is_synthetic: True when results are a generated sample because no
            symbol produced usable market data.
        symbols_scanned: Symbols that were fetched, in order.
        symbols_skipped: Symbol -> reason for symbols that yielded nothing.
        incomplete: True when a timeout or cancellation stopped the scan
            before every symbol was fetched.
        generated_at: UTC timestamp of the scan.
    """

    mode: str
    results: List[ScreenerResult] = field(default_factory=list)
    is_synthetic: bool = False
    symbols_scanned: List[str] = field(default_factory=list)
    symbols_skipped: Dict[str, str] = field(default_factory=dict)
    incomplete: bool = False
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'mode': self.mode,
            'isSynthetic': self.is_synthetic,
            'incomplete': self.incomplete,
            'symbolsScanned': list(self.symbols_scanned),
            'symbolsSkipped': dict(self.symbols_skipped),
            'generatedAt': self.generated_at.isoformat(),
            'count': len(self.results),
            'data': [r.to_dict() for r in self.results],
        }

    def to_frame(self) -> pd.DataFrame:
        """Results as a DataFrame (snake_case columns, unrounded)."""
        columns = [f.name for f in fields(ScreenerResult)]
        return pd.DataFrame([asdict(r) for r in self.results], columns=columns)


__all__ = [
    'ScreenerCandidate',
    'ScreenerResult',
    'ScanResult',
    'SOURCE_CHAIN',
    'SOURCE_MODEL',
    'SOURCE_SYNTHETIC',
]

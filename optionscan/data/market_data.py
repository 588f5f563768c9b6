"""
Market Data Models

Plain data classes for what a market-data provider returns, plus helpers to
flatten an option chain into a pandas DataFrame for vectorized screening.

    - Quote: latest underlying quote
    - OptionContract: one listed contract (strike, bid/ask/last, IV, ...)
    - ExpirationChain: all calls and puts for one expiration date
    - chain_to_frame(): list[ExpirationChain] -> DataFrame (one row per contract)

Conventions:
    Implied volatility is an annualized decimal (0.45 = 45%). Missing
    numeric fields are None rather than 0 so callers can tell "absent" from
    "zero bid".

Usage:
    from optionscan.data.market_data import chain_to_frame

    chain = provider.get_option_chain('SOFI')
    df = chain_to_frame('SOFI', chain, as_of=date.today())
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

logger = logging.getLogger(__name__)

CHAIN_COLUMNS = [
    'symbol',
    'expiration',
    'days_to_expiry',
    'option_type',
    'strike',
    'bid',
    'ask',
    'last_price',
    'implied_volatility',
    'open_interest',
    'volume',
    'delta',
    'theta',
]


def _optional_float(value: Any) -> Optional[float]:
    """Coerce to float; None, blanks, bools and non-finite values become None."""
    if value is None or isinstance(value, bool) or value == '':
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _optional_int(value: Any) -> Optional[int]:
    result = _optional_float(value)
    return None if result is None else int(result)


def parse_date(value: Any) -> date:
    """Parse an ISO date (or datetime) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.strptime(value.strip()[:10], '%Y-%m-%d').date()
    raise ValueError(f"Cannot parse expiration date from {value!r}")


@dataclass(frozen=True)
class Quote:
    """Latest quote for an underlying."""

    symbol: str
    price: Optional[float]
    high: Optional[float] = None
    low: Optional[float] = None
    previous_close: Optional[float] = None
    change_percent: Optional[float] = None

    @property
    def has_price(self) -> bool:
        return self.price is not None and self.price > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'price': self.price,
            'high': self.high,
            'low': self.low,
            'previousClose': self.previous_close,
            'changePercent': self.change_percent,
        }


@dataclass(frozen=True)
class OptionContract:
    """A single listed contract within an expiration."""

    strike: float
    bid: Optional[float] = None
    ask: Optional[float] = None
    last_price: Optional[float] = None
    implied_volatility: Optional[float] = None
    open_interest: Optional[int] = None
    volume: Optional[int] = None
    delta: Optional[float] = None
    theta: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'OptionContract':
        """Build from Finnhub-style camelCase or snake_case keys."""
        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        return cls(
            strike=_optional_float(pick('strike')) or 0.0,
            bid=_optional_float(pick('bid')),
            ask=_optional_float(pick('ask')),
            last_price=_optional_float(pick('lastPrice', 'last_price', 'last')),
            implied_volatility=_optional_float(pick('impliedVolatility', 'implied_volatility', 'iv')),
            open_interest=_optional_int(pick('openInterest', 'open_interest')),
            volume=_optional_int(pick('volume')),
            delta=_optional_float(pick('delta')),
            theta=_optional_float(pick('theta')),
        )


@dataclass(frozen=True)
class ExpirationChain:
    """Calls and puts listed for one expiration date."""

    expiration_date: date
    calls: List[OptionContract] = field(default_factory=list)
    puts: List[OptionContract] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ExpirationChain':
        """
        Parse one entry of a Finnhub ``/stock/option-chain`` ``data`` list:
        ``{"expirationDate": "2025-01-17", "options": {"CALL": [...], "PUT": [...]}}``.
        """
        options = data.get('options') or {}
        return cls(
            expiration_date=parse_date(data.get('expirationDate', data.get('expiration_date'))),
            calls=[OptionContract.from_dict(c) for c in options.get('CALL') or []],
            puts=[OptionContract.from_dict(p) for p in options.get('PUT') or []],
        )

    def days_to_expiry(self, as_of: date) -> int:
        return (self.expiration_date - as_of).days

    @property
    def is_empty(self) -> bool:
        return not self.calls and not self.puts


def chain_to_frame(
    symbol: str,
    chain: List[ExpirationChain],
    as_of: Optional[date] = None
) -> pd.DataFrame:
    """
    Flatten an option chain into one row per contract.

    Args:
        symbol: Underlying symbol, repeated on every row.
        chain: Expirations returned by a provider.
        as_of: Date used for ``days_to_expiry``. Defaults to today.

    Returns:
        DataFrame with CHAIN_COLUMNS. Missing numbers are NaN.
    """
    as_of = as_of or date.today()
    rows = []
    for expiry in chain:
        days = expiry.days_to_expiry(as_of)
        for option_type, contracts in (('call', expiry.calls), ('put', expiry.puts)):
            for contract in contracts:
                rows.append({
                    'symbol': symbol,
                    'expiration': expiry.expiration_date,
                    'days_to_expiry': days,
                    'option_type': option_type,
                    'strike': contract.strike,
                    'bid': contract.bid,
                    'ask': contract.ask,
                    'last_price': contract.last_price,
                    'implied_volatility': contract.implied_volatility,
                    'open_interest': contract.open_interest,
                    'volume': contract.volume,
                    'delta': contract.delta,
                    'theta': contract.theta,
                })

    df = pd.DataFrame(rows, columns=CHAIN_COLUMNS)
    numeric = [c for c in CHAIN_COLUMNS if c not in ('symbol', 'expiration', 'option_type')]
    df[numeric] = df[numeric].apply(pd.to_numeric, errors='coerce')
    return df


__all__ = [
    'Quote',
    'OptionContract',
    'ExpirationChain',
    'chain_to_frame',
    'parse_date',
    'CHAIN_COLUMNS',
]

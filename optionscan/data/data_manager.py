"""
Market Data Provider Contract

This module defines the interface every market-data source implements and
the error taxonomy the screener relies on to decide whether a failure is
local to one symbol or fatal to the whole scan.

Key Components:
    - BaseMarketDataProvider: Abstract base class (quote + option chain)
    - StaticMarketDataProvider: In-memory / file-backed provider for offline
      runs, demos and tests

Error Taxonomy:
    MarketDataError
    ├── UpstreamDataUnavailable   one symbol's data could not be fetched;
    │                             the screener skips the symbol
    └── UpstreamRateLimitError    the provider refused service; propagates
        ├── RateLimitedError      HTTP 429
        └── QuotaExceededError    HTTP 402

Usage:
    from optionscan.data.data_manager import StaticMarketDataProvider

    provider = StaticMarketDataProvider.from_file('fixtures/market.yaml')
    with provider:
        quote = provider.get_quote('SOFI')
        chain = provider.get_option_chain('SOFI')
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from optionscan.data.market_data import ExpirationChain, Quote

logger = logging.getLogger(__name__)


class MarketDataError(Exception):
    """Base exception for market data errors."""

    pass


class UpstreamDataUnavailable(MarketDataError):
    """Exception raised when data for a single symbol cannot be obtained."""

    def __init__(self, symbol: str, reason: str = "no data"):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"{symbol}: {reason}")


class UpstreamRateLimitError(MarketDataError):
    """Exception raised when the provider refuses further requests."""

    status_code: Optional[int] = None

    def __init__(self, message: str = "Market data rate limit reached, try again later",
                 retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message)


class RateLimitedError(UpstreamRateLimitError):
    """HTTP 429 Too Many Requests."""

    status_code = 429


class QuotaExceededError(UpstreamRateLimitError):
    """HTTP 402 Payment Required (plan quota exhausted)."""

    status_code = 402


class BaseMarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Subclasses must implement:
        - source_name: Human-readable name of the source
        - get_quote(): Latest underlying quote
        - get_option_chain(): All listed expirations for a symbol

    Both fetch methods raise UpstreamDataUnavailable for per-symbol
    failures and an UpstreamRateLimitError subclass when the provider
    refuses service.
    """

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return human-readable name of this data source."""
        pass

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """
        Get the latest quote for an underlying.

        Args:
            symbol: Ticker symbol

        Returns:
            Quote. ``price`` may be None or 0 when the provider has no data.

        Raises:
            UpstreamDataUnavailable: If the symbol cannot be fetched.
            UpstreamRateLimitError: If the provider refuses service.
        """
        pass

    @abstractmethod
    def get_option_chain(self, symbol: str) -> List[ExpirationChain]:
        """
        Get every listed expiration for a symbol.

        Returns:
            List of ExpirationChain (possibly empty).

        Raises:
            UpstreamDataUnavailable: If the symbol cannot be fetched.
            UpstreamRateLimitError: If the provider refuses service.
        """
        pass

    def close(self) -> None:
        """Release any held resources."""
        pass

    def __enter__(self) -> 'BaseMarketDataProvider':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(source='{self.source_name}')"


class StaticMarketDataProvider(BaseMarketDataProvider):
    """
    Provider backed by a mapping of symbol -> {quote, chain}.

    The expected layout (also the file layout for ``from_file``)::

        SOFI:
          quote: {c: 8.5}              # or {price: 8.5}
          chain:
            - expirationDate: '2025-01-17'
              options:
                CALL: [{strike: 9, bid: 0.35, lastPrice: 0.4}]
                PUT: []

    A symbol missing from the mapping raises UpstreamDataUnavailable, and a
    symbol whose entry has ``error: <reason>`` raises it with that reason.
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None, name: str = 'static'):
        self._data: Dict[str, Any] = {k.upper(): v for k, v in (data or {}).items()}
        self._name = name
        self.request_count = 0

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'StaticMarketDataProvider':
        """
        Load provider data from a JSON or YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            MarketDataError: If the content is not a mapping.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Market data file not found: {path}")

        content = path.read_text()
        if path.suffix.lower() == '.json':
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)

        if not isinstance(data, dict):
            raise MarketDataError(f"Market data file must contain a mapping: {path}")

        logger.info(f"Loaded static market data for {len(data)} symbols from {path}")
        return cls(data, name=f"static:{path.name}")

    @property
    def source_name(self) -> str:
        return self._name

    @property
    def symbols(self) -> List[str]:
        return list(self._data)

    def _entry(self, symbol: str) -> Mapping[str, Any]:
        self.request_count += 1
        entry = self._data.get(symbol.upper())
        if entry is None:
            raise UpstreamDataUnavailable(symbol, "symbol not available")
        if entry.get('error'):
            raise UpstreamDataUnavailable(symbol, str(entry['error']))
        return entry

    def get_quote(self, symbol: str) -> Quote:
        raw = self._entry(symbol).get('quote') or {}
        if not isinstance(raw, Mapping):
            raw = {'price': raw}

        def first(*keys: str) -> Any:
            for key in keys:
                if raw.get(key) is not None:
                    try:
                        return float(raw[key])
                    except (TypeError, ValueError) as e:
                        raise UpstreamDataUnavailable(
                            symbol, f"malformed quote field '{key}': {raw[key]!r}"
                        ) from e
            return None

        return Quote(
            symbol=symbol.upper(),
            price=first('c', 'price'),
            high=first('h', 'high'),
            low=first('l', 'low'),
            previous_close=first('pc', 'previous_close', 'previousClose'),
            change_percent=first('dp', 'change_percent', 'changePercent'),
        )

    def get_option_chain(self, symbol: str) -> List[ExpirationChain]:
        raw = self._entry(symbol).get('chain') or []
        try:
            return [ExpirationChain.from_dict(expiry) for expiry in raw]
        except (TypeError, ValueError) as e:
            raise UpstreamDataUnavailable(symbol, f"malformed chain: {e}") from e


__all__ = [
    'MarketDataError',
    'UpstreamDataUnavailable',
    'UpstreamRateLimitError',
    'RateLimitedError',
    'QuotaExceededError',
    'BaseMarketDataProvider',
    'StaticMarketDataProvider',
]

"""
Market Data Module

This module provides the market-data side of the screener: the provider
contract and its implementations, chain models, chain hygiene and the
shared request rate limiter.

Components:
    - data_manager: BaseMarketDataProvider, StaticMarketDataProvider and the
      market data error taxonomy
    - finnhub_client: FinnhubProvider over httpx
    - market_data: Quote, OptionContract, ExpirationChain, chain_to_frame
    - chain_validator: ChainValidator for bad-quote filtering
    - rate_limiter: TokenBucketRateLimiter shared across scans

Usage:
    from optionscan.data import FinnhubProvider, TokenBucketRateLimiter

    limiter = TokenBucketRateLimiter(rate=10)
    with FinnhubProvider(rate_limiter=limiter) as provider:
        quote = provider.get_quote('SOFI')
"""

from optionscan.data.data_manager import (
    MarketDataError,
    UpstreamDataUnavailable,
    UpstreamRateLimitError,
    RateLimitedError,
    QuotaExceededError,
    BaseMarketDataProvider,
    StaticMarketDataProvider,
)

from optionscan.data.finnhub_client import FinnhubProvider

from optionscan.data.market_data import (
    Quote,
    OptionContract,
    ExpirationChain,
    chain_to_frame,
    CHAIN_COLUMNS,
)

from optionscan.data.chain_validator import ChainValidator

from optionscan.data.rate_limiter import (
    TokenBucketRateLimiter,
    DEFAULT_REQUESTS_PER_SECOND,
)

__all__ = [
    # Errors
    "MarketDataError",
    "UpstreamDataUnavailable",
    "UpstreamRateLimitError",
    "RateLimitedError",
    "QuotaExceededError",
    # Providers
    "BaseMarketDataProvider",
    "StaticMarketDataProvider",
    "FinnhubProvider",
    # Models
    "Quote",
    "OptionContract",
    "ExpirationChain",
    "chain_to_frame",
    "CHAIN_COLUMNS",
    # Hygiene and rate limiting
    "ChainValidator",
    "TokenBucketRateLimiter",
    "DEFAULT_REQUESTS_PER_SECOND",
]

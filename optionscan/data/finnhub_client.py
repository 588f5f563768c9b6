"""
Finnhub Market Data Provider

Fetches underlying quotes and option chains from the Finnhub REST API.

Endpoints:
    GET /quote?symbol=SOFI               -> {c, h, l, pc, dp, ...}
    GET /stock/option-chain?symbol=SOFI  -> {data: [{expirationDate, options: {CALL, PUT}}]}

Failure mapping:
    429                  -> RateLimitedError (propagates)
    402                  -> QuotaExceededError (propagates)
    other 4xx            -> UpstreamDataUnavailable (symbol skipped)
    5xx / transport      -> retried with exponential backoff, then
                            UpstreamDataUnavailable

Free tier: 60 calls/min. Pass a shared TokenBucketRateLimiter so every scan
using this provider draws from the same budget.
"""

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from optionscan.data.data_manager import (
    BaseMarketDataProvider,
    QuotaExceededError,
    RateLimitedError,
    UpstreamDataUnavailable,
)
from optionscan.data.market_data import ExpirationChain, Quote
from optionscan.data.rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://finnhub.io/api/v1"
DEFAULT_API_KEY_ENV = "FINNHUB_API_KEY"
DEFAULT_TIMEOUT = 10.0

# Retry policy
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF = 0.5
BACKOFF_FACTOR = 2.0
MAX_BACKOFF = 10.0


def compute_backoff(attempt: int, initial: float = DEFAULT_INITIAL_BACKOFF) -> float:
    """Delay before retry number ``attempt`` (1-based), capped at MAX_BACKOFF."""
    return min(initial * (BACKOFF_FACTOR ** (attempt - 1)), MAX_BACKOFF)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class FinnhubProvider(BaseMarketDataProvider):
    """
    Market data provider over the Finnhub REST API.

    Args:
        api_key: Finnhub token. Defaults to the FINNHUB_API_KEY variable.
        base_url: API root.
        timeout: Per-request timeout in seconds.
        max_attempts: Attempts per request including the first.
        initial_backoff: First retry delay in seconds.
        rate_limiter: Shared limiter; one token is taken per HTTP request.
            The screener applies the scan deadline to its own limiter, so a
            timed scan should pass the limiter there rather than here.
        acquire_timeout: Longest wait for a token in seconds, None for no
            bound. A request that cannot get a token in time skips the symbol.
        client: Pre-built httpx.Client (tests pass one with MockTransport).
        sleep: Sleep function used between retries.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        acquire_timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._api_key = api_key if api_key is not None else os.environ.get(DEFAULT_API_KEY_ENV, "")
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max(1, int(max_attempts))
        self._initial_backoff = initial_backoff
        self._rate_limiter = rate_limiter
        self._acquire_timeout = acquire_timeout
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

        if not self._api_key:
            logger.warning("Finnhub API key not configured; requests will likely be rejected")

    @property
    def source_name(self) -> str:
        return "finnhub"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _get(self, path: str, symbol: str) -> Dict[str, Any]:
        """GET a Finnhub endpoint with rate limiting and retries."""
        url = f"{self._base_url}{path}"
        params = {"symbol": symbol.upper()}
        headers = {"X-Finnhub-Token": self._api_key}

        for attempt in range(1, self._max_attempts + 1):
            if self._rate_limiter is not None:
                if not self._rate_limiter.acquire(timeout=self._acquire_timeout):
                    raise UpstreamDataUnavailable(
                        symbol, f"no rate limit token within {self._acquire_timeout:g}s"
                    )

            try:
                response = self._client.get(url, params=params, headers=headers)
            except httpx.TransportError as e:
                reason = f"transport error: {e}"
            else:
                status = response.status_code
                if status == 429:
                    raise RateLimitedError(retry_after=_retry_after(response))
                if status == 402:
                    raise QuotaExceededError(
                        "Market data quota exceeded, try again later",
                        retry_after=_retry_after(response),
                    )
                if status >= 500:
                    reason = f"HTTP {status}"
                elif status >= 400:
                    raise UpstreamDataUnavailable(symbol, f"HTTP {status}")
                else:
                    try:
                        payload = response.json()
                    except ValueError as e:
                        raise UpstreamDataUnavailable(symbol, f"invalid JSON: {e}") from e
                    if not isinstance(payload, dict):
                        raise UpstreamDataUnavailable(symbol, "unexpected response shape")
                    logger.debug(f"Finnhub {path} {symbol}: HTTP {status}")
                    return payload

            if attempt == self._max_attempts:
                logger.warning(
                    f"Finnhub {path} for {symbol} failed after {attempt} attempts: {reason}"
                )
                raise UpstreamDataUnavailable(symbol, reason)

            delay = compute_backoff(attempt, self._initial_backoff)
            logger.debug(
                f"Finnhub {path} for {symbol} attempt {attempt}/{self._max_attempts} "
                f"failed ({reason}); retrying in {delay:.2f}s"
            )
            self._sleep(delay)

        raise UpstreamDataUnavailable(symbol, "no attempts made")

    def get_quote(self, symbol: str) -> Quote:
        data = self._get("/quote", symbol)

        def number(key: str) -> Optional[float]:
            value = data.get(key)
            return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else None

        return Quote(
            symbol=symbol.upper(),
            price=number("c"),
            high=number("h"),
            low=number("l"),
            previous_close=number("pc"),
            change_percent=number("dp"),
        )

    def get_option_chain(self, symbol: str) -> List[ExpirationChain]:
        data = self._get("/stock/option-chain", symbol)
        expirations = data.get("data")
        if not isinstance(expirations, list):
            return []

        chain = []
        for raw in expirations:
            try:
                chain.append(ExpirationChain.from_dict(raw))
            except (TypeError, ValueError, AttributeError) as e:
                logger.debug(f"Skipping malformed expiration for {symbol}: {e}")
        return chain


__all__ = [
    "FinnhubProvider",
    "compute_backoff",
    "DEFAULT_BASE_URL",
    "DEFAULT_API_KEY_ENV",
]

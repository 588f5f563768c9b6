"""
Opportunity Screener

Scans a universe of symbols for covered-call or LEAPS opportunities.

Scan Steps:
    1. Resolve the universe (caller symbols, else the mode default),
       truncated to the mode's symbol limit.
    2. Per symbol, in order: fetch the quote (skip when there is no price
       or it exceeds the price ceiling), fetch the chain, and select
       candidates. A symbol with an empty chain is priced on the model grid.
       UpstreamDataUnavailable skips only that symbol.
    3. Attach IV, delta and theta, then compute return metrics.
    4. Filter on |delta|, premium and annualized return.
    5. Stable sort by annualized return and cap the result count.
    6. When no symbol produced a single candidate, substitute a seeded
       synthetic sample (flagged ``is_synthetic``) and run steps 3-5 on it.

Timeouts and cancellation are checked before each symbol and while waiting
on the rate limiter; the scan then stops fetching and returns what it has
with ``incomplete=True``. Rate-limit and quota errors from the provider
propagate to the caller.

Usage:
    from optionscan.data import FinnhubProvider, TokenBucketRateLimiter
    from optionscan.screener import OpportunityScreener, ScreenerCriteria

    limiter = TokenBucketRateLimiter(rate=10)
    with FinnhubProvider() as provider:
        screener = OpportunityScreener(provider, rate_limiter=limiter)
        result = screener.scan('covered_calls', ScreenerCriteria(max_delta=0.3))
        for r in result.results:
            print(r.symbol, r.strike_price, r.annualized_return)
"""

import logging
import threading
import time
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from optionscan.core.pricing import DEFAULT_RISK_FREE_RATE, DEFAULT_VOLATILITY
from optionscan.core.quote import SYMBOL_PATTERN
from optionscan.data.chain_validator import ChainValidator
from optionscan.data.data_manager import (
    BaseMarketDataProvider,
    StaticMarketDataProvider,
    UpstreamDataUnavailable,
    UpstreamRateLimitError,
)
from optionscan.data.market_data import chain_to_frame
from optionscan.data.rate_limiter import TokenBucketRateLimiter
from optionscan.screener.candidates import (
    apply_filters,
    candidates_to_frame,
    chain_candidates,
    compute_metrics,
    empty_candidates,
    model_grid_candidates,
    price_candidates,
    rank_candidates,
)
from optionscan.screener.criteria import (
    MODE_SETTINGS,
    CriteriaError,
    ModeSettings,
    ScanMode,
    ScreenerCriteria,
)
from optionscan.screener.results import ScanResult, ScreenerResult
from optionscan.screener.sample_data import DEFAULT_SAMPLE_SEED, SyntheticSampleGenerator

logger = logging.getLogger(__name__)


class _ScanInterrupted(Exception):
    """Internal signal: deadline reached or scan cancelled."""

    pass


class OpportunityScreener:
    """
    Screens a symbol universe against a provider.

    Args:
        provider: Market data provider.
        rate_limiter: Shared limiter; one token is taken per provider call.
        risk_free_rate: Rate used for IV solving and Greeks.
        default_volatility: Volatility for the model grid and unsolvable IVs.
        sample_seed: Seed for the synthetic fallback.
        mode_overrides: ModeSettings fields to override, applied to every
            scan mode (e.g. {'result_cap': 20}).
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        provider: BaseMarketDataProvider,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
        default_volatility: float = DEFAULT_VOLATILITY,
        sample_seed: Optional[int] = DEFAULT_SAMPLE_SEED,
        mode_overrides: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.risk_free_rate = risk_free_rate
        self.default_volatility = default_volatility
        self.sample_seed = sample_seed
        self.mode_overrides = dict(mode_overrides or {})
        self._clock = clock

    def settings_for(self, mode: ScanMode) -> ModeSettings:
        return MODE_SETTINGS[mode].with_overrides(self.mode_overrides)

    def scan(
        self,
        mode: Union[ScanMode, str],
        criteria: Optional[Union[ScreenerCriteria, Mapping[str, Any]]] = None,
        universe: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        as_of: Optional[date] = None,
    ) -> ScanResult:
        """
        Run a scan.

        Args:
            mode: 'covered_calls' or 'leaps'.
            criteria: Thresholds; defaults to the mode's defaults.
            universe: Symbols to scan; overrides ``criteria.symbols``.
            timeout: Seconds before the scan stops fetching.
            cancel_event: Set to stop the scan early.
            as_of: Date used for days to expiry. Defaults to today.

        Returns:
            ScanResult envelope.

        Raises:
            CriteriaError: If criteria or universe are invalid.
            UpstreamRateLimitError: If the provider refuses service.
        """
        mode = ScanMode.parse(mode)
        settings = self.settings_for(mode)
        criteria = self._resolve_criteria(mode, criteria)
        symbols, explicit = self._resolve_universe(settings, criteria, universe)
        ceiling = criteria.max_stock_price
        if ceiling is None and not explicit:
            ceiling = settings.max_stock_price
        as_of = as_of or date.today()
        deadline = None if timeout is None else self._clock() + timeout

        result = ScanResult(mode=mode.value)
        frames: List[pd.DataFrame] = []

        logger.info(f"Scanning {len(symbols)} symbols for {mode.value} via {self.provider.source_name}")

        for symbol in symbols:
            try:
                self._check_interrupt(deadline, cancel_event)
                frame, reason = self._scan_symbol(
                    symbol, mode, settings, ceiling, as_of, deadline, cancel_event
                )
            except _ScanInterrupted as e:
                logger.warning(f"Scan {mode.value} stopped before {symbol}: {e}")
                result.incomplete = True
                break
            except UpstreamDataUnavailable as e:
                logger.warning(f"Skipping {symbol}: {e.reason}")
                result.symbols_scanned.append(symbol)
                result.symbols_skipped[symbol] = e.reason
                continue
            except UpstreamRateLimitError as e:
                logger.error(f"Provider refused service while scanning {symbol}: {e}")
                raise

            result.symbols_scanned.append(symbol)
            if reason:
                logger.info(f"Skipping {symbol}: {reason}")
                result.symbols_skipped[symbol] = reason
            else:
                frames.append(frame)

        candidates = pd.concat(frames, ignore_index=True) if frames else empty_candidates()

        if candidates.empty and not result.incomplete:
            logger.warning(
                f"No usable market data for any of {len(symbols)} symbols; "
                f"returning synthetic {mode.value} sample"
            )
            samples = SyntheticSampleGenerator(self.sample_seed).generate(mode, symbols, as_of)
            candidates = candidates_to_frame(samples)
            result.is_synthetic = True

        priced = price_candidates(candidates, self.risk_free_rate, self.default_volatility)
        metrics = compute_metrics(priced, mode)
        filtered = apply_filters(metrics, criteria)
        ranked = rank_candidates(filtered, settings.result_cap)

        result.results = [ScreenerResult.from_row(row) for row in ranked.to_dict('records')]

        logger.info(
            f"Scan {mode.value}: {len(candidates)} candidates, {len(filtered)} passed criteria, "
            f"{len(result.results)} returned "
            f"(skipped {len(result.symbols_skipped)}, synthetic={result.is_synthetic}, "
            f"incomplete={result.incomplete})"
        )
        return result

    def _resolve_criteria(
        self,
        mode: ScanMode,
        criteria: Optional[Union[ScreenerCriteria, Mapping[str, Any]]],
    ) -> ScreenerCriteria:
        if criteria is None:
            criteria = ScreenerCriteria.for_mode(mode)
        elif isinstance(criteria, Mapping):
            criteria = ScreenerCriteria.from_dict(criteria, mode=mode)
        criteria.validate()
        return criteria

    def _resolve_universe(
        self,
        settings: ModeSettings,
        criteria: ScreenerCriteria,
        universe: Optional[Sequence[str]],
    ) -> Tuple[List[str], bool]:
        if isinstance(universe, str):
            universe = [s for s in universe.split(',') if s.strip()]

        requested = list(universe) if universe else list(criteria.symbols)
        bad = [s for s in requested if not SYMBOL_PATTERN.match(str(s).strip())]
        if bad:
            raise CriteriaError(f"Invalid symbol format: {bad}", [f"Invalid symbol: {s!r}" for s in bad])

        symbols: List[str] = []
        for s in requested or settings.default_universe:
            s = str(s).strip().upper()
            if s not in symbols:
                symbols.append(s)
        return symbols[:settings.max_symbols], bool(requested)

    def _check_interrupt(
        self,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _ScanInterrupted("cancelled")
        if deadline is not None and self._clock() >= deadline:
            raise _ScanInterrupted("timeout")

    def _acquire(self, deadline: Optional[float], cancel_event: Optional[threading.Event]) -> None:
        self._check_interrupt(deadline, cancel_event)
        if self.rate_limiter is None:
            return
        remaining = None if deadline is None else max(0.0, deadline - self._clock())
        if not self.rate_limiter.acquire(timeout=remaining):
            raise _ScanInterrupted("timeout waiting for rate limiter")

    def _scan_symbol(
        self,
        symbol: str,
        mode: ScanMode,
        settings: ModeSettings,
        ceiling: Optional[float],
        as_of: date,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> Tuple[Optional[pd.DataFrame], Optional[str]]:
        """Return (candidates, None) or (None, skip reason)."""
        self._acquire(deadline, cancel_event)
        quote = self.provider.get_quote(symbol)
        if not quote.has_price:
            return None, "no data"

        spot = float(quote.price)
        if ceiling is not None and spot > ceiling:
            return None, f"price {spot:.2f} above ceiling {ceiling:.2f}"

        self._acquire(deadline, cancel_event)
        chain = [expiry for expiry in self.provider.get_option_chain(symbol) if not expiry.is_empty]

        if not chain:
            logger.debug(f"{symbol}: empty option chain, using model grid")
            frame = model_grid_candidates(
                symbol, spot, settings, as_of,
                risk_free_rate=self.risk_free_rate,
                volatility=self.default_volatility,
            )
        else:
            chain_df = ChainValidator.filter_bad_quotes(chain_to_frame(symbol, chain, as_of))
            frame = chain_candidates(chain_df, spot, mode, settings)

        if frame.empty:
            return None, "no contracts matched mode constraints"

        logger.debug(f"{symbol}: {len(frame)} candidates at spot {spot:.2f}")
        return frame, None


def scan_opportunities(
    mode: Union[ScanMode, str],
    universe: Optional[Sequence[str]] = None,
    criteria: Optional[Union[ScreenerCriteria, Mapping[str, Any]]] = None,
    provider: Optional[BaseMarketDataProvider] = None,
    rate_limiter: Optional[TokenBucketRateLimiter] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    as_of: Optional[date] = None,
    sample_seed: Optional[int] = DEFAULT_SAMPLE_SEED,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    default_volatility: float = DEFAULT_VOLATILITY,
    mode_overrides: Optional[Dict[str, Any]] = None,
) -> ScanResult:
    """
    Scan a universe for opportunities.

    Without a provider every symbol is unavailable and the result is the
    synthetic sample.

    Example:
        >>> result = scan_opportunities('covered_calls', ['SOFI', 'F'],
        ...                             {'maxDelta': 0.3}, provider)
        >>> result.is_synthetic
        False
    """
    if provider is None:
        logger.warning("No market data provider configured")
        provider = StaticMarketDataProvider({}, name='none')

    screener = OpportunityScreener(
        provider,
        rate_limiter=rate_limiter,
        risk_free_rate=risk_free_rate,
        default_volatility=default_volatility,
        sample_seed=sample_seed,
        mode_overrides=mode_overrides,
    )
    return screener.scan(
        mode,
        criteria=criteria,
        universe=universe,
        timeout=timeout,
        cancel_event=cancel_event,
        as_of=as_of,
    )


__all__ = [
    'OpportunityScreener',
    'scan_opportunities',
]

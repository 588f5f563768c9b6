"""
Synthetic Sample Generator

When no symbol in a scan yields usable market data, the screener returns a
clearly labelled sample set so callers still see the shape of the output.
All randomness comes from a seeded numpy Generator owned by the instance;
the same seed and date always produce the same sample.

Covered calls:
    Ten fixed low-priced stocks, expiries of 21/28/35/42 days, strikes at
    1.02x/1.05x/1.10x spot rounded to $0.50 (rungs that round back to spot
    are dropped), IV 40-70% and a premium of 2-6% of spot per 30 days.

LEAPS:
    Up to ten symbols from the universe with spot $50-450, one expiry of
    300-664 days, strikes at 0.9x/1.0x/1.1x spot, call premium 5-20% and
    put premium 3-15% of spot.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

import numpy as np

from optionscan.screener.criteria import MODE_SETTINGS, ScanMode
from optionscan.screener.results import SOURCE_SYNTHETIC, ScreenerCandidate

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SEED = 42

SAMPLE_COVERED_CALL_STOCKS: Tuple[Tuple[str, float], ...] = (
    ('SOFI', 8.50),
    ('PLTR', 15.20),
    ('F', 12.80),
    ('INTC', 18.50),
    ('AAL', 14.25),
    ('CCL', 16.40),
    ('SNAP', 11.20),
    ('NIO', 7.80),
    ('HOOD', 9.50),
    ('PLUG', 3.20),
)
SAMPLE_COVERED_CALL_DAYS = (21, 28, 35, 42)
SAMPLE_COVERED_CALL_MULTIPLIERS = (1.02, 1.05, 1.10)
SAMPLE_LEAPS_MULTIPLIERS = (0.9, 1.0, 1.1)


class SyntheticSampleGenerator:
    """
    Reproducible placeholder candidates.

    Args:
        seed: Seed for numpy's default_rng.
    """

    def __init__(self, seed: Optional[int] = DEFAULT_SAMPLE_SEED):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def generate(
        self,
        mode: ScanMode,
        symbols: Sequence[str] = (),
        as_of: Optional[date] = None,
    ) -> List[ScreenerCandidate]:
        as_of = as_of or date.today()
        if ScanMode.parse(mode) is ScanMode.COVERED_CALLS:
            candidates = self.covered_calls(as_of)
        else:
            settings = MODE_SETTINGS[ScanMode.LEAPS]
            universe = list(symbols) or list(settings.default_universe)
            candidates = self.leaps(universe[:settings.sample_size], as_of)

        logger.debug(f"Generated {len(candidates)} synthetic {ScanMode.parse(mode).value} candidates")
        return candidates

    def covered_calls(self, as_of: date) -> List[ScreenerCandidate]:
        rng = self._rng
        candidates = []
        for symbol, price in SAMPLE_COVERED_CALL_STOCKS:
            for days in SAMPLE_COVERED_CALL_DAYS:
                expiration = as_of + timedelta(days=days)
                for multiplier in SAMPLE_COVERED_CALL_MULTIPLIERS:
                    strike = round(price * multiplier * 2) / 2
                    iv = rng.uniform(0.40, 0.70)
                    premium = round(price * rng.uniform(0.02, 0.06) * (days / 30), 2)
                    # Covered calls are written out of the money
                    if strike <= price:
                        continue
                    candidates.append(ScreenerCandidate(
                        symbol=symbol,
                        stock_price=price,
                        strike_price=strike,
                        expiration_date=expiration,
                        days_to_expiry=days,
                        option_type='call',
                        premium=premium,
                        implied_volatility=float(iv),
                        open_interest=int(rng.integers(100, 5100)),
                        volume=int(rng.integers(10, 1010)),
                        bid=premium,
                        ask=round(premium * 1.05, 2),
                        source=SOURCE_SYNTHETIC,
                    ))
        return candidates

    def leaps(self, symbols: Sequence[str], as_of: date) -> List[ScreenerCandidate]:
        rng = self._rng
        candidates = []
        for symbol in symbols:
            price = round(float(rng.uniform(50, 450)), 2)
            days = int(rng.integers(300, 665))
            expiration = as_of + timedelta(days=days)

            for multiplier in SAMPLE_LEAPS_MULTIPLIERS:
                strike = float(round(price * multiplier))
                iv = float(rng.uniform(0.25, 0.65))
                call_price = round(price * float(rng.uniform(0.05, 0.20)), 2)
                put_price = round(price * float(rng.uniform(0.03, 0.15)), 2)

                for option_type, premium, option_iv, oi_range, vol_range in (
                    ('call', call_price, iv, (1000, 11000), (100, 2100)),
                    ('put', put_price, iv + 0.05, (500, 5500), (50, 1050)),
                ):
                    candidates.append(ScreenerCandidate(
                        symbol=symbol,
                        stock_price=price,
                        strike_price=strike,
                        expiration_date=expiration,
                        days_to_expiry=days,
                        option_type=option_type,
                        premium=premium,
                        implied_volatility=option_iv,
                        open_interest=int(rng.integers(*oi_range)),
                        volume=int(rng.integers(*vol_range)),
                        bid=round(premium * 0.95, 2),
                        ask=round(premium * 1.05, 2),
                        source=SOURCE_SYNTHETIC,
                    ))
        return candidates


__all__ = [
    'SyntheticSampleGenerator',
    'DEFAULT_SAMPLE_SEED',
    'SAMPLE_COVERED_CALL_STOCKS',
]

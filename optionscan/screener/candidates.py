"""
Candidate Generation, Metrics and Ranking

The vectorized half of the screener. Candidates live in a pandas DataFrame
(one row per contract, CANDIDATE_COLUMNS) and flow through:

    chain_candidates() / model_grid_candidates() / candidates_to_frame()
        -> price_candidates()   fill missing IV, delta and theta
        -> compute_metrics()    premium %, annualized return, breakeven, ...
        -> apply_filters()      |delta|, premium and return thresholds
        -> rank_candidates()    stable sort by annualized return, top N

Metric Formulas (percent units):
    premium_percent = premium / S * 100

    Covered calls:
        annualized_return   = premium_percent / days * 365
        downside_protection = premium_percent
        max_profit          = (K - S) + premium
        max_profit_percent  = max_profit / S * 100
        breakeven           = S - premium

    LEAPS:
        call breakeven = K + premium
        call annualized_return = (breakeven / S - 1) / (days / 365) * 100
        put breakeven  = K - premium
        put annualized_return  = (S / breakeven - 1) / (days / 365) * 100
"""

import logging
import math
from datetime import date, timedelta
from typing import List, Optional

import numpy as np
import pandas as pd

from optionscan.core.pricing import (
    DAYS_PER_YEAR,
    DEFAULT_RISK_FREE_RATE,
    DEFAULT_VOLATILITY,
    ImpliedVolatilityError,
    calculate_greeks_vectorized,
    calculate_implied_volatility,
)
from optionscan.screener.criteria import ModeSettings, ScanMode, ScreenerCriteria
from optionscan.screener.results import (
    SOURCE_CHAIN,
    SOURCE_MODEL,
    ScreenerCandidate,
)

logger = logging.getLogger(__name__)

CANDIDATE_COLUMNS = [
    'symbol',
    'stock_price',
    'strike_price',
    'expiration_date',
    'days_to_expiry',
    'option_type',
    'premium',
    'implied_volatility',
    'open_interest',
    'volume',
    'bid',
    'ask',
    'source',
]

METRIC_COLUMNS = [
    'delta',
    'theta',
    'premium_percent',
    'annualized_return',
    'downside_protection',
    'max_profit',
    'max_profit_percent',
    'breakeven',
]

# LEAPS quotes without a bid/ask are assumed to trade around last
LEAPS_BID_FACTOR = 0.95
LEAPS_ASK_FACTOR = 1.05


def empty_candidates() -> pd.DataFrame:
    return pd.DataFrame(columns=CANDIDATE_COLUMNS)


def _positive_or_nan(series: pd.Series) -> pd.Series:
    values = pd.to_numeric(series, errors='coerce')
    return values.where(values > 0)


def _in_band(days: pd.Series, settings: ModeSettings) -> pd.Series:
    mask = days >= settings.min_days
    if settings.max_days is not None:
        mask &= days <= settings.max_days
    return mask


def _round_to_half(value: float) -> float:
    return math.floor(value * 2 + 0.5) / 2


def chain_candidates(
    chain_df: pd.DataFrame,
    spot: float,
    mode: ScanMode,
    settings: ModeSettings,
) -> pd.DataFrame:
    """
    Select candidate contracts from a flattened chain.

    Applies the mode's expiry band, rights, OTM rule and premium floor,
    and for LEAPS keeps the ``contracts_per_side`` strikes nearest spot per
    expiry and right.

    Args:
        chain_df: Output of chain_to_frame() (ideally cleaned).
        spot: Current underlying price.
        mode: Scan mode.
        settings: Mode settings.

    Returns:
        DataFrame with CANDIDATE_COLUMNS.
    """
    if chain_df is None or chain_df.empty:
        return empty_candidates()

    df = chain_df[chain_df['option_type'].isin(settings.option_types)]
    df = df[_in_band(df['days_to_expiry'], settings)]
    if settings.otm_calls_only:
        df = df[df['strike'] > spot]
    if df.empty:
        return empty_candidates()

    bid = _positive_or_nan(df['bid'])
    ask = _positive_or_nan(df['ask'])
    last = _positive_or_nan(df['last_price'])

    if mode is ScanMode.COVERED_CALLS:
        # Premium collected when selling: bid, else last
        premium = bid.fillna(last)
    else:
        premium = last
        bid = bid.fillna(last * LEAPS_BID_FACTOR)
        ask = ask.fillna(last * LEAPS_ASK_FACTOR)

    out = pd.DataFrame({
        'symbol': df['symbol'],
        'stock_price': float(spot),
        'strike_price': df['strike'].astype(float),
        'expiration_date': df['expiration'],
        'days_to_expiry': df['days_to_expiry'].astype(int),
        'option_type': df['option_type'],
        'premium': premium,
        'implied_volatility': _positive_or_nan(df['implied_volatility']),
        'open_interest': df['open_interest'],
        'volume': df['volume'],
        'bid': bid,
        'ask': ask,
        'source': SOURCE_CHAIN,
    }, columns=CANDIDATE_COLUMNS)

    out = out[out['premium'].fillna(0) > settings.min_premium_floor]

    if settings.contracts_per_side and not out.empty:
        out = (
            out.assign(_distance=(out['strike_price'] - spot).abs())
            .sort_values(['expiration_date', 'option_type', '_distance', 'strike_price'], kind='stable')
            .groupby(['expiration_date', 'option_type'], sort=False)
            .head(settings.contracts_per_side)
            .drop(columns='_distance')
        )

    return out.reset_index(drop=True)


def model_grid_candidates(
    symbol: str,
    spot: float,
    settings: ModeSettings,
    as_of: date,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    volatility: float = DEFAULT_VOLATILITY,
) -> pd.DataFrame:
    """
    Build candidates from the model grid when a symbol has no listed chain.

    Strikes are ``spot * multiplier`` rounded to the nearest $0.50 and
    premiums are Black-Scholes prices at ``volatility``.
    """
    rows = []
    for days in settings.model_expiries:
        if not settings.in_expiry_band(days):
            continue
        expiration = as_of + timedelta(days=days)
        for multiplier in settings.strike_multipliers:
            strike = _round_to_half(spot * multiplier)
            if strike <= 0:
                continue
            for option_type in settings.option_types:
                if settings.otm_calls_only and strike <= spot:
                    continue
                rows.append({
                    'symbol': symbol,
                    'stock_price': float(spot),
                    'strike_price': strike,
                    'expiration_date': expiration,
                    'days_to_expiry': int(days),
                    'option_type': option_type,
                    'implied_volatility': volatility,
                    'source': SOURCE_MODEL,
                })

    if not rows:
        return empty_candidates()

    # Neighbouring multipliers can round to the same strike
    df = pd.DataFrame(rows, columns=CANDIDATE_COLUMNS).drop_duplicates(
        subset=['expiration_date', 'strike_price', 'option_type']
    ).reset_index(drop=True)
    greeks = calculate_greeks_vectorized(
        df['stock_price'].to_numpy(dtype=float),
        df['strike_price'].to_numpy(dtype=float),
        df['days_to_expiry'].to_numpy(dtype=float) / DAYS_PER_YEAR,
        risk_free_rate,
        volatility,
        df['option_type'].to_numpy(dtype=str),
    )
    df['premium'] = np.round(greeks['price'], 2)
    df = df[df['premium'] > settings.min_premium_floor]

    logger.debug(f"{symbol}: {len(df)} model grid candidates at {volatility:.0%} vol")
    return df.reset_index(drop=True)


def candidates_to_frame(candidates: List[ScreenerCandidate]) -> pd.DataFrame:
    """Convert ScreenerCandidate objects to a candidate DataFrame."""
    if not candidates:
        return empty_candidates()
    return pd.DataFrame(
        [{name: getattr(c, name) for name in CANDIDATE_COLUMNS} for c in candidates],
        columns=CANDIDATE_COLUMNS,
    )


def price_candidates(
    df: pd.DataFrame,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    default_volatility: float = DEFAULT_VOLATILITY,
) -> pd.DataFrame:
    """
    Attach implied volatility, delta and theta to every candidate.

    Missing IVs are solved from the premium; when no volatility reproduces
    the premium the default volatility is used.
    """
    df = df.copy()
    for col in METRIC_COLUMNS:
        if col not in df.columns:
            df[col] = np.nan
    if df.empty:
        return df

    iv = _positive_or_nan(df['implied_volatility']).astype(float)
    missing = iv.isna()
    solved = 0
    for idx in df.index[missing]:
        row = df.loc[idx]
        try:
            iv.loc[idx] = calculate_implied_volatility(
                float(row['premium']),
                float(row['stock_price']),
                float(row['strike_price']),
                int(row['days_to_expiry']) / DAYS_PER_YEAR,
                risk_free_rate,
                str(row['option_type']),
            )
            solved += 1
        except ImpliedVolatilityError as e:
            logger.debug(
                f"{row['symbol']} {row['option_type']} {row['strike_price']}: "
                f"IV not solvable ({e}); using {default_volatility:.0%}"
            )
            iv.loc[idx] = default_volatility

    if missing.any():
        logger.debug(f"Solved IV for {solved} of {int(missing.sum())} candidates without IV")

    df['implied_volatility'] = iv
    greeks = calculate_greeks_vectorized(
        df['stock_price'].to_numpy(dtype=float),
        df['strike_price'].to_numpy(dtype=float),
        df['days_to_expiry'].to_numpy(dtype=float) / DAYS_PER_YEAR,
        risk_free_rate,
        iv.to_numpy(dtype=float),
        df['option_type'].to_numpy(dtype=str),
    )
    df['delta'] = greeks['delta']
    df['theta'] = greeks['theta']
    return df


def compute_metrics(df: pd.DataFrame, mode: ScanMode) -> pd.DataFrame:
    """
    Compute return metrics for priced candidates.

    Rows with non-positive days, stock price or (LEAPS puts) breakeven are
    dropped since their returns are undefined.
    """
    df = df.copy()
    for col in METRIC_COLUMNS:
        if col not in df.columns:
            df[col] = np.nan
    if df.empty:
        return df

    df = df[(df['days_to_expiry'] > 0) & (df['stock_price'] > 0)].copy()

    S = df['stock_price'].astype(float)
    K = df['strike_price'].astype(float)
    premium = df['premium'].astype(float)
    days = df['days_to_expiry'].astype(float)

    df['premium_percent'] = premium / S * 100.0

    if mode is ScanMode.COVERED_CALLS:
        df['annualized_return'] = df['premium_percent'] / days * DAYS_PER_YEAR
        df['downside_protection'] = df['premium_percent']
        df['max_profit'] = (K - S) + premium
        df['max_profit_percent'] = df['max_profit'] / S * 100.0
        df['breakeven'] = S - premium
        return df

    is_call = df['option_type'] == 'call'
    years = days / DAYS_PER_YEAR
    breakeven = pd.Series(np.where(is_call, K + premium, K - premium), index=df.index)

    valid = is_call | (breakeven > 0)
    dropped = int((~valid).sum())
    if dropped:
        logger.debug(f"Dropping {dropped} LEAPS puts with non-positive breakeven")

    with np.errstate(divide='ignore', invalid='ignore'):
        annualized = np.where(
            is_call,
            (breakeven / S - 1.0) / years * 100.0,
            (S / breakeven - 1.0) / years * 100.0,
        )

    df['breakeven'] = breakeven
    df['annualized_return'] = annualized
    df['downside_protection'] = np.nan
    df['max_profit'] = np.where(is_call, np.nan, breakeven)
    df['max_profit_percent'] = np.where(is_call, np.nan, breakeven / S * 100.0)
    return df[valid]


def apply_filters(df: pd.DataFrame, criteria: ScreenerCriteria) -> pd.DataFrame:
    """Keep candidates meeting every threshold (inclusive)."""
    if df.empty:
        return df

    mask = (
        (df['delta'].abs() <= criteria.max_delta)
        & (df['premium'] >= criteria.min_premium)
        & (df['annualized_return'] >= criteria.min_annualized_return)
    )
    removed = int((~mask).sum())
    if removed:
        logger.debug(f"Criteria removed {removed} of {len(df)} candidates")
    return df[mask]


def rank_candidates(df: pd.DataFrame, cap: Optional[int]) -> pd.DataFrame:
    """Stable sort by annualized return, descending, truncated to ``cap``."""
    ranked = df.sort_values('annualized_return', ascending=False, kind='stable')
    if cap is not None:
        ranked = ranked.head(cap)
    return ranked.reset_index(drop=True)


__all__ = [
    'CANDIDATE_COLUMNS',
    'METRIC_COLUMNS',
    'chain_candidates',
    'model_grid_candidates',
    'candidates_to_frame',
    'price_candidates',
    'compute_metrics',
    'apply_filters',
    'rank_candidates',
    'empty_candidates',
]

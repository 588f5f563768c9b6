"""
Option Chain Hygiene

Validation and cleaning of option chains before they reach the screener.
Provider data routinely contains quotes that would distort screening
results:

- Zero or missing strikes (malformed records)
- Negative bid/ask/last prices (data errors)
- Inverted quotes (bid > ask)
- Extreme implied volatilities (calculation errors or illiquid contracts)

Missing values are not errors: a contract without a bid still has a last
price the screener can use, and a missing IV is solved from the premium.

Usage:
    from optionscan.data.chain_validator import ChainValidator

    is_valid, errors = ChainValidator.validate_chain_frame(chain_df)
    clean = ChainValidator.filter_bad_quotes(chain_df)
"""

import logging
from typing import List, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class ChainValidator:
    """
    Static helpers for checking and cleaning option chain DataFrames.

    Attributes:
        MIN_IV (float): Minimum accepted implied volatility (0 = missing)
        MAX_IV (float): Maximum accepted implied volatility (5.0 = 500%)
    """

    MIN_IV: float = 0.0
    MAX_IV: float = 5.0

    REQUIRED_COLUMNS = {'strike', 'expiration', 'option_type'}
    PRICE_COLUMNS = ('bid', 'ask', 'last_price')

    @staticmethod
    def validate_chain_frame(df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """
        Check a chain DataFrame for structural problems.

        Returns:
            Tuple of (is_valid, error_messages).

        Raises:
            ValueError: If df is None.
        """
        if df is None:
            raise ValueError("DataFrame cannot be None")

        errors: List[str] = []

        missing = ChainValidator.REQUIRED_COLUMNS - set(df.columns)
        if missing:
            errors.append(f"Missing required columns: {sorted(missing)}")
            return (False, errors)

        if df.empty:
            return (True, errors)

        strikes = pd.to_numeric(df['strike'], errors='coerce')
        bad_strikes = ~(np.isfinite(strikes) & (strikes > 0))
        if bad_strikes.any():
            errors.append(f"Found {int(bad_strikes.sum())} rows with non-positive or missing strikes")

        invalid_types = ~df['option_type'].astype(str).str.lower().isin({'call', 'put'})
        if invalid_types.any():
            errors.append(
                f"Found {int(invalid_types.sum())} rows with invalid option_type "
                f"(must be 'call' or 'put')"
            )

        for col in ChainValidator.PRICE_COLUMNS:
            if col in df.columns:
                negative = df[col] < 0
                if negative.any():
                    errors.append(f"Found {int(negative.sum())} rows with negative {col}")

        if 'bid' in df.columns and 'ask' in df.columns:
            inverted = df['bid'] > df['ask']
            if inverted.any():
                errors.append(f"Found {int(inverted.sum())} inverted quotes (bid > ask)")

        return (len(errors) == 0, errors)

    @staticmethod
    def filter_bad_quotes(
        df: pd.DataFrame,
        min_iv: float = MIN_IV,
        max_iv: float = MAX_IV,
        remove_inverted: bool = True,
        min_open_interest: int = 0,
    ) -> pd.DataFrame:
        """
        Drop contracts whose quotes cannot be trusted.

        Filtering criteria (applied when the column exists):
            1. Strike is finite and positive
            2. Bid, ask and last are not negative
            3. Bid <= ask when both are present
            4. IV within [min_iv, max_iv] when present
            5. Open interest >= min_open_interest when present

        Args:
            df: Chain DataFrame (see optionscan.data.market_data.CHAIN_COLUMNS).
            min_iv: Minimum implied volatility (decimal).
            max_iv: Maximum implied volatility (decimal).
            remove_inverted: Remove quotes where bid > ask.
            min_open_interest: Minimum open interest.

        Returns:
            Filtered copy of df.
        """
        if df is None or df.empty:
            return pd.DataFrame() if df is None else df.copy()

        df = df.copy()
        initial_count = len(df)
        mask = pd.Series(True, index=df.index)

        if 'strike' in df.columns:
            strikes = pd.to_numeric(df['strike'], errors='coerce')
            strike_mask = np.isfinite(strikes) & (strikes > 0)
            removed = (~strike_mask).sum()
            if removed > 0:
                logger.debug(f"Removing {removed} rows with invalid strikes")
            mask &= strike_mask

        for col in ChainValidator.PRICE_COLUMNS:
            if col in df.columns:
                price_mask = ~(df[col] < 0)
                removed = (~price_mask).sum()
                if removed > 0:
                    logger.debug(f"Removing {removed} rows with negative {col}")
                mask &= price_mask

        if remove_inverted and 'bid' in df.columns and 'ask' in df.columns:
            inverted_mask = ~(df['bid'] > df['ask'])
            removed = (~inverted_mask).sum()
            if removed > 0:
                logger.debug(f"Removing {removed} inverted quotes (bid > ask)")
            mask &= inverted_mask

        if 'implied_volatility' in df.columns:
            iv = df['implied_volatility']
            iv_mask = ((iv >= min_iv) & (iv <= max_iv)) | iv.isnull()
            removed = (~iv_mask).sum()
            if removed > 0:
                logger.debug(f"Removing {removed} rows with IV outside [{min_iv}, {max_iv}]")
            mask &= iv_mask

        if min_open_interest > 0 and 'open_interest' in df.columns:
            oi_mask = df['open_interest'].fillna(0) >= min_open_interest
            removed = (~oi_mask).sum()
            if removed > 0:
                logger.debug(f"Removing {removed} rows with OI < {min_open_interest}")
            mask &= oi_mask

        result = df[mask]

        removed_total = initial_count - len(result)
        if removed_total > 0:
            logger.info(
                f"Filtered {removed_total} bad quotes "
                f"({removed_total / initial_count:.1%} of chain)"
            )

        return result


__all__ = ['ChainValidator']

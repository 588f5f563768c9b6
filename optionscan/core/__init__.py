"""
Core Module for Option Pricing

This module provides the pricing engine shared by the quote command and the
opportunity screener.

Components:
    - pricing: Black-Scholes price, Greeks, implied volatility, expected
      move and strike ladder
    - quote: Validated request/response types for pricing one option
    - risk: Probability-of-ITM risk flag for a position

Usage:
    from optionscan.core import OptionQuoteRequest, quote_option

    quote = quote_option(OptionQuoteRequest(
        spot_price=100, strike_price=105, days_to_expiry=30,
        option_type='call', volatility=0.30, symbol='AAPL',
    ))
    print(quote.greeks.price, quote.expected_move.amount)

Financial Conventions:
    - Greeks scaling: theta per calendar day, vega/rho per 1%
    - T = days / 365
    - Expired options are valued at intrinsic value
"""

from optionscan.core.pricing import (
    # Exceptions
    PricingError,
    ImpliedVolatilityError,
    # Normal distribution
    norm_cdf,
    norm_pdf,
    # Pricing and Greeks
    black_scholes_price,
    calculate_greeks,
    calculate_greeks_vectorized,
    calculate_implied_volatility,
    # Expected move and strikes
    ExpectedMove,
    calculate_expected_move,
    suggest_strikes,
    # Constants
    DAYS_PER_YEAR,
    DEFAULT_RISK_FREE_RATE,
    DEFAULT_VOLATILITY,
    MAX_DAYS_TO_EXPIRY,
    MAX_PRICE,
    MAX_VOLATILITY,
)

from optionscan.core.quote import (
    OptionType,
    ValidationErrorKind,
    ValidationError,
    OptionQuoteRequest,
    OptionGreeks,
    OptionQuote,
    price_option,
    quote_option,
    SYMBOL_PATTERN,
)

from optionscan.core.risk import (
    RiskFlag,
    PositionRisk,
    assess_position_risk,
)

__all__ = [
    # =========================================================================
    # Pricing
    # =========================================================================
    "PricingError",
    "ImpliedVolatilityError",
    "norm_cdf",
    "norm_pdf",
    "black_scholes_price",
    "calculate_greeks",
    "calculate_greeks_vectorized",
    "calculate_implied_volatility",
    "ExpectedMove",
    "calculate_expected_move",
    "suggest_strikes",
    # =========================================================================
    # Quote Requests
    # =========================================================================
    "OptionType",
    "ValidationErrorKind",
    "ValidationError",
    "OptionQuoteRequest",
    "OptionGreeks",
    "OptionQuote",
    "price_option",
    "quote_option",
    "SYMBOL_PATTERN",
    # =========================================================================
    # Risk
    # =========================================================================
    "RiskFlag",
    "PositionRisk",
    "assess_position_risk",
    # =========================================================================
    # Constants
    # =========================================================================
    "DAYS_PER_YEAR",
    "DEFAULT_RISK_FREE_RATE",
    "DEFAULT_VOLATILITY",
    "MAX_DAYS_TO_EXPIRY",
    "MAX_PRICE",
    "MAX_VOLATILITY",
]

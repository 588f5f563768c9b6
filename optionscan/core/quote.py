"""
Option Quote Requests and Responses

This module provides the request/response types of the pricing operation
and the entry points that validate a request and run the pricing engine:

    - OptionQuoteRequest: validated inputs (spot, strike, days, vol, rate, type)
    - OptionGreeks: rounded price and Greeks
    - OptionQuote: Greeks plus expected move and suggested strikes
    - price_option(): request -> OptionGreeks
    - quote_option(): request -> OptionQuote

Validation happens before any numeric work. Every failure raises
ValidationError carrying the failing field and one of the kinds in
ValidationErrorKind, so callers can report a field-level reason.

Rounding conventions:
    price, theta, vega, rho  -> 2 decimals
    delta                    -> 3 decimals
    gamma                    -> 4 decimals

Usage:
    from optionscan.core.quote import OptionQuoteRequest, price_option

    request = OptionQuoteRequest(spot_price=100, strike_price=100,
                                 days_to_expiry=365, volatility=0.25)
    greeks = price_option(request)
    print(greeks.price, greeks.delta)
"""

import logging
import math
import numbers
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from optionscan.core.pricing import (
    DAYS_PER_YEAR,
    DEFAULT_RISK_FREE_RATE,
    DEFAULT_VOLATILITY,
    MAX_DAYS_TO_EXPIRY,
    MAX_PRICE,
    MAX_VOLATILITY,
    ExpectedMove,
    calculate_expected_move,
    calculate_greeks,
    suggest_strikes,
)

logger = logging.getLogger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]{1,10}$", re.IGNORECASE)
MAX_ABS_RATE = 1.0


class OptionType(str, Enum):
    """Option right."""

    CALL = "call"
    PUT = "put"

    @classmethod
    def parse(cls, value: Any) -> "OptionType":
        if isinstance(value, OptionType):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in ("call", "c"):
                return cls.CALL
            if normalized in ("put", "p"):
                return cls.PUT
        raise ValidationError(
            ValidationErrorKind.INVALID_OPTION_TYPE,
            "option_type",
            f"Option type must be 'call' or 'put', got {value!r}",
        )


class ValidationErrorKind(str, Enum):
    """Field-level reasons a quote request is rejected."""

    INVALID_SYMBOL = "invalid-symbol"
    INVALID_PRICE = "invalid-price"
    INVALID_EXPIRY = "invalid-expiry"
    INVALID_VOLATILITY = "invalid-volatility"
    INVALID_OPTION_TYPE = "invalid-option-type"


class ValidationError(ValueError):
    """Raised when a quote request fails input validation."""

    def __init__(self, kind: ValidationErrorKind, field_name: str, message: str):
        self.kind = kind
        self.field = field_name
        super().__init__(message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": str(self), "kind": self.kind.value, "field": self.field}


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


@dataclass
class OptionQuoteRequest:
    """
    Inputs to the pricing engine.

    Attributes:
        spot_price: Current underlying price, 0 < spot <= 1,000,000.
        strike_price: Strike, 0 < strike <= 1,000,000.
        days_to_expiry: Whole calendar days, 0..1825. Zero means the option
            is valued at expiration (intrinsic value).
        option_type: 'call' or 'put'.
        volatility: Annualized decimal in (0, 5]. None uses the default
            (25%); an explicit 0 is rejected rather than replaced.
        risk_free_rate: Annualized decimal, default 5%.
        symbol: Optional ticker, 1-10 alphanumerics.
    """

    spot_price: float
    strike_price: float
    days_to_expiry: int
    option_type: Any = OptionType.CALL
    volatility: Optional[float] = None
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    symbol: Optional[str] = None

    # Interchange names accepted by from_dict
    FIELD_ALIASES = {
        "spotPrice": "spot_price",
        "stockPrice": "spot_price",
        "strikePrice": "strike_price",
        "daysToExpiry": "days_to_expiry",
        "optionType": "option_type",
        "riskFreeRate": "risk_free_rate",
    }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OptionQuoteRequest":
        """Build a request from snake_case or camelCase keys."""
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = cls.FIELD_ALIASES.get(key, key)
            if name in cls.__dataclass_fields__:
                kwargs[name] = value

        for required in ("spot_price", "strike_price", "days_to_expiry"):
            kwargs.setdefault(required, None)

        return cls(**kwargs)

    @property
    def effective_volatility(self) -> float:
        return DEFAULT_VOLATILITY if self.volatility is None else float(self.volatility)

    @property
    def time_to_expiry(self) -> float:
        """Year fraction T = days / 365."""
        return int(self.days_to_expiry) / DAYS_PER_YEAR

    def validate(self) -> None:
        """
        Check every field and normalize option_type and symbol.

        Raises:
            ValidationError: On the first failing field.
        """
        if self.symbol is not None:
            if not isinstance(self.symbol, str) or not SYMBOL_PATTERN.match(self.symbol):
                raise ValidationError(
                    ValidationErrorKind.INVALID_SYMBOL,
                    "symbol",
                    f"Invalid symbol format: {self.symbol!r}",
                )
            self.symbol = self.symbol.upper()

        for name in ("spot_price", "strike_price"):
            value = getattr(self, name)
            if not _is_number(value) or not math.isfinite(value) or not 0 < value <= MAX_PRICE:
                label = name.replace("_", " ")
                raise ValidationError(
                    ValidationErrorKind.INVALID_PRICE,
                    name,
                    f"Invalid {label}: must be > 0 and <= {MAX_PRICE:,.0f}, got {value!r}",
                )

        days = self.days_to_expiry
        if (
            not _is_number(days)
            or not math.isfinite(days)
            or float(days) != int(days)
            or not 0 <= days <= MAX_DAYS_TO_EXPIRY
        ):
            raise ValidationError(
                ValidationErrorKind.INVALID_EXPIRY,
                "days_to_expiry",
                f"Invalid days to expiry (must be whole days 0-{MAX_DAYS_TO_EXPIRY}), got {days!r}",
            )

        if self.volatility is not None:
            vol = self.volatility
            if not _is_number(vol) or not math.isfinite(vol) or not 0 < vol <= MAX_VOLATILITY:
                raise ValidationError(
                    ValidationErrorKind.INVALID_VOLATILITY,
                    "volatility",
                    f"Invalid volatility (must be > 0 and <= {MAX_VOLATILITY:g}), got {vol!r}",
                )

        self.option_type = OptionType.parse(self.option_type)

        rate = self.risk_free_rate
        if not _is_number(rate) or not math.isfinite(rate) or abs(rate) > MAX_ABS_RATE:
            raise ValidationError(
                ValidationErrorKind.INVALID_PRICE,
                "risk_free_rate",
                f"Invalid risk-free rate, got {rate!r}",
            )


@dataclass(frozen=True)
class OptionGreeks:
    """Rounded theoretical price and Greeks."""

    price: float
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float

    @classmethod
    def from_raw(cls, raw: Mapping[str, float]) -> "OptionGreeks":
        return cls(
            price=round(raw["price"], 2),
            delta=round(raw["delta"], 3),
            gamma=round(raw["gamma"], 4),
            theta=round(raw["theta"], 2),
            vega=round(raw["vega"], 2),
            rho=round(raw["rho"], 2),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "price": self.price,
            "delta": self.delta,
            "gamma": self.gamma,
            "theta": self.theta,
            "vega": self.vega,
            "rho": self.rho,
        }


@dataclass(frozen=True)
class OptionQuote:
    """Full pricing response for one request."""

    request: OptionQuoteRequest
    volatility: float
    greeks: OptionGreeks
    expected_move: ExpectedMove
    suggested_strikes: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.request.symbol,
            "stockPrice": self.request.spot_price,
            "strikePrice": self.request.strike_price,
            "daysToExpiry": int(self.request.days_to_expiry),
            "volatility": self.volatility,
            "riskFreeRate": self.request.risk_free_rate,
            "optionType": OptionType.parse(self.request.option_type).value,
            "greeks": self.greeks.to_dict(),
            "expectedMove": self.expected_move.to_dict(),
            "suggestedStrikes": list(self.suggested_strikes),
        }


def price_option(request: OptionQuoteRequest) -> OptionGreeks:
    """
    Validate a request and compute its Black-Scholes price and Greeks.

    Raises:
        ValidationError: If any field is out of range.
    """
    request.validate()

    raw = calculate_greeks(
        S=float(request.spot_price),
        K=float(request.strike_price),
        T=request.time_to_expiry,
        r=float(request.risk_free_rate),
        sigma=request.effective_volatility,
        option_type=request.option_type.value,
    )
    return OptionGreeks.from_raw(raw)


def quote_option(request: OptionQuoteRequest) -> OptionQuote:
    """Price a request and add the expected move and strike ladder."""
    greeks = price_option(request)
    volatility = request.effective_volatility

    logger.debug(
        f"Quoted {request.symbol or 'option'} {request.option_type.value} "
        f"K={request.strike_price} {request.days_to_expiry}d: price={greeks.price}"
    )

    return OptionQuote(
        request=request,
        volatility=volatility,
        greeks=greeks,
        expected_move=calculate_expected_move(
            float(request.spot_price), volatility, int(request.days_to_expiry)
        ),
        suggested_strikes=suggest_strikes(float(request.spot_price)),
    )


__all__ = [
    "OptionType",
    "ValidationErrorKind",
    "ValidationError",
    "OptionQuoteRequest",
    "OptionGreeks",
    "OptionQuote",
    "price_option",
    "quote_option",
    "SYMBOL_PATTERN",
]

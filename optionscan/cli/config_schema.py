"""
Configuration Schema for Scanner Definitions

Defines the schema for YAML/JSON scanner configuration files,
including validation logic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import logging
import math

from optionscan.core.pricing import MAX_VOLATILITY
from optionscan.core.quote import SYMBOL_PATTERN
from optionscan.screener.criteria import ScanMode

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


class ProviderType(str, Enum):
    """Supported market data providers."""

    FINNHUB = "finnhub"
    STATIC = "static"


@dataclass
class CriteriaConfig:
    """Screening thresholds. max_delta None uses the mode default."""

    max_delta: Optional[float] = None
    min_premium: float = 0.0
    min_annualized_return: float = 0.0
    max_stock_price: Optional[float] = None


@dataclass
class ModeOverridesConfig:
    """Overrides of the per-mode screening constants."""

    min_days: Optional[int] = None
    max_days: Optional[int] = None
    max_stock_price: Optional[float] = None
    result_cap: Optional[int] = None
    max_symbols: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class PricingConfig:
    """Pricing inputs shared by IV solving and the model grid."""

    risk_free_rate: float = 0.05
    default_volatility: float = 0.25


@dataclass
class ProviderConfig:
    """Market data provider configuration."""

    type: ProviderType = ProviderType.FINNHUB
    data_file: Optional[str] = None
    api_key_env: str = "FINNHUB_API_KEY"
    base_url: Optional[str] = None
    timeout: float = 10.0
    requests_per_second: float = 10.0
    burst: Optional[float] = None


@dataclass
class ScannerConfig:
    """Complete scanner configuration."""

    name: str
    mode: ScanMode = ScanMode.COVERED_CALLS
    description: Optional[str] = None

    universe: List[str] = field(default_factory=list)
    criteria: CriteriaConfig = field(default_factory=CriteriaConfig)
    mode_overrides: Optional[ModeOverridesConfig] = None
    pricing: PricingConfig = field(default_factory=PricingConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)

    sample_seed: int = 42
    timeout: Optional[float] = None


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class ConfigValidator:
    """Validates scanner configuration."""

    @classmethod
    def validate(cls, config: ScannerConfig) -> List[str]:
        """
        Validate a scanner configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not config.name:
            errors.append("Scanner name is required")

        for symbol in config.universe:
            if not isinstance(symbol, str) or not SYMBOL_PATTERN.match(symbol):
                errors.append(f"Invalid symbol in universe: {symbol!r}")

        errors.extend(cls._validate_criteria(config.criteria))

        if config.mode_overrides:
            errors.extend(cls._validate_mode_overrides(config.mode_overrides))

        errors.extend(cls._validate_pricing(config.pricing))
        errors.extend(cls._validate_provider(config.provider))

        if not isinstance(config.sample_seed, int) or isinstance(config.sample_seed, bool) \
                or config.sample_seed < 0:
            errors.append(f"sample_seed must be a non-negative integer, got {config.sample_seed!r}")

        if config.timeout is not None and (not _is_number(config.timeout) or config.timeout <= 0):
            errors.append(f"Scan timeout must be positive, got {config.timeout!r}")

        return errors

    @classmethod
    def _validate_criteria(cls, criteria: CriteriaConfig) -> List[str]:
        """Validate screening thresholds."""
        errors = []

        if criteria.max_delta is not None:
            if not _is_number(criteria.max_delta) or not 0 < criteria.max_delta <= 1:
                errors.append(f"max_delta must be between 0 and 1, got {criteria.max_delta!r}")

        if not _is_number(criteria.min_premium) or criteria.min_premium < 0:
            errors.append(f"min_premium cannot be negative, got {criteria.min_premium!r}")

        if not _is_number(criteria.min_annualized_return) or criteria.min_annualized_return < 0:
            errors.append(
                f"min_annualized_return cannot be negative, got {criteria.min_annualized_return!r}"
            )

        if criteria.max_stock_price is not None:
            if not _is_number(criteria.max_stock_price) or criteria.max_stock_price <= 0:
                errors.append("max_stock_price must be positive")

        return errors

    @classmethod
    def _validate_mode_overrides(cls, overrides: ModeOverridesConfig) -> List[str]:
        """Validate per-mode overrides."""
        errors = []

        if overrides.min_days is not None and overrides.min_days < 1:
            errors.append("min_days must be at least 1")

        if overrides.max_days is not None and overrides.max_days < 1:
            errors.append("max_days must be at least 1")

        if (
            overrides.min_days is not None
            and overrides.max_days is not None
            and overrides.min_days > overrides.max_days
        ):
            errors.append("min_days must not exceed max_days")

        if overrides.max_stock_price is not None and overrides.max_stock_price <= 0:
            errors.append("max_stock_price must be positive")

        if overrides.result_cap is not None and overrides.result_cap < 1:
            errors.append("result_cap must be at least 1")

        if overrides.max_symbols is not None and overrides.max_symbols < 1:
            errors.append("max_symbols must be at least 1")

        return errors

    @classmethod
    def _validate_pricing(cls, pricing: PricingConfig) -> List[str]:
        """Validate pricing inputs."""
        errors = []

        if not _is_number(pricing.risk_free_rate) or abs(pricing.risk_free_rate) > 1:
            errors.append(f"risk_free_rate must be between -1 and 1, got {pricing.risk_free_rate!r}")

        if not _is_number(pricing.default_volatility) or \
                not 0 < pricing.default_volatility <= MAX_VOLATILITY:
            errors.append(
                f"default_volatility must be in (0, {MAX_VOLATILITY:g}], "
                f"got {pricing.default_volatility!r}"
            )

        return errors

    @classmethod
    def _validate_provider(cls, provider: ProviderConfig) -> List[str]:
        """Validate provider configuration."""
        errors = []

        if provider.type == ProviderType.STATIC and not provider.data_file:
            errors.append("Static provider requires 'data_file'")

        if not _is_number(provider.timeout) or provider.timeout <= 0:
            errors.append("Provider timeout must be positive")

        if not _is_number(provider.requests_per_second) or provider.requests_per_second <= 0:
            errors.append("requests_per_second must be positive")

        if provider.burst is not None and (not _is_number(provider.burst) or provider.burst < 1):
            errors.append("burst must be at least 1")

        return errors


def validate_config(config: ScannerConfig) -> None:
    """
    Validate configuration and raise exception if invalid.

    Args:
        config: Scanner configuration to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = ConfigValidator.validate(config)
    if errors:
        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s)",
            errors=errors,
        )

"""
CLI Package for optionscan

Provides command-line interface tools for pricing options, scanning for
opportunities, validating scanner configurations and managing environments.

Usage:
    # Price one option
    optionscan price --spot 100 --strike 100 --days 365 --vol 0.25

    # Scan for covered calls
    optionscan scan covered_calls --symbols SOFI,F,NIO

    # Scan using a configuration file
    optionscan scan leaps --config scanner.yaml

    # Validate a configuration
    optionscan validate --config scanner.yaml
"""

from optionscan.cli.config_schema import (
    # Enums
    ProviderType,
    # Config Classes
    CriteriaConfig,
    ModeOverridesConfig,
    PricingConfig,
    ProviderConfig,
    ScannerConfig,
    # Validation
    ConfigValidator,
    ConfigValidationError,
    validate_config,
)

from optionscan.cli.config_loader import (
    ConfigLoader,
    load_config,
    load_config_string,
)

from optionscan.cli.environment import (
    Environment,
    EnvironmentSettings,
    EnvironmentManager,
    get_environment,
    get_settings,
    set_environment,
    configure_logging,
)

__all__ = [
    # Schema Enums
    "ProviderType",
    # Config Classes
    "CriteriaConfig",
    "ModeOverridesConfig",
    "PricingConfig",
    "ProviderConfig",
    "ScannerConfig",
    # Validation
    "ConfigValidator",
    "ConfigValidationError",
    "validate_config",
    # Loader
    "ConfigLoader",
    "load_config",
    "load_config_string",
    # Environment
    "Environment",
    "EnvironmentSettings",
    "EnvironmentManager",
    "get_environment",
    "get_settings",
    "set_environment",
    "configure_logging",
]

"""
optionscan Package

Option pricing and opportunity screening: Black-Scholes quotes with Greeks
and expected moves, and scans of a stock universe for covered-call and
LEAPS trades ranked by annualized return.

Modules:
    core: Black-Scholes pricing, quote validation and position risk
    data: Market data providers, rate limiting and chain validation
    screener: Scan modes, criteria, candidate pricing and ranking
    cli: Command-line interface and configuration management
"""

__version__ = "1.0.0"
__author__ = "optionscan Team"

from optionscan.core import (
    OptionQuoteRequest,
    ValidationError,
    quote_option,
)

from optionscan.screener import (
    ScanMode,
    ScreenerCriteria,
    ScanResult,
    scan_opportunities,
)

from optionscan.cli import (
    load_config,
    load_config_string,
    ScannerConfig,
    Environment,
    get_environment,
    set_environment,
)

__all__ = [
    "__version__",
    "__author__",
    "OptionQuoteRequest",
    "ValidationError",
    "quote_option",
    "ScanMode",
    "ScreenerCriteria",
    "ScanResult",
    "scan_opportunities",
    "load_config",
    "load_config_string",
    "ScannerConfig",
    "Environment",
    "get_environment",
    "set_environment",
]

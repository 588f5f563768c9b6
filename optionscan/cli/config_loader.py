"""
Configuration Loader for Scanner Definitions

Loads scanner configurations from YAML and JSON files,
validates them, and converts them to ScannerConfig objects.
"""

import json
from pathlib import Path
from typing import Any, Dict, Union
import logging

import yaml

from optionscan.cli.config_schema import (
    ConfigValidationError,
    ConfigValidator,
    CriteriaConfig,
    ModeOverridesConfig,
    PricingConfig,
    ProviderConfig,
    ProviderType,
    ScannerConfig,
)
from optionscan.screener.criteria import CriteriaError, ScanMode

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and parses scanner configuration files."""

    @classmethod
    def load(cls, path: Union[str, Path]) -> ScannerConfig:
        """
        Load configuration from file.

        Args:
            path: Path to YAML or JSON configuration file

        Returns:
            Parsed and validated ScannerConfig

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigValidationError: If configuration is invalid
            ValueError: If file format is unsupported
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        raw_data = cls._load_file(path)

        config = cls._parse_config(raw_data)

        errors = ConfigValidator.validate(config)
        if errors:
            raise ConfigValidationError(
                f"Configuration validation failed: {path}", errors=errors
            )

        logger.info(f"Loaded configuration '{config.name}' from {path}")
        return config

    @classmethod
    def load_from_string(cls, content: str, format: str = "yaml") -> ScannerConfig:
        """
        Load configuration from string content.

        Args:
            content: YAML or JSON string
            format: "yaml" or "json"

        Returns:
            Parsed and validated ScannerConfig
        """
        if format.lower() == "yaml":
            raw_data = yaml.safe_load(content)
        elif format.lower() == "json":
            raw_data = json.loads(content)
        else:
            raise ValueError(f"Unsupported format: {format}")

        config = cls._parse_config(raw_data)

        errors = ConfigValidator.validate(config)
        if errors:
            raise ConfigValidationError(
                "Configuration validation failed", errors=errors
            )

        return config

    @classmethod
    def _load_file(cls, path: Path) -> Dict[str, Any]:
        """Load raw data from file."""
        suffix = path.suffix.lower()

        with open(path, "r") as f:
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(f)
            elif suffix == ".json":
                return json.load(f)
            else:
                raise ValueError(f"Unsupported file format: {suffix}")

    @classmethod
    def _parse_config(cls, data: Dict[str, Any]) -> ScannerConfig:
        """Parse raw dictionary into ScannerConfig."""
        if not isinstance(data, dict):
            raise ConfigValidationError(
                "Configuration must be a mapping",
                errors=["Configuration must be a mapping"],
            )

        try:
            mode = ScanMode.parse(data.get("mode", ScanMode.COVERED_CALLS.value))
        except CriteriaError as e:
            raise ConfigValidationError(str(e), errors=[str(e)])

        universe = data.get("universe") or []
        if isinstance(universe, str):
            universe = [s.strip() for s in universe.split(",") if s.strip()]

        mode_overrides = None
        if "mode_overrides" in data:
            mode_overrides = cls._parse_mode_overrides(data["mode_overrides"] or {})

        return ScannerConfig(
            name=data.get("name", "Unnamed Scanner"),
            mode=mode,
            description=data.get("description"),
            universe=[str(s).upper() if isinstance(s, str) else s for s in universe],
            criteria=cls._parse_criteria(data.get("criteria") or {}),
            mode_overrides=mode_overrides,
            pricing=cls._parse_pricing(data.get("pricing") or {}),
            provider=cls._parse_provider(data.get("provider") or {}),
            sample_seed=data.get("sample_seed", 42),
            timeout=data.get("timeout"),
        )

    @classmethod
    def _parse_criteria(cls, data: Dict[str, Any]) -> CriteriaConfig:
        """Parse screening thresholds."""
        return CriteriaConfig(
            max_delta=data.get("max_delta"),
            min_premium=data.get("min_premium", 0.0),
            min_annualized_return=data.get("min_annualized_return", 0.0),
            max_stock_price=data.get("max_stock_price"),
        )

    @classmethod
    def _parse_mode_overrides(cls, data: Dict[str, Any]) -> ModeOverridesConfig:
        """Parse per-mode overrides."""
        return ModeOverridesConfig(
            min_days=data.get("min_days"),
            max_days=data.get("max_days"),
            max_stock_price=data.get("max_stock_price"),
            result_cap=data.get("result_cap"),
            max_symbols=data.get("max_symbols"),
        )

    @classmethod
    def _parse_pricing(cls, data: Dict[str, Any]) -> PricingConfig:
        """Parse pricing inputs."""
        return PricingConfig(
            risk_free_rate=data.get("risk_free_rate", 0.05),
            default_volatility=data.get("default_volatility", 0.25),
        )

    @classmethod
    def _parse_provider(cls, data: Dict[str, Any]) -> ProviderConfig:
        """Parse provider configuration."""
        provider_type = data.get("type", "finnhub")

        if isinstance(provider_type, str):
            try:
                provider_type = ProviderType(provider_type.lower())
            except ValueError:
                valid = ", ".join(p.value for p in ProviderType)
                message = f"Unknown provider type '{provider_type}'. Valid types: {valid}"
                raise ConfigValidationError(message, errors=[message])

        return ProviderConfig(
            type=provider_type,
            data_file=data.get("data_file"),
            api_key_env=data.get("api_key_env", "FINNHUB_API_KEY"),
            base_url=data.get("base_url"),
            timeout=data.get("timeout", 10.0),
            requests_per_second=data.get("requests_per_second", 10.0),
            burst=data.get("burst"),
        )


def load_config(path: Union[str, Path]) -> ScannerConfig:
    """
    Convenience function to load a configuration file.

    Args:
        path: Path to YAML or JSON config file

    Returns:
        Validated ScannerConfig
    """
    return ConfigLoader.load(path)


def load_config_string(content: str, format: str = "yaml") -> ScannerConfig:
    """
    Convenience function to load configuration from string.

    Args:
        content: YAML or JSON string
        format: "yaml" or "json"

    Returns:
        Validated ScannerConfig
    """
    return ConfigLoader.load_from_string(content, format)

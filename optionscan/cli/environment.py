"""
Environment Management for optionscan

Resolves the active environment (development, staging, production, test)
and the settings that go with it: which market data provider to use, how
fast it may be called, scan timeouts, pricing defaults and logging.

Settings are layered, later layers winning:
    1. Built-in defaults of EnvironmentSettings
    2. Per-environment defaults (DEFAULT_SETTINGS)
    3. The first config file found on CONFIG_PATHS
    4. OPTIONSCAN_<SETTING> environment variables, e.g.
       OPTIONSCAN_REQUESTS_PER_SECOND=2 or OPTIONSCAN_LOG_LEVEL=WARNING

Usage:
    from optionscan.cli.environment import get_settings

    settings = get_settings()
    print(settings.provider_type, settings.requests_per_second)
"""

import os
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
import logging

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "OPTIONSCAN_"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Environment(str, Enum):
    """Available environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"

    @classmethod
    def parse(cls, value: str) -> "Environment":
        """Parse a name, accepting dev / stage / prod shorthands."""
        normalized = value.strip().lower()
        aliases = {"dev": cls.DEVELOPMENT, "stage": cls.STAGING, "prod": cls.PRODUCTION}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


@dataclass
class EnvironmentSettings:
    """Settings specific to an environment."""

    name: Environment

    # Market data provider
    provider_type: str = "finnhub"
    data_file: Optional[str] = None
    api_key_env: str = "FINNHUB_API_KEY"
    base_url: str = "https://finnhub.io/api/v1"
    request_timeout: float = 10.0

    # Rate limiting (shared by all scans in the process)
    requests_per_second: float = 10.0
    burst: Optional[float] = None

    # Scanning
    scan_timeout: Optional[float] = None
    sample_seed: int = 42

    # Pricing
    risk_free_rate: float = 0.05
    default_volatility: float = 0.25

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Unrecognised keys from config files
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def setting_names(cls) -> Dict[str, Any]:
        """Configurable setting name -> its built-in default."""
        return {
            f.name: f.default
            for f in fields(cls)
            if f.name not in ("name", "extra")
        }

    @classmethod
    def from_mapping(cls, env: Environment, values: Dict[str, Any]) -> "EnvironmentSettings":
        """Build settings, moving unknown keys into ``extra``."""
        known = cls.setting_names()
        kwargs = {k: v for k, v in values.items() if k in known}
        extra = dict(values.get("extra") or {})
        extra.update({k: v for k, v in values.items() if k not in known and k != "extra"})
        return cls(name=env, extra=extra, **kwargs)


# Default settings for each environment
DEFAULT_SETTINGS: Dict[Environment, Dict[str, Any]] = {
    Environment.DEVELOPMENT: {
        "log_level": "DEBUG",
        "requests_per_second": 5.0,
    },
    Environment.STAGING: {
        "log_level": "INFO",
        "scan_timeout": 120.0,
    },
    Environment.PRODUCTION: {
        "log_level": "WARNING",
        "requests_per_second": 10.0,
        "scan_timeout": 60.0,
    },
    Environment.TEST: {
        "log_level": "DEBUG",
        "provider_type": "static",
        "requests_per_second": 1000.0,
    },
}


def _coerce(raw: str, default: Any) -> Any:
    """Convert an environment variable string to the type of ``default``."""
    if raw.strip().lower() in ("", "none", "null"):
        return None
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float) or default is None:
        try:
            return float(raw)
        except ValueError:
            return raw
    return raw


class EnvironmentManager:
    """Resolves the current environment and caches its settings."""

    ENV_VAR = "OPTIONSCAN_ENV"

    # Config file search paths, first match wins
    CONFIG_PATHS = [
        Path.cwd() / "config",
        Path.cwd() / ".config",
        Path.home() / ".optionscan",
        Path("/etc/optionscan"),
    ]

    _current_env: Optional[Environment] = None
    _settings: Optional[EnvironmentSettings] = None

    @classmethod
    def get_environment(cls) -> Environment:
        """
        Get the current environment.

        Priority:
        1. Explicitly set via set_environment()
        2. OPTIONSCAN_ENV environment variable
        3. Default to DEVELOPMENT
        """
        if cls._current_env is not None:
            return cls._current_env

        raw = os.environ.get(cls.ENV_VAR)
        if not raw:
            return Environment.DEVELOPMENT

        try:
            return Environment.parse(raw)
        except ValueError:
            logger.warning(f"Unknown environment '{raw}' in {cls.ENV_VAR}, using development")
            return Environment.DEVELOPMENT

    @classmethod
    def set_environment(cls, env: Environment) -> None:
        """Switch environment and drop cached settings."""
        cls._current_env = env
        cls._settings = None
        logger.info(f"Environment set to: {env.value}")

    @classmethod
    def get_settings(cls) -> EnvironmentSettings:
        """Settings for the current environment, computed once and cached."""
        if cls._settings is None:
            env = cls.get_environment()
            merged: Dict[str, Any] = dict(DEFAULT_SETTINGS.get(env, {}))
            merged.update(cls._load_config_file(env) or {})
            merged.update(cls._env_overrides())
            cls._settings = EnvironmentSettings.from_mapping(env, merged)
        return cls._settings

    @classmethod
    def _candidate_files(cls, env: Environment) -> Iterator[Path]:
        names = (
            f"{env.value}.yaml",
            f"{env.value}.yml",
            f"{env.value}.json",
            "config.yaml",
            "config.yml",
        )
        for base_path in cls.CONFIG_PATHS:
            for name in names:
                path = Path(base_path) / name
                if path.is_file():
                    yield path

    @classmethod
    def _load_config_file(cls, env: Environment) -> Optional[Dict[str, Any]]:
        """
        Load the first readable config file for ``env``.

        A shared ``config.yaml`` may hold one section per environment
        (``production: {...}``); the matching section is returned.
        """
        for path in cls._candidate_files(env):
            try:
                data = yaml.safe_load(path.read_text()) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load {path}: {e}")
                continue

            if not isinstance(data, dict):
                logger.warning(f"Ignoring {path}: not a mapping")
                continue

            logger.debug(f"Loaded environment config from {path}")
            section = data.get(env.value)
            return section if isinstance(section, dict) else data

        return None

    @classmethod
    def _env_overrides(cls) -> Dict[str, Any]:
        overrides = {}
        for name, default in EnvironmentSettings.setting_names().items():
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            try:
                overrides[name] = _coerce(raw, default)
            except ValueError:
                logger.warning(f"Ignoring {ENV_PREFIX}{name.upper()}={raw!r}: not a valid value")
        return overrides

    @classmethod
    def reset(cls) -> None:
        """Forget the explicit environment and cached settings."""
        cls._current_env = None
        cls._settings = None

    @classmethod
    def is_development(cls) -> bool:
        return cls.get_environment() == Environment.DEVELOPMENT

    @classmethod
    def is_production(cls) -> bool:
        return cls.get_environment() == Environment.PRODUCTION

    @classmethod
    def is_test(cls) -> bool:
        return cls.get_environment() == Environment.TEST


def get_environment() -> Environment:
    """Get current environment."""
    return EnvironmentManager.get_environment()


def get_settings() -> EnvironmentSettings:
    """Get current environment settings."""
    return EnvironmentManager.get_settings()


def set_environment(env: Environment) -> None:
    """Set current environment."""
    EnvironmentManager.set_environment(env)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging from the environment settings.

    A console handler is installed only when the root logger has none, so
    embedding applications and test runners keep their own handlers.

    Args:
        level: Overrides the environment's log level (e.g. from --verbose).
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    handlers = []
    if not root_logger.handlers:
        handlers.append(logging.StreamHandler())
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logger.info(f"Logging configured for {settings.name.value} environment")

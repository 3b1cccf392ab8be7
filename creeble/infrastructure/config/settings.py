"""Provides functions for loading client settings.

Supports loading from explicit overrides, environment variables, a .env file
and a YAML configuration file (~/.creeble/config.yaml).

Priority order (highest to lowest):
1. Explicit overrides (e.g. CLI options)
2. Environment variables (CREEBLE_API_KEY, CREEBLE_BASE_URL, ...)
3. .env file (searched upwards from the current directory)
4. YAML configuration file
5. Default values
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values

from creeble.domain.events.api_events import EventHook
from creeble.domain.models.errors import ConfigurationError
from creeble.infrastructure.http.configuration import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_MS,
    TransportConfiguration,
)
from creeble.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT
from creeble.infrastructure.resilience.retry_policy import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".creeble"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "CREEBLE_"

# Setting name -> path inside the YAML document
YAML_KEYS: Dict[str, Tuple[str, ...]] = {
    "api_key": ("api", "key"),
    "base_url": ("api", "base_url"),
    "timeout_ms": ("api", "timeout_ms"),
    "max_retries": ("retry", "max_retries"),
    "base_delay_ms": ("retry", "base_delay_ms"),
    "max_delay_ms": ("retry", "max_delay_ms"),
    "log_level": ("logging", "level"),
    "log_file": ("logging", "file"),
    "log_format": ("logging", "format"),
}
INT_SETTINGS = frozenset({"timeout_ms", "max_retries", "base_delay_ms", "max_delay_ms"})
# Accepted for compatibility with older config files; caching is not implemented
IGNORED_CACHE_KEYS = {
    "ENABLE_CACHE": ("cache", "enabled"),
    "CACHE_TTL": ("cache", "ttl"),
}


@dataclass(frozen=True)
class ClientSettings:
    """Resolved client configuration."""
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_format: str = DEFAULT_LOG_FORMAT

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(
                f"API key is required. Set {ENV_PREFIX}API_KEY, add api.key to "
                f"{DEFAULT_CONFIG_FILE}, or pass --api-key."
            )
        return self.api_key

    def transport_configuration(self) -> TransportConfiguration:
        try:
            return TransportConfiguration(
                api_key=self.require_api_key(),
                base_url=self.base_url,
                timeout_ms=self.timeout_ms,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def retry_policy(self, on_retry: Optional[EventHook] = None) -> RetryPolicy:
        try:
            return RetryPolicy(
                max_retries=self.max_retries,
                base_delay_ms=self.base_delay_ms,
                max_delay_ms=self.max_delay_ms,
                on_retry=on_retry,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def masked(self) -> Dict[str, Any]:
        """Settings as a dict with the API key partially hidden."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if self.api_key:
            data["api_key"] = f"{self.api_key[:5]}..." if len(self.api_key) > 5 else "***"
        return data


def find_dotenv_path(start: Optional[Path] = None) -> Optional[Path]:
    """Searches for the .env file upwards from ``start`` (default: cwd)."""
    cwd = start or Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    if not config_file.is_file():
        logger.debug(f"YAML config file not found: {config_file}")
        return {}
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML config {config_file}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read YAML config {config_file}: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"YAML config file {config_file} did not contain a mapping")
    logger.info(f"Loaded configuration from YAML: {config_file}")
    return document


def _dig(document: Mapping[str, Any], path: Tuple[str, ...]) -> Any:
    value: Any = document
    for key in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _from_yaml(document: Mapping[str, Any]) -> Dict[str, Any]:
    values = {}
    for name, path in YAML_KEYS.items():
        value = _dig(document, path)
        if value is not None:
            values[name] = value
    return values


def _from_env(environ: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    values = {}
    for name in YAML_KEYS:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None and value != "":
            values[name] = value
    return values


def _coerce(name: str, value: Any) -> Any:
    if name in INT_SETTINGS:
        if isinstance(value, bool):
            raise ConfigurationError(f"Setting '{name}' must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Setting '{name}' must be an integer, got {value!r}") from e
    return str(value)


def _warn_ignored_cache_settings(document: Mapping[str, Any], *environs: Mapping[str, Optional[str]]) -> None:
    for env_name, path in IGNORED_CACHE_KEYS.items():
        present = _dig(document, path) is not None or any(
            environ.get(f"{ENV_PREFIX}{env_name}") is not None for environ in environs
        )
        if present:
            logger.warning(f"Setting '{'.'.join(path)}' has no effect: response caching is not supported")


def load_settings(
    config_file: Optional[Path] = None,
    env_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ClientSettings:
    """Resolves ClientSettings from all configuration sources.

    Args:
        config_file: YAML file; defaults to ~/.creeble/config.yaml. Missing
            files are skipped.
        env_file: .env file; searched upwards from the cwd when None. It is
            read without modifying ``os.environ``.
        overrides: Highest-priority values keyed by setting name. ``None``
            values are ignored.

    Raises:
        ConfigurationError: Malformed YAML or values of the wrong type.
    """
    document = _read_yaml(Path(config_file) if config_file else DEFAULT_CONFIG_FILE)

    dotenv_path = Path(env_file) if env_file else find_dotenv_path()
    dotenv: Dict[str, Optional[str]] = {}
    if dotenv_path is not None and dotenv_path.is_file():
        dotenv = dict(dotenv_values(dotenv_path))
        logger.info(f"Loaded environment values from: {dotenv_path}")

    _warn_ignored_cache_settings(document, dotenv, os.environ)

    values: Dict[str, Any] = {}
    values.update(_from_yaml(document))
    values.update(_from_env(dotenv))
    values.update(_from_env(os.environ))
    values.update({name: value for name, value in (overrides or {}).items() if value is not None})

    unknown = set(values) - set(YAML_KEYS)
    if unknown:
        raise ConfigurationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

    settings = ClientSettings(**{name: _coerce(name, value) for name, value in values.items()})
    logger.debug(f"Resolved settings: {settings.masked()}")
    return settings

#!/usr/bin/env python3

"""
Host Link Configuration

Settings are composed in layers: dataclass defaults, an optional JSON file,
then HOSTLINK_* environment variables. The result is validated before it is
handed to the application.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from shared.functional import Result, Success, Failure, from_callable, from_optional, validate_type

from .connection import BackoffPolicy, build_client_id

logger = logging.getLogger(__name__)

ENV_PREFIX = "HOSTLINK_"

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


@dataclass
class HostLinkConfig:
    """Host link settings with default values"""
    # Relay settings
    relay_url: str = "ws://localhost:3010/relay"
    token: str = ""

    # Identity
    group_id: str = "local"
    caller_id: str = "host"

    # Connection lifecycle
    keepalive_interval: float = 30.0
    reconnect_base_delay: float = 1.0
    reconnect_growth_factor: float = 2.0
    reconnect_max_delay: float = 30.0
    reconnect_max_attempts: Optional[int] = None
    open_timeout: float = 5.0

    # Logging settings
    logging_level: str = "INFO"
    logging_file: Optional[str] = None

    # Storage for the file system routes
    storage_root: str = "./data"

    @property
    def client_id(self) -> str:
        return build_client_id(self.group_id, self.caller_id)

    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            base_delay=self.reconnect_base_delay,
            growth_factor=self.reconnect_growth_factor,
            max_delay=self.reconnect_max_delay,
            max_attempts=self.reconnect_max_attempts
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'HostLinkConfig':
        """Create config from a mapping, using defaults for missing keys"""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {unknown}")

        settings = cls().to_dict()
        settings.update({key: value for key, value in data.items() if key in known})
        return cls(**settings)


# Field name -> (type the value must have, numeric fields accept ints too)
_FIELD_TYPES = {
    "relay_url": str,
    "token": str,
    "group_id": str,
    "caller_id": str,
    "keepalive_interval": (int, float),
    "reconnect_base_delay": (int, float),
    "reconnect_growth_factor": (int, float),
    "reconnect_max_delay": (int, float),
    "open_timeout": (int, float),
    "logging_level": str,
    "storage_root": str,
}


def _check_type(config: HostLinkConfig, name: str, expected) -> Result[Any, str]:
    value = getattr(config, name)
    if isinstance(expected, tuple):
        if isinstance(value, bool) or not isinstance(value, expected):
            return Failure(f"Field '{name}' must be a number, got {type(value).__name__}")
        return Success(value)
    return validate_type(value, expected, name)


def validate_config(config: HostLinkConfig) -> Result[HostLinkConfig, str]:
    """Validate configuration values"""
    for name, expected in _FIELD_TYPES.items():
        checked = _check_type(config, name, expected)
        if checked.is_failure():
            return Failure(checked.error)

    if not config.relay_url.startswith(('ws://', 'wss://')):
        return Failure(f"Relay URL must start with 'ws://' or 'wss://': {config.relay_url}")

    if not config.group_id or not config.caller_id:
        return Failure("Both group_id and caller_id must be non-empty")

    for name in ("keepalive_interval", "reconnect_base_delay", "reconnect_max_delay", "open_timeout"):
        if getattr(config, name) <= 0:
            return Failure(f"{name} must be positive")

    if config.reconnect_growth_factor < 1:
        return Failure("reconnect_growth_factor must be at least 1")

    if config.reconnect_max_delay < config.reconnect_base_delay:
        return Failure("reconnect_max_delay must not be smaller than reconnect_base_delay")

    if config.reconnect_max_attempts is not None:
        if isinstance(config.reconnect_max_attempts, bool) or not isinstance(config.reconnect_max_attempts, int):
            return Failure("reconnect_max_attempts must be an integer or null")
        if config.reconnect_max_attempts < 0:
            return Failure("reconnect_max_attempts must not be negative")

    if config.logging_level not in VALID_LOG_LEVELS:
        return Failure(f"Invalid logging level '{config.logging_level}', must be one of: {VALID_LOG_LEVELS}")

    return Success(config)


def _coerce_env_value(name: str, raw: str) -> Any:
    """Convert an environment string to the type of the named field"""
    default = getattr(HostLinkConfig(), name)

    if name == "reconnect_max_attempts":
        return None if raw.strip().lower() in ("", "none", "null") else int(raw)
    if name == "logging_file":
        return raw or None
    if isinstance(default, float):
        return float(raw)
    return raw


def env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    """HOSTLINK_<FIELD> variables mapped onto config field names"""
    overrides = {}
    for f in fields(HostLinkConfig):
        key = f"{ENV_PREFIX}{f.name.upper()}"
        if key in env:
            overrides[f.name] = _coerce_env_value(f.name, env[key])
    if overrides:
        logger.debug(f"Environment overrides: {sorted(overrides)}")
    return overrides


def read_config_file(path: Path) -> Result[Dict[str, Any], Exception]:
    def _read():
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a JSON object")
        return data

    return from_callable(_read)


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Result[HostLinkConfig, Exception]:
    """
    Load configuration from defaults, an optional JSON file and the environment

    A missing file is not an error (defaults apply); an unreadable or
    malformed file is. Invalid values are reported as a ValueError.
    """
    env = os.environ if env is None else env
    data: Dict[str, Any] = {}

    if path:
        config_path = Path(path)
        if config_path.exists():
            file_result = read_config_file(config_path)
            if file_result.is_failure():
                logger.error(f"Failed to read config file {config_path}: {file_result.error}")
                return Failure(file_result.error)
            data.update(file_result.value)
            logger.info(f"Loaded config file {config_path}")
        else:
            logger.info(f"Config file {config_path} doesn't exist, using defaults")

    overrides = from_callable(lambda: env_overrides(env))
    if overrides.is_failure():
        return Failure(ValueError(f"Invalid environment override: {overrides.error}"))
    data.update(overrides.value)

    config_result = from_callable(lambda: HostLinkConfig.from_dict(data))
    if config_result.is_failure():
        return Failure(config_result.error)

    validated = validate_config(config_result.value)
    if validated.is_failure():
        logger.error(f"Invalid configuration: {validated.error}")
        return Failure(ValueError(validated.error))

    return Success(validated.value)


def require_token(config: HostLinkConfig) -> Result[str, str]:
    """The auth token, or a failure explaining that none is configured"""
    return from_optional(config.token or None, f"No relay token configured (set {ENV_PREFIX}TOKEN or 'token')")

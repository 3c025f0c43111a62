"""
LoadMock Configuration

Dataclass-based settings for mock servers and the dispatch bridge, loadable
from dictionaries, YAML files and LOADMOCK_* environment variables.

Example YAML:

    host: 127.0.0.1
    log_level: debug
    shutdown_timeout: 2.5
    fallback_status: 404
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from uvicorn.config import LOG_LEVELS

from .routing.pipeline import DEFAULT_ERROR_BODY, DEFAULT_NOT_FOUND_BODY


ENV_PREFIX = 'LOADMOCK_'

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off', ''}


@dataclass
class MockConfig:
    """Configuration for mock server and dispatch behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 0  # 0 = pick a free port
    log_level: str = "warning"
    access_log: bool = False

    # Lifecycle
    startup_timeout: float = 5.0  # seconds to wait for the listener to come up
    shutdown_timeout: float = 1.0  # grace period for in-flight requests on stop

    # Handler execution
    sync: bool = False  # run handlers on the server event loop, one at a time

    # Fallback behavior
    fallback_status: int = 404
    fallback_body: str = DEFAULT_NOT_FOUND_BODY
    error_status: int = 500
    error_body: str = DEFAULT_ERROR_BODY

    # Dispatch history
    history_limit: int = 100  # outbound calls kept per client (0 = none)

    def __post_init__(self):
        level = str(self.log_level).strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level {self.log_level!r}, expected one of: {', '.join(LOG_LEVELS)}")
        self.log_level = level

    @property
    def logging_level(self) -> int:
        """Numeric level for the loadmock loggers (uvicorn's table, 'trace' included)."""
        return LOG_LEVELS[self.log_level]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'MockConfig':
        """
        Create config from a dictionary, ignoring unknown keys.

        Raises:
            ValueError: If a value cannot be converted to the field's type
        """
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            if key in known:
                values[key] = _coerce(key, value, type(known[key].default))
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'MockConfig':
        """Load config from a YAML file."""
        with open(yaml_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {yaml_path}, got {type(data).__name__}")

        # Allow the settings to live under a top-level 'loadmock' key
        return cls.from_dict(data.get('loadmock', data))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, base: Optional['MockConfig'] = None) -> 'MockConfig':
        """
        Overlay LOADMOCK_* environment variables on a base config.

        Example:
            LOADMOCK_LOG_LEVEL=debug LOADMOCK_SHUTDOWN_TIMEOUT=3 python script.py
        """
        environ = os.environ if environ is None else environ
        base = base or cls()

        overrides = {}
        for f in fields(cls):
            env_name = ENV_PREFIX + f.name.upper()
            if env_name in environ:
                overrides[f.name] = _coerce(f.name, environ[env_name], type(f.default))

        return replace(base, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class MockOptions:
    """Per-registration flags accepted by mock()."""

    sync: bool = False
    skip: bool = False

    @classmethod
    def from_value(cls, value: Union['MockOptions', Mapping[str, Any], None]) -> 'MockOptions':
        """Build options from a MockOptions, a dict like {'sync': True}, or None."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls(sync=bool(value.get('sync', False)), skip=bool(value.get('skip', False)))


def _coerce(name: str, value: Any, target: type) -> Any:
    """Convert a raw config value to the type of the field's default."""
    if target is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"Invalid boolean for {name}: {value!r}")

    try:
        return target(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {name}: {value!r}") from e

"""
Hashring Watcher Configuration

Defaults match the command-line flags. Override with environment variables
(``HASHRING_WATCHER_<FIELD>``), a YAML file, or flags, in that order.
"""

import math
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from hashring_watcher.errors import ConfigurationError

ENV_PREFIX = "HASHRING_WATCHER_"
SCHEMES = ("http", "https")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_optional_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "file": _parse_optional_str,
    "directory": _parse_optional_str,
    "owner": str,
    "endpoint_scheme": str,
    "endpoint_timeout": float,
    "endpoint_port_offset": int,
    "interval": float,
    "schedule": _parse_bool,
    "verbose": _parse_bool,
}


@dataclass(frozen=True)
class WatcherConfig:
    """Process configuration consumed by the reconciliation core."""

    # Exactly one of file or directory
    file: Optional[str] = None
    directory: Optional[str] = None

    # Generated files
    owner: str = "thanos"

    # Readiness probes
    endpoint_scheme: str = "http"
    endpoint_timeout: float = 5.0
    endpoint_port_offset: int = 1

    # Scheduler
    interval: float = 10.0
    schedule: bool = False

    verbose: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WatcherConfig":
        """Build a configuration from ``HASHRING_WATCHER_*`` variables."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            value = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if value is not None:
                overrides[f.name] = value
        return cls().merge(overrides)

    def merge(self, overrides: Mapping[str, Any]) -> "WatcherConfig":
        """Return a copy with non-None overrides applied.

        Keys may use dashes or underscores.
        """
        updates = {}
        for key, value in overrides.items():
            name = key.replace("-", "_")
            if name not in _CONVERTERS:
                raise ConfigurationError(f"Unknown configuration key: {key}")
            if value is None:
                continue
            try:
                updates[name] = _CONVERTERS[name](value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for {key}: {e}") from e
        return replace(self, **updates)

    def merge_yaml(self, path: str | Path) -> "WatcherConfig":
        """Return a copy with the settings of a YAML file applied."""
        import yaml

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Unable to read config file {path}: {e}", path) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Unable to parse config file {path}: {e}", path) from e

        if data is None:
            return self
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping", path)
        return self.merge(data)

    def validate(self) -> None:
        """Check startup invariants. Raises ConfigurationError."""
        if bool(self.file) == bool(self.directory):
            raise ConfigurationError(
                "Either '--directory' or '--file' argument should be set. (mutually exclusive)"
            )
        if self.endpoint_scheme not in SCHEMES:
            raise ConfigurationError(
                f"'--endpoint-scheme {self.endpoint_scheme}' must be one of {', '.join(SCHEMES)}"
            )
        if not math.isfinite(self.endpoint_timeout) or self.endpoint_timeout <= 0:
            raise ConfigurationError(
                f"'--endpoint-timeout {self.endpoint_timeout:g}' must be greater than 0"
            )
        if not math.isfinite(self.interval) or self.interval <= self.endpoint_timeout:
            raise ConfigurationError(
                f"'--interval {self.interval:g}' must be greater than "
                f"'--endpoint-timeout {self.endpoint_timeout:g}'"
            )

"""Error types raised while processing hashring files."""

from pathlib import Path


class HashringWatcherError(Exception):
    """Base error for hashring processing."""

    def __init__(self, message: str, path: str | Path | None = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


class SourceReadError(HashringWatcherError):
    """Hashring definition file is missing or unreadable."""


class DecodeError(HashringWatcherError):
    """Hashring definition file content is malformed."""


class WriteError(HashringWatcherError):
    """Generated hashring file could not be updated."""


class OwnershipError(WriteError):
    """Owner of the generated file could not be resolved."""


class ConfigurationError(HashringWatcherError):
    """Invalid process configuration, fatal at startup."""

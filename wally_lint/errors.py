"""Error taxonomy for wally-lint.

Only configuration and registry-resolution problems are exceptions. Parse
failures and indeterminate lookups are plain values so validation can skip
work instead of unwinding.
"""

from __future__ import annotations


class WallyLintError(Exception):
    """Base class for all wally-lint errors."""


class ConfigError(WallyLintError):
    """A configuration file could not be read or has the wrong shape."""


class RegistryError(WallyLintError):
    """Base class for registry errors."""


class UnsupportedRegistryError(RegistryError):
    """The registry address is not a GitHub-hosted index."""


class RegistryFetchError(RegistryError):
    """A tree or blob request did not complete with a usable response."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status

    @property
    def rate_limited(self) -> bool:
        return self.status in (403, 429)

    @property
    def not_found(self) -> bool:
        return self.status == 404

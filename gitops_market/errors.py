"""Exceptions raised by the pattern marketplace.

Every error derives from :class:`MarketplaceError` so callers (the CLI in
particular) can catch one type. The subclasses map onto the failure kinds the
marketplace distinguishes:

- configuration errors: a registry or pattern is missing required fields
- not-found errors: unknown registry, unknown pattern, pattern not installed
- transport errors: HTTP failure, non-200 status, unreadable local file
- validation errors: schema or supplied-config violations, always aggregated
- state-persistence errors: the installed-state file could not be written
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for all marketplace errors."""


class RegistryConfigError(MarketplaceError):
    """A registry definition is incomplete, duplicated, or disabled."""


class NotFoundError(MarketplaceError):
    """Something the caller named does not exist."""


class RegistryNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"registry '{name}' not found")
        self.name = name


class PatternNotFoundError(NotFoundError):
    def __init__(self, name: str, detail: str = "not found in any registry"):
        super().__init__(f"pattern '{name}' {detail}")
        self.name = name


class NotInstalledError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"pattern '{name}' is not installed")
        self.name = name


class TransportError(MarketplaceError):
    """Fetching an index or pattern failed.

    Attributes:
        registry: Name of the registry being read.
        location: URL or filesystem path that failed.
    """

    def __init__(self, message: str, registry: str = "", location: str = ""):
        super().__init__(message)
        self.registry = registry
        self.location = location


class _IssuesError(MarketplaceError):
    prefix = "validation failed"

    def __init__(self, issues: list[str]):
        self.issues = list(issues)
        super().__init__(f"{self.prefix}: {'; '.join(self.issues)}")


class PatternValidationError(_IssuesError):
    """A pattern definition violates the schema. ``issues`` lists every violation."""

    prefix = "pattern validation failed"


class ConfigValidationError(_IssuesError):
    """Supplied configuration violates a pattern's config schema."""

    prefix = "config validation failed"


class DependencyError(MarketplaceError):
    """A required dependency could not be installed."""


class StatePersistenceError(MarketplaceError):
    """The installed-state file could not be read or written."""


__all__ = [
    "ConfigValidationError",
    "DependencyError",
    "MarketplaceError",
    "NotFoundError",
    "NotInstalledError",
    "PatternNotFoundError",
    "PatternValidationError",
    "RegistryConfigError",
    "RegistryNotFoundError",
    "StatePersistenceError",
    "TransportError",
]

"""Error taxonomy shared by the session, the profile store and the CLI."""

from __future__ import annotations


class PgStatsError(RuntimeError):
    """Base class for recoverable pgstats failures."""


class NoActiveConnection(PgStatsError):
    """Raised when an operation needs a live connection and none is held."""

    def __init__(self, message: str = "No active database connection.") -> None:
        super().__init__(message)


class QueryFailed(PgStatsError):
    """Raised when the server rejects a query or the connection drops mid-query."""


class StoreUnavailable(PgStatsError):
    """Raised when the profile store cannot be opened or parsed."""


class DuplicateName(PgStatsError):
    """Raised when saving a profile whose name is already stored."""

    def __init__(self, name: str) -> None:
        super().__init__(f"A connection named '{name}' already exists.")
        self.name = name


class NotFound(PgStatsError):
    """Raised when no stored profile matches the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No saved connection named '{name}'.")
        self.name = name


class StartupParameterMissing(PgStatsError):
    """Raised when a required command line parameter was not supplied."""


__all__ = [
    "DuplicateName",
    "NoActiveConnection",
    "NotFound",
    "PgStatsError",
    "QueryFailed",
    "StartupParameterMissing",
    "StoreUnavailable",
]

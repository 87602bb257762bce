"""Shared dataclasses used across session/store/REPL modules."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import NamedTuple

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5432
DEFAULT_DBNAME = "postgres"


@dataclass(frozen=True, slots=True)
class ConnectionParams:
    """Parameters used to open a session; the password is never persisted."""

    host: str = DEFAULT_HOST
    dbname: str = DEFAULT_DBNAME
    user: str = ""
    port: str = str(DEFAULT_PORT)
    password: str = ""

    def with_password(self, password: str) -> ConnectionParams:
        """Return a copy carrying the given password."""

        return replace(self, password=password)

    def __repr__(self) -> str:
        masked = "***" if self.password else ""
        return (
            f"ConnectionParams(host={self.host!r}, dbname={self.dbname!r}, "
            f"user={self.user!r}, port={self.port!r}, password={masked!r})"
        )


class ExtensionInfo(NamedTuple):
    """Installed extension whose version lags (or leads) the default."""

    name: str
    installed_version: str
    default_version: str


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Rows returned by an ad-hoc query."""

    columns: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]
    status: str

    @property
    def row_count(self) -> int:
        return len(self.rows)


__all__ = [
    "ConnectionParams",
    "DEFAULT_DBNAME",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "ExtensionInfo",
    "QueryResult",
]

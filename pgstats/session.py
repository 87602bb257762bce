"""Database session: one optional live connection plus the parameters behind it."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Coroutine, Iterable, TypeVar

import asyncpg

from .errors import NoActiveConnection, QueryFailed
from .models import DEFAULT_PORT, ConnectionParams, ExtensionInfo, QueryResult

LOG = logging.getLogger(__name__)

T = TypeVar("T")

_ROW_RETURNING = {"select", "with", "show", "values", "table", "explain"}


class Session:
    """Blocking wrapper around an asyncpg connection.

    The session owns a private event loop and drives every driver call to
    completion on the calling thread. Connection failures never raise; they
    leave the session disconnected and are recorded in `last_error`.
    """

    _VERSION_QUERY = "SELECT version() AS version"

    _UPTIME_QUERY = """
        SELECT date_trunc('second', current_timestamp - pg_postmaster_start_time()) AS uptime
    """

    _TABLES_QUERY = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = 'public'
        ORDER BY table_name
    """

    _EXTENSIONS_QUERY = """
        SELECT name, installed_version, default_version
        FROM pg_available_extensions
        WHERE installed_version IS NOT NULL
        AND default_version IS NOT NULL
        AND installed_version != default_version
        ORDER BY name
    """

    _PING_QUERY = "SELECT 1"

    def __init__(
        self,
        params: ConnectionParams,
        *,
        connect_timeout: float = 5.0,
        autoconnect: bool = True,
    ) -> None:
        self._params = params
        self._connect_timeout = connect_timeout
        self._loop = asyncio.new_event_loop()
        self._conn: asyncpg.Connection | None = None
        self.last_error: str | None = None
        if autoconnect:
            self.connect()

    @property
    def params(self) -> ConnectionParams:
        """Parameters used for the current (or next) connection attempt."""

        return self._params

    @property
    def connected(self) -> bool:
        """Whether a connection handle is currently held."""

        return self._conn is not None

    def replace_params(self, params: ConnectionParams) -> None:
        """Swap connection parameters; call `connect()` to apply them."""

        self._params = params

    def connect(self) -> bool:
        """(Re)open the connection, returning whether it succeeded."""

        self._drop_connection()
        kwargs = self._connect_kwargs()
        context = {"host": kwargs["host"], "port": kwargs["port"], "database": kwargs["database"]}
        try:
            self._conn = self._run(asyncpg.connect(**kwargs))
        except Exception as exc:
            self._conn = None
            self.last_error = str(exc) or exc.__class__.__name__
            LOG.warning("Connection attempt failed", extra={**context, "error": self.last_error})
            return False
        self.last_error = None
        LOG.info("Connected", extra=context)
        return True

    def check_status(self, timeout: float = 3.0) -> bool:
        """Ping the live connection; advisory only."""

        conn = self._conn
        if conn is None or conn.is_closed():
            return False
        try:
            self._run(asyncio.wait_for(conn.fetchval(self._PING_QUERY), timeout))
        except Exception as exc:
            LOG.warning("Status check failed", extra={"error": str(exc) or exc.__class__.__name__})
            return False
        return True

    def version(self) -> str:
        rows = self._fetch(self._VERSION_QUERY)
        if not rows:
            raise QueryFailed("Server returned no version row.")
        return str(rows[0]["version"])

    def uptime(self) -> timedelta:
        """Time since the postmaster started, truncated to whole seconds."""

        rows = self._fetch(self._UPTIME_QUERY)
        if not rows or not isinstance(rows[0]["uptime"], timedelta):
            raise QueryFailed("Server returned no uptime value.")
        return timedelta(seconds=int(rows[0]["uptime"].total_seconds()))

    def list_public_tables(self) -> tuple[str, ...]:
        rows = self._fetch(self._TABLES_QUERY)
        return tuple(str(row["table_name"]) for row in rows)

    def list_extensions(self) -> tuple[ExtensionInfo, ...]:
        """Installed extensions whose installed version differs from the default."""

        rows = self._fetch(self._EXTENSIONS_QUERY)
        return tuple(
            ExtensionInfo(
                name=str(row["name"]),
                installed_version=str(row["installed_version"]),
                default_version=str(row["default_version"]),
            )
            for row in rows
        )

    def custom_query(self, text: str) -> QueryResult:
        """Run caller-supplied SQL.

        Row values are passed through untouched; their types depend entirely
        on the statement, so callers should render them generically.
        """

        statement = text.strip()
        if not statement:
            raise QueryFailed("Provide SQL to execute.")
        conn = self._require_connection()
        try:
            if _returns_rows(statement):
                records = self._run(conn.fetch(statement))
                columns, rows = _records_to_rows(records)
                return QueryResult(columns=columns, rows=rows, status=f"{len(rows)} row(s)")
            status = self._run(conn.execute(statement))
        except Exception as exc:
            raise QueryFailed(f"Query failed: {exc}") from exc
        return QueryResult(columns=(), rows=(), status=str(status))

    def close(self) -> None:
        """Release the connection handle and the private event loop."""

        self._drop_connection()
        if not self._loop.is_closed():
            self._loop.close()

    def _require_connection(self) -> asyncpg.Connection:
        if self._conn is None:
            raise NoActiveConnection()
        return self._conn

    def _fetch(self, query: str) -> list[Any]:
        conn = self._require_connection()
        try:
            return self._run(conn.fetch(query))
        except Exception as exc:
            raise QueryFailed(f"Query failed: {exc}") from exc

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        return self._loop.run_until_complete(coro)

    def _drop_connection(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None or conn.is_closed():
            return
        try:
            self._run(conn.close())
        except Exception:  # pragma: no cover - best effort cleanup
            LOG.debug("Ignoring error while closing connection", exc_info=True)

    def _connect_kwargs(self) -> dict[str, object]:
        params = self._params
        kwargs: dict[str, object] = {
            "host": params.host or "localhost",
            "port": self._resolve_port(),
            "database": params.dbname,
            "user": params.user,
            "timeout": self._connect_timeout,
        }
        if params.password:
            kwargs["password"] = params.password
        return kwargs

    def _resolve_port(self) -> int:
        raw = self._params.port.strip()
        if not raw:
            return DEFAULT_PORT
        try:
            port = int(raw)
        except ValueError:
            port = 0
        if not 0 < port <= 65535:
            LOG.warning("Could not parse port, using default", extra={"port": raw, "default": DEFAULT_PORT})
            return DEFAULT_PORT
        return port


def _returns_rows(statement: str) -> bool:
    token = statement.lstrip().split(None, 1)
    if not token:
        return False
    return token[0].lower() in _ROW_RETURNING


def _records_to_rows(records: Iterable[Any]) -> tuple[tuple[str, ...], tuple[tuple[object, ...], ...]]:
    rows: list[tuple[object, ...]] = []
    columns: tuple[str, ...] = ()
    for record in records:
        if not hasattr(record, "keys"):
            record = dict(enumerate(record))
        if not columns:
            columns = tuple(str(key) for key in record.keys())
        rows.append(tuple(record.values()))
    return columns, tuple(rows)


__all__ = ["Session"]

"""Tests for the blocking database session."""

from __future__ import annotations

import logging
import time
from datetime import timedelta

import pytest

from pgstats.errors import NoActiveConnection, QueryFailed
from pgstats.models import ConnectionParams, ExtensionInfo


def test_connect_holds_handle_and_passes_parameters(driver, params, make_session) -> None:
    session = make_session(params, connect_timeout=2.5)

    assert session.connected is True
    assert session.last_error is None
    assert driver.calls == [
        {
            "host": "db1",
            "port": 5432,
            "database": "app",
            "user": "alice",
            "timeout": 2.5,
            "password": "secret",
        }
    ]


def test_empty_password_is_not_sent(driver, make_session) -> None:
    make_session(ConnectionParams(host="db1", dbname="app", user="alice"))

    assert "password" not in driver.calls[0]


def test_unreachable_host_leaves_session_disconnected(driver, params, make_session) -> None:
    driver.error = OSError("Connection refused")

    session = make_session(params)

    assert session.connected is False
    assert session.last_error == "Connection refused"


def test_invalid_port_falls_back_to_default(driver, make_session, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="pgstats.session")

    make_session(ConnectionParams(user="alice", port="not-a-port"))
    make_session(ConnectionParams(user="alice", port="70000"))
    make_session(ConnectionParams(user="alice", port=""))

    assert [call["port"] for call in driver.calls] == [5432, 5432, 5432]
    assert sum("Could not parse port" in record.getMessage() for record in caplog.records) == 2


def test_queries_require_a_connection(driver, params, make_session) -> None:
    session = make_session(params, autoconnect=False)

    with pytest.raises(NoActiveConnection):
        session.version()
    with pytest.raises(NoActiveConnection):
        session.uptime()
    with pytest.raises(NoActiveConnection):
        session.list_public_tables()
    with pytest.raises(NoActiveConnection):
        session.list_extensions()
    with pytest.raises(NoActiveConnection):
        session.custom_query("SELECT 1")
    assert driver.calls == []


def test_version_returns_server_string(driver, params, make_session) -> None:
    driver.responses = {"version()": [{"version": "PostgreSQL 16.2 on x86_64"}]}
    session = make_session(params)

    assert session.version() == "PostgreSQL 16.2 on x86_64"


def test_uptime_is_truncated_to_whole_seconds(driver, params, make_session) -> None:
    driver.responses = {"pg_postmaster_start_time": [{"uptime": timedelta(days=2, seconds=65, microseconds=900)}]}
    session = make_session(params)

    assert session.uptime() == timedelta(days=2, seconds=65)


def test_list_public_tables(driver, params, make_session) -> None:
    driver.responses = {"information_schema.tables": [{"table_name": "accounts"}, {"table_name": "orders"}]}
    session = make_session(params)

    assert session.list_public_tables() == ("accounts", "orders")
    assert "table_schema = 'public'" in driver.connections[0].queries[-1]


def test_list_extensions_returns_version_mismatches(driver, params, make_session) -> None:
    driver.responses = {
        "pg_available_extensions": [
            {"name": "postgis", "installed_version": "3.3.2", "default_version": "3.4.0"},
        ]
    }
    session = make_session(params)

    assert session.list_extensions() == (ExtensionInfo("postgis", "3.3.2", "3.4.0"),)


def test_server_errors_surface_as_query_failed(driver, params, make_session) -> None:
    session = make_session(params)
    boom = RuntimeError("connection was closed in the middle of operation")
    driver.connections[0].error = boom

    with pytest.raises(QueryFailed) as excinfo:
        session.version()

    assert excinfo.value.__cause__ is boom
    assert session.connected is True


def test_custom_query_returns_rows_of_any_shape(driver, params, make_session) -> None:
    driver.responses = {"FROM accounts": [{"id": 1, "tags": ["a", "b"], "note": None}]}
    session = make_session(params)

    result = session.custom_query("  SELECT * FROM accounts ")

    assert result.columns == ("id", "tags", "note")
    assert result.rows == ((1, ["a", "b"], None),)
    assert result.row_count == 1
    assert result.status == "1 row(s)"


def test_custom_query_reports_status_for_writes(driver, params, make_session) -> None:
    session = make_session(params)

    result = session.custom_query("INSERT INTO demo VALUES (1)")

    assert result.columns == ()
    assert result.rows == ()
    assert result.status == "INSERT 0 1"


def test_custom_query_rejects_empty_sql(driver, params, make_session) -> None:
    session = make_session(params)

    with pytest.raises(QueryFailed):
        session.custom_query("   ")
    assert driver.connections[0].queries == []


def test_check_status_is_advisory(driver, params, make_session) -> None:
    session = make_session(params)

    assert session.check_status(timeout=1) is True
    driver.connections[0].error = OSError("gone")
    assert session.check_status(timeout=1) is False
    assert session.connected is True


def test_check_status_gives_up_after_timeout(driver, params, make_session) -> None:
    session = make_session(params)
    driver.connections[0].ping_delay = 30

    started = time.perf_counter()
    assert session.check_status(timeout=0.2) is False
    elapsed = time.perf_counter() - started

    assert elapsed < 5
    assert session.connected is True


def test_check_status_without_connection(driver, params, make_session) -> None:
    session = make_session(params, autoconnect=False)

    assert session.check_status(timeout=1) is False


def test_reconnect_closes_previous_handle_and_uses_new_params(driver, params, make_session) -> None:
    session = make_session(params)
    first = driver.connections[0]

    session.replace_params(ConnectionParams(host="db2", dbname="reports", user="bob", port="6543"))
    assert session.connect() is True

    assert first.closed is True
    assert driver.calls[-1]["host"] == "db2"
    assert driver.calls[-1]["port"] == 6543
    assert driver.calls[-1]["database"] == "reports"


def test_failed_reconnect_drops_previous_handle(driver, params, make_session) -> None:
    session = make_session(params)
    driver.error = OSError("timeout")

    assert session.connect() is False
    assert session.connected is False
    with pytest.raises(NoActiveConnection):
        session.version()


def test_params_repr_masks_password(params) -> None:
    assert "secret" not in repr(params)

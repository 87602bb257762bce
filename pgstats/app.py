"""Command line entry point for pgstats."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from rich.console import Console

from . import __version__
from .config import AppConfig, load_config
from .errors import PgStatsError, StartupParameterMissing
from .models import DEFAULT_DBNAME, DEFAULT_HOST, DEFAULT_PORT, ConnectionParams
from .repl import Repl
from .session import Session
from .store import ProfileStore

LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgstats",
        description="View basic statistics for a PostgreSQL database.",
    )
    parser.add_argument("-H", "--host", help=f"Database host (default: {DEFAULT_HOST})")
    parser.add_argument("-U", "--user", help="Database user; required unless --load is given")
    parser.add_argument("-d", "--dbname", help="Database name (default: the user name)")
    parser.add_argument("-p", "--port", type=int, help=f"Database port (default: {DEFAULT_PORT})")
    parser.add_argument("-W", "--password", help="Database password")
    parser.add_argument("-l", "--load", metavar="NAME", help="Connect using a saved connection profile")
    parser.add_argument("--store", metavar="PATH", help="Saved connection file (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def params_from_args(args: argparse.Namespace) -> ConnectionParams:
    """Resolve startup parameters, applying the documented defaults."""

    if not args.user:
        raise StartupParameterMissing("Need to specify a username (-U/--user).")
    return ConnectionParams(
        host=args.host or DEFAULT_HOST,
        dbname=args.dbname or args.user or DEFAULT_DBNAME,
        user=args.user,
        port=str(args.port if args.port is not None else DEFAULT_PORT),
        password=args.password or "",
    )


def resolve_params(args: argparse.Namespace, store: ProfileStore) -> ConnectionParams:
    """Startup parameters from a saved profile (with --load) or from flags."""

    if args.load:
        profile = store.load(args.load)
        LOG.info("Loaded saved connection", extra={"profile": profile.name})
        return profile.to_params(args.password or "")
    return params_from_args(args)


def configure_logging(config: AppConfig, *, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else config.logging_level()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the interactive client; returns the process exit status."""

    args = build_parser().parse_args(argv)
    config = load_config()
    if args.store:
        config = config.with_store_path(args.store)
    configure_logging(config, verbose=args.verbose)

    console = Console()
    errors = Console(stderr=True)
    store = ProfileStore(config.store_path)
    try:
        params = resolve_params(args, store)
    except PgStatsError as exc:
        errors.print(f"Error: {exc}", style="red", markup=False, highlight=False)
        return 1
    if args.load:
        console.print("Connection found, loading information.")

    session = Session(params, connect_timeout=config.connect_timeout)
    if not session.connected:
        errors.print(f"Connection error: {session.last_error}", style="red", markup=False, highlight=False)
    repl = Repl(
        session,
        store,
        console=console,
        error_console=errors,
        status_timeout=config.status_timeout,
    )
    try:
        repl.run()
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

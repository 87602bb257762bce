"""Numbered-menu loop dispatching to the session and the profile store."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Iterable

from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import __version__
from .errors import NotFound, PgStatsError
from .session import Session
from .store import ProfileStore

LOG = logging.getLogger(__name__)

Prompt = Callable[[str], str]


class MenuCommand(str, Enum):
    """Menu selections understood by the loop."""

    EXIT = "0"
    SAVE = "1"
    UPTIME = "2"
    VERSION = "3"
    TABLES = "4"
    EXTENSIONS = "5"
    CUSTOM_QUERY = "6"
    RECONNECT = "7"
    LOAD = "8"


MENU_LABELS: dict[MenuCommand, str] = {
    MenuCommand.EXIT: "Exit the program",
    MenuCommand.SAVE: "Save your connection information to a file",
    MenuCommand.UPTIME: "Get the uptime of your database",
    MenuCommand.VERSION: "Get the version of your database",
    MenuCommand.TABLES: "List all public tables in your database",
    MenuCommand.EXTENSIONS: "List installed extensions that differ from their default version",
    MenuCommand.CUSTOM_QUERY: "Run a custom query",
    MenuCommand.RECONNECT: "Attempt to re-establish the connection to the database",
    MenuCommand.LOAD: "Load a saved connection from the file",
}

BULLET = "◆"


class Repl:
    """Read a selection, run it, report the outcome, repeat until exit."""

    def __init__(
        self,
        session: Session,
        store: ProfileStore,
        *,
        console: Console | None = None,
        error_console: Console | None = None,
        read_line: Prompt | None = None,
        read_secret: Prompt | None = None,
        status_timeout: float = 3.0,
    ) -> None:
        self._session = session
        self._store = store
        self._console = console or Console()
        self._errors = error_console or Console(stderr=True)
        self._read_line = read_line or self._console.input
        self._read_secret = read_secret or (lambda prompt: self._console.input(prompt, password=True))
        self._status_timeout = status_timeout
        self._handlers: dict[MenuCommand, Callable[[], None]] = {
            MenuCommand.SAVE: self._save_connection,
            MenuCommand.UPTIME: self._show_uptime,
            MenuCommand.VERSION: self._show_version,
            MenuCommand.TABLES: self._show_tables,
            MenuCommand.EXTENSIONS: self._show_extensions,
            MenuCommand.CUSTOM_QUERY: self._run_custom_query,
            MenuCommand.RECONNECT: self._reconnect,
            MenuCommand.LOAD: self._load_connection,
        }

    def run(self) -> None:
        """Loop until the exit command (or end of input)."""

        self.show_welcome()
        self.show_menu()
        while True:
            self._print_status()
            try:
                selection = self._read_line("Please enter an option: ")
            except EOFError:
                self._console.print("Exiting...")
                return
            if not self.dispatch(selection):
                return

    def dispatch(self, selection: str) -> bool:
        """Handle one selection; returns False once the loop should stop."""

        try:
            command = MenuCommand(selection.strip())
        except ValueError:
            self.show_menu()
            return True
        if command is MenuCommand.EXIT:
            self._console.print("Exiting...")
            return False
        try:
            self._handlers[command]()
        except PgStatsError as exc:
            LOG.debug("Menu command failed", extra={"command": command.name, "error": str(exc)})
            self._report(str(exc))
        except EOFError:
            self._console.print("Exiting...")
            return False
        return True

    def show_welcome(self) -> None:
        self._console.print(
            f"[bold]pgstats {__version__}[/bold] - quick PostgreSQL statistics from the terminal",
            highlight=False,
        )

    def show_menu(self) -> None:
        self._console.print("Menu:", style="bold")
        for command, label in MENU_LABELS.items():
            self._console.print(f"  {command.value} - {label}", markup=False, highlight=False)

    def _print_status(self) -> None:
        if self._session.check_status(self._status_timeout):
            status = Text("Connected", style="bold green")
        else:
            status = Text("Not Connected", style="bold red")
        self._console.print(Text("Connection status: ").append(status))

    def _save_connection(self) -> None:
        name = self._read_line("Name for this connection: ").strip()
        if not name:
            self._report("Connection name cannot be empty.")
            return
        self._store.save(name, self._session.params)
        self._console.print("Successfully saved your connection.")

    def _show_uptime(self) -> None:
        self._console.print(f"Uptime: {self._session.uptime()}", highlight=False)

    def _show_version(self) -> None:
        self._console.print(f"Current running version: {self._session.version()}", markup=False, highlight=False)

    def _show_tables(self) -> None:
        tables = self._session.list_public_tables()
        self._console.print("Public tables:")
        self._print_bullets(tables)

    def _show_extensions(self) -> None:
        extensions = self._session.list_extensions()
        self._console.print("Installed extensions:")
        self._print_bullets(
            f"{ext.name} {ext.installed_version} (default {ext.default_version})" for ext in extensions
        )

    def _run_custom_query(self) -> None:
        sql = self._read_line("SQL: ")
        result = self._session.custom_query(sql)
        if result.columns:
            table = Table(show_lines=False)
            for column in result.columns:
                table.add_column(Text(column), overflow="fold")
            for row in result.rows:
                table.add_row(*(Text(_render_cell(value)) for value in row))
            self._console.print(table)
        self._console.print(result.status, markup=False, highlight=False)

    def _reconnect(self) -> None:
        if self._session.connect():
            self._console.print("Successfully connected.")
        else:
            self._report(f"Connection failed: {self._session.last_error}")

    def _load_connection(self) -> None:
        name = self._read_line("Connection name: ").strip()
        password = self._read_secret("Password: ")
        try:
            profile = self._store.load(name)
        except NotFound as exc:
            self._report(str(exc))
            self._print_known_profiles()
            return
        self._console.print(f"Connection found, loading '{profile.name}'.", markup=False, highlight=False)
        self._session.replace_params(profile.to_params(password.rstrip("\r\n")))
        self._reconnect()

    def _print_known_profiles(self) -> None:
        names = [profile.name for profile in self._store.profiles()]
        if names:
            self._console.print("Saved connections:")
            self._print_bullets(names)

    def _print_bullets(self, items: Iterable[str]) -> None:
        printed = False
        for item in items:
            self._console.print(f"\t{BULLET} {item}", markup=False, highlight=False)
            printed = True
        if not printed:
            self._console.print("\t(none)")

    def _report(self, message: str) -> None:
        self._errors.print(f"Error: {message}", style="red", markup=False, highlight=False)


def _render_cell(value: object) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    try:
        return str(value)
    except Exception:  # pragma: no cover - exotic driver types
        return f"<{type(value).__name__}>"


__all__ = ["MENU_LABELS", "MenuCommand", "Repl"]

"""JSON-backed store of named, password-free connection profiles."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import DuplicateName, NotFound, StoreUnavailable
from .models import ConnectionParams

LOG = logging.getLogger(__name__)


class ConnectionProfile(BaseModel):
    """One saved connection as it appears in the store file.

    Keys beyond the five known fields are kept so a rewrite does not lose them.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True, extra="allow")

    connection_name: str
    host: str
    port: str
    user: str
    dbname: str

    @property
    def name(self) -> str:
        return self.connection_name

    @classmethod
    def from_params(cls, name: str, params: ConnectionParams) -> ConnectionProfile:
        """Build a profile from session parameters, leaving the password behind."""

        return cls(
            connection_name=name,
            host=params.host,
            port=params.port,
            user=params.user,
            dbname=params.dbname,
        )

    def to_params(self, password: str = "") -> ConnectionParams:
        """Session parameters for this profile with a separately supplied password."""

        return ConnectionParams(
            host=self.host,
            dbname=self.dbname,
            user=self.user,
            port=self.port,
            password=password,
        )


class StoreDocument(BaseModel):
    """Top-level shape of the store file; unknown keys survive a rewrite."""

    model_config = ConfigDict(extra="allow")

    connections: list[ConnectionProfile] = Field(default_factory=list)


class ProfileStore:
    """Reads and rewrites the profile file as a whole document.

    The file must already exist and hold a JSON object before the first save.
    Saves check the full set of names before touching the file and replace it
    atomically, so a failed save leaves the previous document in place.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def profiles(self) -> tuple[ConnectionProfile, ...]:
        """All stored profiles in file order."""

        return tuple(self._read().connections)

    def save(self, name: str, params: ConnectionParams) -> ConnectionProfile:
        """Append a profile named `name`; fails on duplicates without writing."""

        document = self._read()
        if any(profile.connection_name == name for profile in document.connections):
            raise DuplicateName(name)
        profile = ConnectionProfile.from_params(name, params)
        document.connections.append(profile)
        self._write(document)
        LOG.info("Saved connection profile", extra={"profile": name, "path": str(self._path)})
        return profile

    def load(self, name: str) -> ConnectionProfile:
        """Return the profile whose name matches exactly."""

        for profile in self._read().connections:
            if profile.connection_name == name:
                return profile
        raise NotFound(name)

    def _read(self) -> StoreDocument:
        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            raise StoreUnavailable(f"Could not open {self._path}: {exc.strerror or exc}") from exc
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StoreUnavailable(f"{self._path} is not UTF-8 text: {exc.reason}") from exc
        try:
            return StoreDocument.model_validate(json.loads(text))
        except json.JSONDecodeError as exc:
            raise StoreUnavailable(f"{self._path} is not valid JSON: {exc}") from exc
        except ValidationError as exc:
            raise StoreUnavailable(f"{self._path} has an unexpected layout: {exc.error_count()} problem(s)") from exc

    def _write(self, document: StoreDocument) -> None:
        payload = json.dumps(document.model_dump(mode="json"), indent=2) + "\n"
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_path, stat.S_IMODE(self._path.stat().st_mode))
            os.replace(tmp_path, self._path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StoreUnavailable(f"Could not write {self._path}: {exc.strerror or exc}") from exc


__all__ = ["ConnectionProfile", "ProfileStore", "StoreDocument"]

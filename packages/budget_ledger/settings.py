"""Process settings: file locations, active statement period, recent files.

``Settings`` is an explicit object handed to the components that need it;
there is no module-level singleton. It is loaded once at startup with
:meth:`Settings.load` and written back by the caller with
:meth:`Settings.save` after each change.

Location: ``<home>/settings.json``. ``<home>`` is ``BUDGET_LEDGER_HOME`` when
set (absolute or relative), else ``~/.budget_ledger``.
"""

from __future__ import annotations

import contextlib
import json
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import StorageWriteError
from .logging_setup import get_logger
from .periods import canonical_period

_logger = get_logger("budget_ledger.settings")

_HOME_ENV = "BUDGET_LEDGER_HOME"
SETTINGS_FILENAME = "settings.json"
RECENT_FILES_LIMIT = 10

ArchiveLayout = Literal["folder", "suffix"]


def get_home() -> Path:
    root = os.getenv(_HOME_ENV)
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.home() / ".budget_ledger").resolve()


def default_settings_path() -> Path:
    return get_home() / SETTINGS_FILENAME


def _push_recent(items: list[str], value: str) -> list[str]:
    return [value, *(v for v in items if v != value)][:RECENT_FILES_LIMIT]


class Settings(BaseModel):
    """Key-value settings consumed by repositories and the statement lifecycle."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True, str_strip_whitespace=True)

    active_statement_period: str | None = None
    transaction_file_path: str | None = None
    projected_file_path: str | None = None
    archive_dir: str | None = None
    archive_layout: ArchiveLayout = "folder"
    owners: tuple[str, ...] = ("Josh", "Anna")
    joint_account: str = "Joint"
    recent_transaction_files: list[str] = Field(default_factory=list)
    recent_projected_files: list[str] = Field(default_factory=list)
    statement_periods: list[str] = Field(default_factory=list)
    statement_period_files: dict[str, str] = Field(default_factory=dict)
    last_view: str | None = None

    @field_validator("active_statement_period")
    @classmethod
    def _canonical_period(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return canonical_period(v)

    @field_validator("owners")
    @classmethod
    def _owners_non_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        names = tuple(n.strip() for n in v if n and n.strip())
        if not names or len(names) > 2:
            raise ValueError("owners must list one or two individual account names")
        return names

    # -- resolved paths -------------------------------------------------------

    def transaction_path(self) -> Path:
        if self.transaction_file_path:
            return Path(self.transaction_file_path).expanduser()
        return get_home() / "transactions.csv"

    def projected_path(self) -> Path:
        if self.projected_file_path:
            return Path(self.projected_file_path).expanduser()
        return get_home() / "projected.csv"

    def archive_root(self) -> Path:
        if self.archive_dir:
            return Path(self.archive_dir).expanduser()
        return self.transaction_path().parent / "archive"

    # -- mutators (caller saves) ---------------------------------------------

    def use_transaction_file(self, path: str | os.PathLike[str]) -> None:
        p = os.fspath(path)
        self.transaction_file_path = p
        self.recent_transaction_files = _push_recent(self.recent_transaction_files, p)

    def use_projected_file(self, path: str | os.PathLike[str]) -> None:
        p = os.fspath(path)
        self.projected_file_path = p
        self.recent_projected_files = _push_recent(self.recent_projected_files, p)

    def record_statement_period(self, period: str, archive_location: str | None = None) -> None:
        key = canonical_period(period)
        if key not in self.statement_periods:
            self.statement_periods = [*self.statement_periods, key]
        if archive_location:
            self.statement_period_files = {**self.statement_period_files, key: archive_location}

    # -- persistence ----------------------------------------------------------

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> Settings:
        """Load settings, returning defaults when the file is missing or corrupt."""

        p = Path(path) if path is not None else default_settings_path()
        if not p.exists():
            _logger.info("no settings at %s; using defaults", p)
            return cls()
        try:
            return cls.model_validate_json(p.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError):
            _logger.error("settings unreadable at %s; using defaults", p, exc_info=True)
            return cls()

    def save(self, path: str | os.PathLike[str] | None = None) -> Path:
        p = Path(path) if path is not None else default_settings_path()
        tmp = p.with_suffix(p.suffix + ".tmp")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True),
                encoding="utf-8",
            )
            os.replace(tmp, p)
        except OSError as exc:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise StorageWriteError(f"cannot save settings to {p}: {exc}") from exc
        _logger.debug("settings saved to %s", p)
        return p

    def snapshot_view(self) -> dict[str, object]:
        """Settings as carried in a workspace snapshot."""

        return self.model_dump(mode="json")


__all__ = [
    "ArchiveLayout",
    "Settings",
    "get_home",
    "default_settings_path",
    "SETTINGS_FILENAME",
]

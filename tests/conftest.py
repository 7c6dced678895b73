"""Pytest configuration for test isolation.

Settings, the default transaction/projected files and the default snapshot
directory all live under ``BUDGET_LEDGER_HOME`` (``~/.budget_ledger`` when
unset). To keep tests hermetic we point it at a per-test temporary directory
via an autouse fixture, and drop any log-level override from the environment.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from budget_ledger.repositories import projected_repository, transaction_repository


@pytest.fixture(autouse=True)
def _isolate_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test home so tests never share settings or data files."""

    home = tmp_path / "home"
    home.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("BUDGET_LEDGER_HOME", os.fspath(home))
    monkeypatch.delenv("BUDGET_LEDGER_LOG_LEVEL", raising=False)
    return home


@pytest.fixture
def home(_isolate_home: Path) -> Path:
    return _isolate_home


@pytest.fixture
def tx_repo(tmp_path: Path):
    return transaction_repository(tmp_path / "transactions.csv")


@pytest.fixture
def proj_repo(tmp_path: Path):
    return projected_repository(tmp_path / "projected.csv")


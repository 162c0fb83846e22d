"""Pytest configuration and shared fixtures.

Ensures the repository root is importable (so tests can import packages like
`cli`, `core`, `schemas` without an editable install), and provides an engine
backed by a temporary SQLite file with a controllable clock.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import structlog

# Make repo root importable for tests (avoid requiring `pip install -e .`).
_REPO_ROOT = Path(__file__).resolve().parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.engine import Engine  # noqa: E402
from core.settings import Settings  # noqa: E402


class TickingClock:
    """Clock that advances one second per call, starting at a fixed instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture(autouse=True)
def _reset_structlog():
    # CLI tests reconfigure structlog against CliRunner streams.
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "okapi.db"


@pytest.fixture
def engine(db_path: Path, clock: TickingClock):
    eng = Engine(Settings(db_path=db_path), clock=clock)
    try:
        yield eng
    finally:
        eng.close()

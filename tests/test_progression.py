from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import InvalidInput
from core.progression import ProgressionCalculator, level_threshold
from storage.record_store import RecordStore
from storage.repositories import UserProgressRepository


@pytest.fixture
def calc(tmp_path: Path):
    store = RecordStore(tmp_path / "progress.db")
    try:
        yield ProgressionCalculator(UserProgressRepository(store))
    finally:
        store.close()


def test_progress_is_created_lazily(calc: ProgressionCalculator) -> None:
    assert calc.repo.find_by_user_id("localUser") is None
    p = calc.get()
    assert (p.user_id, p.points, p.level) == ("localUser", 0, 1)
    assert calc.repo.find_by_user_id("localUser") == p


def test_threshold_curve() -> None:
    assert level_threshold(1) == 150
    assert level_threshold(2) == 300
    assert level_threshold(3, base_unit=10, multiplier=2) == 60


def test_award_accumulates_and_levels_once(calc: ProgressionCalculator) -> None:
    p = calc.award(100)
    assert (p.points, p.level) == (100, 1)
    p = calc.award(60)
    assert (p.points, p.level) == (160, 2)
    # One large award still moves a single level
    p = calc.award(1000)
    assert (p.points, p.level) == (1160, 3)
    assert calc.get() == p


def test_award_zero_never_levels(calc: ProgressionCalculator) -> None:
    calc.award(150)
    p = calc.award(0)
    assert p.level == 2
    p = calc.award(0)
    assert p.level == 2
    assert p.points == 150


def test_negative_award_rejected(calc: ProgressionCalculator) -> None:
    with pytest.raises(InvalidInput):
        calc.award(-5)
    assert calc.get().points == 0


def test_custom_user_and_curve(tmp_path: Path) -> None:
    store = RecordStore(tmp_path / "progress.db")
    try:
        calc = ProgressionCalculator(UserProgressRepository(store), user_id="alex", base_unit=10, multiplier=1)
        assert calc.award(10).level == 2
        assert calc.repo.find_by_user_id("localUser") is None
    finally:
        store.close()

"""Points and level accrual for the local user."""

from __future__ import annotations

import structlog

from core.errors import InvalidInput
from schemas.records import UserProgress
from storage.repositories import UserProgressRepository

logger = structlog.get_logger(__name__)

DEFAULT_USER_ID = "localUser"
BASE_UNIT = 100
LEVEL_MULTIPLIER = 1.5


def level_threshold(level: int, *, base_unit: int = BASE_UNIT, multiplier: float = LEVEL_MULTIPLIER) -> float:
    """Total points needed to leave ``level``."""
    return level * base_unit * multiplier


class ProgressionCalculator:
    """Folds awarded points into the singleton ``UserProgress`` record.

    Levelling is one step per award: a single large award that crosses
    several thresholds still raises the level by exactly one.
    """

    def __init__(
        self,
        repo: UserProgressRepository,
        *,
        user_id: str = DEFAULT_USER_ID,
        base_unit: int = BASE_UNIT,
        multiplier: float = LEVEL_MULTIPLIER,
    ) -> None:
        self.repo = repo
        self.user_id = user_id
        self.base_unit = base_unit
        self.multiplier = multiplier

    def get(self) -> UserProgress:
        """Return the progress record, creating it on first read."""
        progress = self.repo.find_by_user_id(self.user_id)
        if progress is None:
            progress = self.repo.save(UserProgress(user_id=self.user_id))
            logger.info("user_progress_initialized", user_id=self.user_id)
        return progress

    def award(self, points: int) -> UserProgress:
        if points < 0:
            raise InvalidInput(f"Cannot award a negative number of points: {points}")
        progress = self.get()
        total = progress.points + points
        level = progress.level
        threshold = level_threshold(level, base_unit=self.base_unit, multiplier=self.multiplier)
        if points > 0 and total >= threshold:
            level += 1
            logger.info("level_up", user_id=self.user_id, level=level, points=total)
        updated = progress.model_copy(update={"points": total, "level": level})
        return self.repo.save(updated)

"""Engine facade.

Opens the record store, wires the repositories into the lifecycle, recorder,
validator, progression calculator and timeline, and exposes the public
operations a caller (CLI or library user) needs.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from core.completion import CompletionRecorder, CompletionRequest, CompletionResult
from core.data_entry import DataEntryRequest, DataEntryResult, DataEntryValidator
from core.definitions import ActionDefinitionLifecycle
from core.progression import ProgressionCalculator
from core.settings import Settings
from projections.space_stats import SpaceStats, space_stats
from projections.timeline import TimelineAggregator
from schemas.actions import ActionDefinition, ActionDefinitionInput, ActionDefinitionUpdate
from schemas.records import DataEntryLog, Problem, Todo, UserProgress
from schemas.timeline import TimelineItem
from schemas.types import utc_now
from storage.record_store import RecordStore
from storage.repositories import (
    ActionDefinitionRepository,
    CompletionLogRepository,
    DataEntryLogRepository,
    ProblemRepository,
    TodoRepository,
    UserProgressRepository,
)

logger = structlog.get_logger(__name__)


class Engine:
    """Action & progression engine over a single SQLite store.

    Args:
        settings: Engine settings (database path, user id, level curve).
        clock: Time source for new records; injectable for tests.
    """

    def __init__(self, settings: Settings | None = None, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.settings = settings or Settings()
        self.store = RecordStore(Path(self.settings.db_path))

        self.definitions = ActionDefinitionRepository(self.store)
        self.completion_logs = CompletionLogRepository(self.store)
        self.data_entries = DataEntryLogRepository(self.store)
        self.user_progress = UserProgressRepository(self.store)
        self.problems = ProblemRepository(self.store)
        self.todos = TodoRepository(self.store)

        self.progression = ProgressionCalculator(
            self.user_progress,
            user_id=self.settings.user_id,
            base_unit=self.settings.level_base_unit,
            multiplier=self.settings.level_multiplier,
        )
        self.lifecycle = ActionDefinitionLifecycle(
            self.definitions, self.completion_logs, self.data_entries, clock=clock
        )
        self.recorder = CompletionRecorder(
            self.definitions, self.completion_logs, self.progression, clock=clock
        )
        self.validator = DataEntryValidator(
            self.definitions, self.data_entries, self.progression, clock=clock
        )
        self.timeline = TimelineAggregator(
            self.definitions, self.completion_logs, self.data_entries, self.problems, self.todos
        )

    # -----------------------------
    # Action definitions
    # -----------------------------

    def create_action_definition(self, data: ActionDefinitionInput) -> ActionDefinition:
        return self.lifecycle.create(data)

    def update_action_definition(self, data: ActionDefinitionUpdate) -> ActionDefinition:
        return self.lifecycle.update(data)

    def delete_action_definition(self, definition_id: str) -> None:
        self.lifecycle.delete(definition_id)

    def list_action_definitions(self, space_id: str) -> list[ActionDefinition]:
        return self.lifecycle.list_by_space(space_id)

    # -----------------------------
    # Activity
    # -----------------------------

    def record_completion(self, request: CompletionRequest) -> CompletionResult:
        return self.recorder.record(request)

    def submit_data_entry(self, request: DataEntryRequest) -> DataEntryResult:
        return self.validator.submit(request)

    def update_data_entry(self, entry_id: str, form_data: Mapping[str, Any]) -> DataEntryLog:
        return self.validator.update(entry_id, form_data)

    def save_problem(self, problem: Problem) -> Problem:
        return self.problems.save(problem)

    def save_todo(self, todo: Todo) -> Todo:
        return self.todos.save(todo)

    # -----------------------------
    # Views
    # -----------------------------

    def build_timeline(self, space_id: str, limit: int | None = None) -> list[TimelineItem]:
        return self.timeline.build(
            space_id, self.settings.timeline_limit if limit is None else limit
        )

    def space_stats(self, space_id: str) -> SpaceStats:
        return space_stats(space_id, self.completion_logs, self.data_entries)

    def get_progress(self) -> UserProgress:
        return self.progression.get()

    # -----------------------------
    # Maintenance
    # -----------------------------

    def clear_all_data(self) -> None:
        """Clear every collection, stopping at and re-raising the first failure."""
        repos = {
            "action_definitions": self.definitions,
            "completion_logs": self.completion_logs,
            "data_entry_logs": self.data_entries,
            "problems": self.problems,
            "todos": self.todos,
            "user_progress": self.user_progress,
        }
        for name, repo in repos.items():
            try:
                removed = repo.clear_all()
            except Exception:
                logger.exception("clear_all_failed", collection=name)
                raise
            logger.info("collection_cleared", collection=name, count=removed)

    def close(self) -> None:
        self.store.close()

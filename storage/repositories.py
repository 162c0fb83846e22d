"""Typed repositories over the record store.

Each repository owns one collection and converts between Pydantic models and
the JSON payloads the store persists.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from schemas.actions import ACTION_DEFINITION, ActionDefinition
from schemas.records import CompletionLog, DataEntryLog, Problem, Todo, UserProgress
from storage.record_store import Collection, RecordStore

M = TypeVar("M", bound=BaseModel)

ACTION_DEFINITIONS = "action_definitions"
COMPLETION_LOGS = "completion_logs"
DATA_ENTRY_LOGS = "data_entry_logs"
USER_PROGRESS = "user_progress"
PROBLEMS = "problems"
TODOS = "todos"


class _ModelRepository(Generic[M]):
    model: type[M]
    collection_name: str
    append_only: bool = False

    def __init__(self, store: RecordStore) -> None:
        self._col: Collection = store.collection(self.collection_name, append_only=self.append_only)

    def _load(self, payload: dict) -> M:
        return self.model.model_validate(payload)

    def find_by_id(self, record_id: str) -> M | None:
        payload = self._col.get(record_id)
        return self._load(payload) if payload is not None else None

    def find_by_space_id(self, space_id: str) -> list[M]:
        return [self._load(p) for p in self._col.by_space(space_id)]

    def find_all(self) -> list[M]:
        return [self._load(p) for p in self._col.all()]

    def delete(self, record_id: str) -> bool:
        return self._col.delete(record_id)

    def clear_all(self) -> int:
        return self._col.clear()


class ActionDefinitionRepository:
    """Action definitions, stored as their tagged-union JSON form."""

    def __init__(self, store: RecordStore) -> None:
        self._col = store.collection(ACTION_DEFINITIONS)

    def find_by_id(self, definition_id: str) -> ActionDefinition | None:
        payload = self._col.get(definition_id)
        return ACTION_DEFINITION.validate_python(payload) if payload is not None else None

    def find_by_space_id(self, space_id: str) -> list[ActionDefinition]:
        return [ACTION_DEFINITION.validate_python(p) for p in self._col.by_space(space_id)]

    def save(self, definition: ActionDefinition) -> ActionDefinition:
        self._col.upsert(
            definition.id, definition.model_dump(mode="json"), space_id=definition.space_id
        )
        return definition

    def delete(self, definition_id: str) -> bool:
        return self._col.delete(definition_id)

    def clear_all(self) -> int:
        return self._col.clear()


class CompletionLogRepository(_ModelRepository[CompletionLog]):
    model = CompletionLog
    collection_name = COMPLETION_LOGS
    append_only = True

    def append(self, log: CompletionLog) -> CompletionLog:
        self._col.insert(log.id, log.model_dump(mode="json"), space_id=log.space_id)
        return log

    def find_by_action_definition_id(self, definition_id: str) -> list[CompletionLog]:
        return [self._load(p) for p in self._col.find_by("action_definition_id", definition_id)]

    def delete_by_action_definition_id(self, definition_id: str) -> int:
        return self._col.delete_by("action_definition_id", definition_id)

    def corrupted_ids(self) -> list[str]:
        return self._col.corrupted_ids()


class DataEntryLogRepository(_ModelRepository[DataEntryLog]):
    model = DataEntryLog
    collection_name = DATA_ENTRY_LOGS

    def save(self, entry: DataEntryLog) -> DataEntryLog:
        self._col.upsert(entry.id, entry.model_dump(mode="json"), space_id=entry.space_id)
        return entry

    def find_by_action_definition_id(self, definition_id: str) -> list[DataEntryLog]:
        return [self._load(p) for p in self._col.find_by("action_definition_id", definition_id)]

    def delete_by_action_definition_id(self, definition_id: str) -> int:
        return self._col.delete_by("action_definition_id", definition_id)

    def delete_by_step_id(self, step_id: str) -> int:
        return self._col.delete_by("step_id", step_id)


class UserProgressRepository(_ModelRepository[UserProgress]):
    model = UserProgress
    collection_name = USER_PROGRESS

    def find_by_user_id(self, user_id: str) -> UserProgress | None:
        return self.find_by_id(user_id)

    def save(self, progress: UserProgress) -> UserProgress:
        self._col.upsert(progress.user_id, progress.model_dump(mode="json"))
        return progress


class ProblemRepository(_ModelRepository[Problem]):
    model = Problem
    collection_name = PROBLEMS

    def save(self, problem: Problem) -> Problem:
        self._col.upsert(problem.id, problem.model_dump(mode="json"), space_id=problem.space_id)
        return problem


class TodoRepository(_ModelRepository[Todo]):
    model = Todo
    collection_name = TODOS

    def save(self, todo: Todo) -> Todo:
        self._col.upsert(todo.id, todo.model_dump(mode="json"), space_id=todo.space_id)
        return todo

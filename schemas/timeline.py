"""Timeline item schema.

A ``TimelineItem`` is the common shape every timeline source is projected
into. The shared fields drive ordering and display; the kind-specific fields
are left ``None`` for other kinds.
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel

from schemas.records import ProblemType, StepOutcome, TodoStatus
from schemas.types import UtcDatetime

T = TypeVar("T", bound="_JsonMixin")

TimelineKind = Literal["action_log", "problem", "todo", "data_entry"]


class _JsonMixin(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls: type[T], data: str) -> T:
        return cls.model_validate_json(data)


class TimelineItem(_JsonMixin):
    id: str
    space_id: str
    timestamp: UtcDatetime
    kind: TimelineKind
    title: str
    description: str | None = None
    points_awarded: int | None = None

    # action_log
    action_definition_id: str | None = None
    completed_step_id: str | None = None
    step_description: str | None = None
    step_outcome: StepOutcome | None = None
    is_multi_step_full_completion: bool | None = None
    notes: str | None = None
    duration_ms: int | None = None

    # problem
    problem_type: ProblemType | None = None
    problem_resolved: bool | None = None

    # todo
    todo_status: TodoStatus | None = None
    todo_completion_date: UtcDatetime | None = None

    # data_entry
    step_id: str | None = None
    submitted_data: dict[str, Any] | None = None

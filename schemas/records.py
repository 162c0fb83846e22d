"""Log, progress and external record schemas."""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from schemas.types import UtcDatetime

T = TypeVar("T", bound="_JsonMixin")

StepOutcome = Literal["completed", "skipped"]
ProblemType = Literal["Waste", "Blocker", "Issue"]
TodoStatus = Literal["todo", "doing", "done"]


class _JsonMixin(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls: type[T], data: str) -> T:
        return cls.model_validate_json(data)


class CompletionLog(_JsonMixin):
    """One completion (or skip) of an action or one of its steps.

    Instances are frozen; the store keeps them in an append-only collection.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    space_id: str
    action_definition_id: str
    timestamp: UtcDatetime
    points_awarded: int = Field(ge=0)
    completed_step_id: str | None = None
    step_outcome: StepOutcome | None = None
    is_multi_step_full_completion: bool = False
    notes: str | None = None
    duration_ms: int | None = Field(default=None, ge=0)


class DataEntryLog(_JsonMixin):
    id: str
    space_id: str
    action_definition_id: str
    # Set when the entry belongs to a data-entry step of a multi-step action
    step_id: str | None = None
    timestamp: UtcDatetime
    data: dict[str, Any] = Field(default_factory=dict)
    points_awarded: int = Field(default=0, ge=0)


class UserProgress(_JsonMixin):
    user_id: str
    points: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    unlocked_customizations: list[str] = Field(default_factory=list)


class Problem(_JsonMixin):
    id: str
    space_id: str
    type: ProblemType
    description: str
    resolved: bool = False
    resolution_notes: str | None = None
    timestamp: UtcDatetime
    last_modified_date: UtcDatetime


class Todo(_JsonMixin):
    id: str
    space_id: str
    description: str
    status: TodoStatus = "todo"
    creation_date: UtcDatetime
    completion_date: UtcDatetime | None = None
    last_modified_date: UtcDatetime

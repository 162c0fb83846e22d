"""Data-entry validation and logging.

Resolves the form fields that apply to a submission, checks the submitted
values against them and persists a ``DataEntryLog``.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from core.errors import Disabled, InvalidInput, NotFound, ValidationError
from core.progression import ProgressionCalculator
from schemas.actions import ActionDefinition, DataEntryAction, MultiStepAction, OrderedField
from schemas.records import DataEntryLog, UserProgress
from schemas.types import new_id, utc_now
from storage.repositories import ActionDefinitionRepository, DataEntryLogRepository

logger = structlog.get_logger(__name__)


class DataEntryRequest(BaseModel):
    space_id: str
    action_definition_id: str
    step_id: str | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)


@dataclass
class DataEntryResult:
    entry: DataEntryLog
    progress: UserProgress


def resolve_form_fields(definition: ActionDefinition, step_id: str | None) -> list[OrderedField]:
    """Return the field list a submission is validated against.

    Raises:
        NotFound: ``step_id`` names no step of a multi-step action.
        InvalidInput: the action/step combination does not accept data.
    """
    if isinstance(definition, DataEntryAction):
        return list(definition.form_fields)
    if isinstance(definition, MultiStepAction):
        if step_id is None:
            raise InvalidInput(
                f"A step id is required to submit data for multi-step action {definition.id!r}"
            )
        step = definition.find_step(step_id)
        if step is None:
            raise NotFound(f"Step {step_id!r} not found in action {definition.id!r}")
        if step.step_type != "data-entry":
            raise InvalidInput(f"Step {step_id!r} is not a data-entry step")
        return list(step.form_fields)
    raise InvalidInput(f"Action {definition.name!r} ({definition.variant}) does not accept data")


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


# Plain decimal with optional exponent, or a signed "Infinity".
_NUMBER_RE = re.compile(r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|Infinity)")


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not math.isnan(value)
    return _NUMBER_RE.fullmatch(str(value).strip()) is not None


def validate_form_data(fields: Sequence[OrderedField], form_data: Mapping[str, Any]) -> None:
    """Check ``form_data`` against ``fields`` in field order.

    Raises:
        ValidationError: on the first required field left blank, or the
            first number field holding a non-numeric value.
    """
    for f in sorted(fields, key=lambda x: x.order):
        value = form_data.get(f.name)
        if f.is_required and _is_blank(value):
            raise ValidationError(f.label, f'Field "{f.label}" is required.')
        if f.field_type == "number" and not _is_blank(value) and not _is_numeric(value):
            raise ValidationError(f.label, f'Field "{f.label}" must be a valid number.')


class DataEntryValidator:
    def __init__(
        self,
        definitions: ActionDefinitionRepository,
        entries: DataEntryLogRepository,
        progression: ProgressionCalculator,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.definitions = definitions
        self.entries = entries
        self.progression = progression
        self._clock = clock

    def submit(self, request: DataEntryRequest) -> DataEntryResult:
        definition = self.definitions.find_by_id(request.action_definition_id)
        if definition is None:
            raise NotFound(f"ActionDefinition {request.action_definition_id!r} not found")
        if not definition.is_enabled:
            raise Disabled(f"Action {definition.name!r} is not enabled")

        fields = resolve_form_fields(definition, request.step_id)
        validate_form_data(fields, request.form_data)

        # Step submissions earn nothing here; completing the step does.
        points = definition.points_for_completion if isinstance(definition, DataEntryAction) else 0
        entry = self.entries.save(
            DataEntryLog(
                id=new_id(),
                space_id=request.space_id,
                action_definition_id=definition.id,
                step_id=request.step_id if isinstance(definition, MultiStepAction) else None,
                timestamp=self._clock(),
                data=dict(request.form_data),
                points_awarded=points,
            )
        )
        progress = self.progression.award(points)
        logger.info(
            "data_entry_logged",
            action_definition_id=definition.id,
            step_id=entry.step_id,
            points=points,
        )
        return DataEntryResult(entry=entry, progress=progress)

    def update(self, entry_id: str, form_data: Mapping[str, Any]) -> DataEntryLog:
        existing = self.entries.find_by_id(entry_id)
        if existing is None:
            raise NotFound(f"DataEntryLog {entry_id!r} not found for update")
        definition = self.definitions.find_by_id(existing.action_definition_id)
        if definition is None:
            raise NotFound(f"ActionDefinition {existing.action_definition_id!r} not found")

        fields = resolve_form_fields(definition, existing.step_id)
        validate_form_data(fields, form_data)

        updated = existing.model_copy(update={"data": dict(form_data), "timestamp": self._clock()})
        self.entries.save(updated)
        logger.info("data_entry_updated", id=entry_id)
        return updated

    def list_by_space(self, space_id: str) -> list[DataEntryLog]:
        return sorted(self.entries.find_by_space_id(space_id), key=lambda e: e.timestamp, reverse=True)

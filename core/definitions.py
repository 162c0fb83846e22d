"""Action definition lifecycle.

Creates, updates and deletes action definitions. Nested steps and form
fields are re-numbered from list position on every save, while the ids of
existing nested items survive edits so completion history keeps pointing at
the same step.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime

import structlog

from core.errors import InvalidInput, NotFound
from schemas.actions import (
    ActionDefinition,
    ActionDefinitionInput,
    ActionDefinitionUpdate,
    DataEntryAction,
    FieldInput,
    FieldUpdate,
    MultiStepAction,
    OrderedField,
    OrderedStep,
    SingleAction,
    StepInput,
    StepUpdate,
    TimerAction,
)
from schemas.types import new_id, utc_now
from storage.repositories import (
    ActionDefinitionRepository,
    CompletionLogRepository,
    DataEntryLogRepository,
)

logger = structlog.get_logger(__name__)


# -----------------------------
# Nested item builders
# -----------------------------


def _new_fields(inputs: Sequence[FieldInput] | None) -> list[OrderedField]:
    return [
        OrderedField(id=new_id(), order=i, **f.model_dump())
        for i, f in enumerate(inputs or [])
    ]


def _new_steps(inputs: Sequence[StepInput] | None) -> list[OrderedStep]:
    steps: list[OrderedStep] = []
    for i, s in enumerate(inputs or []):
        fields = _new_fields(s.form_fields) if s.step_type == "data-entry" else []
        steps.append(
            OrderedStep(
                id=new_id(),
                description=s.description,
                points_per_step=s.points_per_step,
                step_type=s.step_type,
                order=i,
                form_fields=fields,
            )
        )
    return steps


def _renumber_fields(fields: Sequence[OrderedField]) -> list[OrderedField]:
    return [f.model_copy(update={"order": i}) for i, f in enumerate(fields)]


def _renumber_steps(steps: Sequence[OrderedStep]) -> list[OrderedStep]:
    return [
        s.model_copy(update={"order": i, "form_fields": _renumber_fields(s.form_fields)})
        for i, s in enumerate(steps)
    ]


def merge_fields(
    updates: Sequence[FieldUpdate], existing: Sequence[OrderedField]
) -> list[OrderedField]:
    """Upsert-by-id merge of form fields.

    A field whose id matches an existing one keeps that id and any attribute
    the update leaves unset. Anything else is new and gets a fresh id. Order
    always follows list position.
    """
    _reject_repeated_ids(updates, "Field")
    by_id = {f.id: f for f in existing}
    merged: list[OrderedField] = []
    for i, upd in enumerate(updates):
        prev = by_id.get(upd.id) if upd.id else None
        merged.append(
            OrderedField(
                id=prev.id if prev else new_id(),
                name=_pick(upd.name, prev.name if prev else None, f"field_{i}"),
                label=_pick(upd.label, prev.label if prev else None, f"Field {i + 1}"),
                field_type=_pick(upd.field_type, prev.field_type if prev else None, "text"),
                is_required=_pick(upd.is_required, prev.is_required if prev else None, False),
                placeholder=upd.placeholder if upd.placeholder is not None else (
                    prev.placeholder if prev else None
                ),
                order=i,
            )
        )
    return merged


def merge_steps(updates: Sequence[StepUpdate], existing: Sequence[OrderedStep]) -> list[OrderedStep]:
    """Upsert-by-id merge of multi-step steps, one level deeper for their fields."""
    _reject_repeated_ids(updates, "Step")
    by_id = {s.id: s for s in existing}
    merged: list[OrderedStep] = []
    for i, upd in enumerate(updates):
        prev = by_id.get(upd.id) if upd.id else None
        step_type = _pick(upd.step_type, prev.step_type if prev else None, "description")
        if step_type != "data-entry":
            fields: list[OrderedField] = []
        elif upd.form_fields is not None:
            fields = merge_fields(upd.form_fields, prev.form_fields if prev else [])
        else:
            fields = _renumber_fields(prev.form_fields) if prev else []
        merged.append(
            OrderedStep(
                id=prev.id if prev else new_id(),
                description=_pick(upd.description, prev.description if prev else None, ""),
                points_per_step=_pick(upd.points_per_step, prev.points_per_step if prev else None, 0),
                step_type=step_type,
                order=i,
                form_fields=fields,
            )
        )
    return merged


def _reject_repeated_ids(updates: Sequence[FieldUpdate | StepUpdate], kind: str) -> None:
    seen: set[str] = set()
    for upd in updates:
        if upd.id is None:
            continue
        if upd.id in seen:
            raise InvalidInput(f"{kind} id {upd.id!r} appears more than once in the update")
        seen.add(upd.id)


def _pick(value, previous, default):
    if value is not None:
        return value
    if previous is not None:
        return previous
    return default


# -----------------------------
# Lifecycle
# -----------------------------


class ActionDefinitionLifecycle:
    """Create/update/delete action definitions with cascading log cleanup."""

    def __init__(
        self,
        definitions: ActionDefinitionRepository,
        completion_logs: CompletionLogRepository,
        data_entries: DataEntryLogRepository,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.definitions = definitions
        self.completion_logs = completion_logs
        self.data_entries = data_entries
        self._clock = clock

    def create(self, data: ActionDefinitionInput) -> ActionDefinition:
        common = dict(
            id=new_id(),
            space_id=data.space_id,
            name=data.name,
            description=data.description,
            points_for_completion=data.points_for_completion,
            is_enabled=True,
            order=data.order or 0,
            creation_date=self._clock(),
        )
        if data.variant == "multi-step":
            definition: ActionDefinition = MultiStepAction(**common, steps=_new_steps(data.steps))
        elif data.variant == "data-entry":
            definition = DataEntryAction(**common, form_fields=_new_fields(data.form_fields))
        elif data.variant == "timer":
            definition = TimerAction(**common)
        else:
            definition = SingleAction(**common)
        self.definitions.save(definition)
        logger.info(
            "action_definition_created",
            id=definition.id,
            space_id=definition.space_id,
            variant=definition.variant,
        )
        return definition

    def update(self, data: ActionDefinitionUpdate) -> ActionDefinition:
        existing = self.definitions.find_by_id(data.id)
        if existing is None:
            raise NotFound(f"ActionDefinition {data.id!r} not found for update")

        if "description" in data.model_fields_set:
            description = data.description
        else:
            description = existing.description
        common = dict(
            id=existing.id,
            space_id=existing.space_id,
            name=data.name if data.name is not None else existing.name,
            description=description,
            points_for_completion=_pick(
                data.points_for_completion, existing.points_for_completion, 0
            ),
            is_enabled=_pick(data.is_enabled, existing.is_enabled, True),
            order=_pick(data.order, existing.order, 0),
            creation_date=existing.creation_date,
        )
        variant = data.variant or existing.variant

        if variant == "multi-step":
            prior_steps = existing.steps if isinstance(existing, MultiStepAction) else []
            if data.steps is not None:
                steps = merge_steps(data.steps, prior_steps)
            else:
                steps = _renumber_steps(prior_steps)
            updated: ActionDefinition = MultiStepAction(**common, steps=steps)
        elif variant == "data-entry":
            prior_fields = existing.form_fields if isinstance(existing, DataEntryAction) else []
            if data.form_fields is not None:
                fields = merge_fields(data.form_fields, prior_fields)
            else:
                fields = _renumber_fields(prior_fields)
            updated = DataEntryAction(**common, form_fields=fields)
        elif variant == "timer":
            updated = TimerAction(**common)
        else:
            updated = SingleAction(**common)

        self.definitions.save(updated)
        self._drop_removed_step_entries(existing, updated)
        logger.info("action_definition_updated", id=updated.id, variant=updated.variant)
        return updated

    def delete(self, definition_id: str) -> None:
        existing = self.definitions.find_by_id(definition_id)
        if existing is None:
            raise NotFound(f"ActionDefinition {definition_id!r} not found for deletion")

        removed_logs = removed_entries = 0
        if isinstance(existing, (SingleAction, TimerAction)):
            removed_logs = self.completion_logs.delete_by_action_definition_id(definition_id)
        elif isinstance(existing, MultiStepAction):
            removed_logs = self.completion_logs.delete_by_action_definition_id(definition_id)
            # Step-level entries carry the parent definition id
            removed_entries = self.data_entries.delete_by_action_definition_id(definition_id)
        elif isinstance(existing, DataEntryAction):
            removed_entries = self.data_entries.delete_by_action_definition_id(definition_id)
        else:  # pragma: no cover - exhaustive over the union
            raise TypeError(f"Unhandled action variant: {type(existing).__name__}")

        self.definitions.delete(definition_id)
        logger.info(
            "action_definition_deleted",
            id=definition_id,
            completion_logs_removed=removed_logs,
            data_entries_removed=removed_entries,
        )

    def list_by_space(self, space_id: str) -> list[ActionDefinition]:
        return sorted(self.definitions.find_by_space_id(space_id), key=lambda d: d.order or 0)

    def _drop_removed_step_entries(
        self, before: ActionDefinition, after: ActionDefinition
    ) -> None:
        if not isinstance(before, MultiStepAction):
            return
        kept = after.step_ids() if isinstance(after, MultiStepAction) else set()
        for step_id in sorted(before.step_ids() - kept):
            n = self.data_entries.delete_by_step_id(step_id)
            if n:
                logger.info("step_data_entries_removed", step_id=step_id, count=n)

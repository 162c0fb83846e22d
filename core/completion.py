"""Completion recording.

Decides how many points a logged completion earns and whether it finishes a
multi-step action, then appends the immutable ``CompletionLog`` and forwards
the points to the progression calculator.

Full completion is never stored as a counter. It is recomputed from the
definition's log history, fetched once per call.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

import structlog
from pydantic import BaseModel, Field

from core.errors import Disabled, InvalidInput, NotFound
from core.progression import ProgressionCalculator
from schemas.actions import DataEntryAction, MultiStepAction, SingleAction, TimerAction
from schemas.records import CompletionLog, StepOutcome, UserProgress
from schemas.types import new_id, utc_now
from storage.repositories import ActionDefinitionRepository, CompletionLogRepository

logger = structlog.get_logger(__name__)


class CompletionRequest(BaseModel):
    space_id: str
    action_definition_id: str
    completed_step_id: str | None = None
    step_outcome: StepOutcome | None = None
    notes: str | None = None
    duration_ms: int | None = Field(default=None, ge=0)


@dataclass
class CompletionResult:
    log: CompletionLog
    progress: UserProgress


def completed_step_ids(logs: Iterable[CompletionLog]) -> set[str]:
    """Ids of steps that have at least one ``completed`` log."""
    return {
        log.completed_step_id
        for log in logs
        if log.completed_step_id and log.step_outcome == "completed"
    }


def is_fully_complete(logs: Iterable[CompletionLog], step_ids: Iterable[str]) -> bool:
    """Return True when every defined step has been completed at least once.

    Completions of steps no longer defined on the action are ignored, so the
    comparison is between the completed subset of ``step_ids`` and the full
    set. An action without steps is never fully complete.
    """
    return _covers(completed_step_ids(logs), set(step_ids))


def _covers(done: set[str], defined: set[str]) -> bool:
    return bool(defined) and defined <= done


class CompletionRecorder:
    def __init__(
        self,
        definitions: ActionDefinitionRepository,
        logs: CompletionLogRepository,
        progression: ProgressionCalculator,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.definitions = definitions
        self.logs = logs
        self.progression = progression
        self._clock = clock

    def record(self, request: CompletionRequest) -> CompletionResult:
        definition = self.definitions.find_by_id(request.action_definition_id)
        if definition is None:
            raise NotFound(f"ActionDefinition {request.action_definition_id!r} not found")
        if not definition.is_enabled:
            raise Disabled(f"Action {definition.name!r} is not enabled")
        if request.completed_step_id and request.step_outcome is None:
            raise InvalidInput("step_outcome is required when completed_step_id is given")
        if request.completed_step_id and not isinstance(definition, MultiStepAction):
            raise InvalidInput(
                f"Action {definition.name!r} ({definition.variant}) has no steps to complete"
            )

        full = False
        duration_ms = None
        if isinstance(definition, SingleAction):
            points = definition.points_for_completion
            full = True
        elif isinstance(definition, TimerAction):
            points = definition.points_for_completion
            duration_ms = request.duration_ms
        elif isinstance(definition, MultiStepAction):
            if request.completed_step_id is None:
                # Whole-action log without a target step
                points = definition.points_for_completion
                full = True
            else:
                step = definition.find_step(request.completed_step_id)
                if step is None:
                    raise NotFound(
                        f"Step {request.completed_step_id!r} not found in action {definition.id!r}"
                    )
                if request.step_outcome == "skipped":
                    points = 0
                else:
                    points = step.points_per_step
                    history = self.logs.find_by_action_definition_id(definition.id)
                    step_ids = definition.step_ids()
                    was_full = is_fully_complete(history, step_ids)
                    now_full = _covers(completed_step_ids(history) | {step.id}, step_ids)
                    # The bonus belongs to the log that completes the set, not to repeats
                    if now_full and not was_full:
                        points += definition.points_for_completion
                        full = True
        elif isinstance(definition, DataEntryAction):
            raise InvalidInput(
                f"Action {definition.name!r} is a data-entry form; submit data instead of logging it"
            )
        else:  # pragma: no cover - exhaustive over the union
            raise InvalidInput(f"Unsupported action variant: {definition.variant}")

        log = self.logs.append(
            CompletionLog(
                id=new_id(),
                space_id=request.space_id,
                action_definition_id=definition.id,
                timestamp=self._clock(),
                points_awarded=points,
                completed_step_id=request.completed_step_id,
                step_outcome=request.step_outcome if request.completed_step_id else None,
                is_multi_step_full_completion=full,
                notes=request.notes,
                duration_ms=duration_ms,
            )
        )
        progress = self.progression.award(points)
        logger.info(
            "action_logged",
            action_definition_id=definition.id,
            step_id=log.completed_step_id,
            points=points,
            full_completion=full,
        )
        return CompletionResult(log=log, progress=progress)

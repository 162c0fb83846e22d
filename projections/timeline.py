"""Timeline projection.

Merges the four activity sources of a space (completion logs, data-entry
logs, problems and to-dos) into one feed ordered newest first. Each source
has its own notion of "when":

- completion and data-entry logs use their own timestamp
- problems and to-dos use ``last_modified_date``, so an edit re-sorts them

Every build is a full recompute over the space's records; nothing is cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from core.errors import InvalidInput
from schemas.actions import (
    ActionDefinition,
    DataEntryAction,
    MultiStepAction,
    OrderedField,
    SingleAction,
    TimerAction,
)
from schemas.records import CompletionLog, DataEntryLog, Problem, Todo
from schemas.timeline import TimelineItem
from storage.repositories import (
    ActionDefinitionRepository,
    CompletionLogRepository,
    DataEntryLogRepository,
    ProblemRepository,
    TodoRepository,
)
from tools.formatting import format_duration, truncate

DEFAULT_LIMIT = 50
PREVIEW_CHARS = 50
NO_PREVIEW = "Data submitted."


def project_completion(log: CompletionLog, definition: ActionDefinition | None) -> TimelineItem:
    title = definition.name if definition is not None else "Unknown Action"
    if isinstance(definition, TimerAction):
        title = f"{title} (Timer)"

    step_description = None
    if log.completed_step_id and isinstance(definition, MultiStepAction):
        step = definition.find_step(log.completed_step_id)
        step_description = step.description if step is not None else None

    parts: list[str] = []
    if step_description:
        outcome = {"completed": "Completed", "skipped": "Skipped"}.get(log.step_outcome or "")
        parts.append(f"Step: {step_description}" + (f" ({outcome})" if outcome else ""))
    if isinstance(definition, TimerAction) and log.duration_ms is not None:
        parts.append(f"Logged time: {format_duration(log.duration_ms)}")
    if log.notes:
        parts.append(log.notes)
    if not parts and isinstance(definition, SingleAction) and definition.description:
        parts.append(definition.description)

    return TimelineItem(
        id=log.id,
        space_id=log.space_id,
        timestamp=log.timestamp,
        kind="action_log",
        title=title,
        description=" - ".join(parts) or None,
        points_awarded=log.points_awarded,
        action_definition_id=log.action_definition_id,
        completed_step_id=log.completed_step_id,
        step_description=step_description,
        step_outcome=log.step_outcome,
        is_multi_step_full_completion=log.is_multi_step_full_completion,
        notes=log.notes,
        duration_ms=log.duration_ms,
    )


def project_problem(problem: Problem) -> TimelineItem:
    return TimelineItem(
        id=problem.id,
        space_id=problem.space_id,
        timestamp=problem.last_modified_date,
        kind="problem",
        title=f"Problem: {problem.type}",
        description=problem.description,
        problem_type=problem.type,
        problem_resolved=problem.resolved,
    )


def project_todo(todo: Todo) -> TimelineItem:
    if todo.creation_date == todo.last_modified_date:
        title = f"To-do: {truncate(todo.description, 30)}"
        description = "Added to board"
    elif todo.status == "done":
        done_at = todo.completion_date or todo.last_modified_date
        title = f"To-do Completed: {truncate(todo.description, 20)}"
        description = f"Completed on {done_at.date().isoformat()}"
    else:
        title = f"To-do: {truncate(todo.description, 30)}"
        description = f"Status changed to {todo.status}"
    return TimelineItem(
        id=todo.id,
        space_id=todo.space_id,
        timestamp=todo.last_modified_date,
        kind="todo",
        title=title,
        description=description,
        todo_status=todo.status,
        todo_completion_date=todo.completion_date,
    )


def _entry_fields(entry: DataEntryLog, definition: ActionDefinition | None) -> list[OrderedField]:
    if isinstance(definition, DataEntryAction):
        return definition.form_fields
    if isinstance(definition, MultiStepAction) and entry.step_id:
        step = definition.find_step(entry.step_id)
        if step is not None:
            return step.form_fields
    return []


def project_data_entry(entry: DataEntryLog, definition: ActionDefinition | None) -> TimelineItem:
    preview = NO_PREVIEW
    fields = sorted(_entry_fields(entry, definition), key=lambda f: f.order)
    if fields:
        first = fields[0]
        value = entry.data.get(first.name)
        if value is not None and str(value) != "":
            preview = f"{first.label}: {truncate(value, PREVIEW_CHARS)}"
    name = definition.name if definition is not None else "Unknown Form"
    return TimelineItem(
        id=entry.id,
        space_id=entry.space_id,
        timestamp=entry.timestamp,
        kind="data_entry",
        title=f"Data Logged: {name}",
        description=preview,
        points_awarded=entry.points_awarded,
        action_definition_id=entry.action_definition_id,
        step_id=entry.step_id,
        submitted_data=dict(entry.data),
    )


@dataclass
class _DefinitionLookup:
    """Per-build cache of definitions, seeded with the space's definitions."""

    repo: ActionDefinitionRepository
    known: dict[str, ActionDefinition | None] = field(default_factory=dict)

    def get(self, definition_id: str) -> ActionDefinition | None:
        if definition_id not in self.known:
            self.known[definition_id] = self.repo.find_by_id(definition_id)
        return self.known[definition_id]


class TimelineAggregator:
    def __init__(
        self,
        definitions: ActionDefinitionRepository,
        completion_logs: CompletionLogRepository,
        data_entries: DataEntryLogRepository,
        problems: ProblemRepository,
        todos: TodoRepository,
    ) -> None:
        self.definitions = definitions
        self.completion_logs = completion_logs
        self.data_entries = data_entries
        self.problems = problems
        self.todos = todos

    def build(self, space_id: str, limit: int = DEFAULT_LIMIT) -> list[TimelineItem]:
        """Return at most ``limit`` items for the space, newest first."""
        if limit < 0:
            raise InvalidInput("limit must be >= 0")
        lookup = _DefinitionLookup(
            self.definitions, {d.id: d for d in self.definitions.find_by_space_id(space_id)}
        )
        items: list[TimelineItem] = []
        for log in self.completion_logs.find_by_space_id(space_id):
            items.append(project_completion(log, lookup.get(log.action_definition_id)))
        for problem in self.problems.find_by_space_id(space_id):
            items.append(project_problem(problem))
        for todo in self.todos.find_by_space_id(space_id):
            items.append(project_todo(todo))
        for entry in self.data_entries.find_by_space_id(space_id):
            items.append(project_data_entry(entry, lookup.get(entry.action_definition_id)))

        items.sort(key=lambda it: it.timestamp, reverse=True)
        return items[:limit]

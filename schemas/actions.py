"""Action definition schemas.

An action definition is a tagged union keyed on ``variant``:

- ``single``: logged in one shot
- ``multi-step``: an ordered checklist of steps
- ``timer``: logged with a measured duration
- ``data-entry``: a form whose submissions are validated against its fields

Each variant carries only the payload that applies to it, so consumers
dispatch on the model class rather than probing optional fields.
"""

from __future__ import annotations

from typing import Annotated, Literal, TypeVar, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from schemas.types import UtcDatetime

T = TypeVar("T", bound="_JsonMixin")

Variant = Literal["single", "multi-step", "timer", "data-entry"]
StepType = Literal["description", "data-entry"]
FieldType = Literal["text", "number", "date", "textarea", "barcode"]

VARIANTS: tuple[str, ...] = ("single", "multi-step", "timer", "data-entry")


class _JsonMixin(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls: type[T], data: str) -> T:
        return cls.model_validate_json(data)


class OrderedField(_JsonMixin):
    """One field of a data-entry form.

    ``name`` is the key under which a submission carries the value; ``label``
    is what a person sees and what validation errors name.
    """

    id: str
    name: str
    label: str
    field_type: FieldType = "text"
    is_required: bool = False
    placeholder: str | None = None
    order: int = Field(default=0, ge=0)


class OrderedStep(_JsonMixin):
    id: str
    description: str
    points_per_step: int = Field(default=0, ge=0)
    step_type: StepType = "description"
    order: int = Field(default=0, ge=0)
    # Only populated when step_type == "data-entry"
    form_fields: list[OrderedField] = Field(default_factory=list)


class _ActionBase(_JsonMixin):
    id: str
    space_id: str
    name: str
    description: str | None = None
    points_for_completion: int = Field(default=0, ge=0)
    is_enabled: bool = True
    order: int = 0
    creation_date: UtcDatetime


def _check_dense(items: list, kind: str) -> None:
    ids = [it.id for it in items]
    if len(set(ids)) != len(ids):
        raise ValueError(f"{kind} ids must be unique")
    if [it.order for it in items] != list(range(len(items))):
        raise ValueError(f"{kind} order must be dense 0..n-1 in list position")


class SingleAction(_ActionBase):
    variant: Literal["single"] = "single"


class TimerAction(_ActionBase):
    variant: Literal["timer"] = "timer"


class MultiStepAction(_ActionBase):
    variant: Literal["multi-step"] = "multi-step"
    steps: list[OrderedStep] = Field(default_factory=list)

    @field_validator("steps")
    @classmethod
    def _steps_dense(cls, steps: list[OrderedStep]) -> list[OrderedStep]:
        _check_dense(steps, "step")
        for step in steps:
            _check_dense(step.form_fields, "field")
        return steps

    def step_ids(self) -> set[str]:
        return {s.id for s in self.steps}

    def find_step(self, step_id: str) -> OrderedStep | None:
        return next((s for s in self.steps if s.id == step_id), None)


class DataEntryAction(_ActionBase):
    variant: Literal["data-entry"] = "data-entry"
    form_fields: list[OrderedField] = Field(default_factory=list)

    @field_validator("form_fields")
    @classmethod
    def _fields_dense(cls, fields: list[OrderedField]) -> list[OrderedField]:
        _check_dense(fields, "field")
        return fields


ActionDefinition = Annotated[
    Union[SingleAction, MultiStepAction, TimerAction, DataEntryAction],
    Field(discriminator="variant"),
]

ACTION_DEFINITION = TypeAdapter(ActionDefinition)


# -----------------------------
# Lifecycle inputs
# -----------------------------


class FieldInput(_JsonMixin):
    name: str
    label: str
    field_type: FieldType = "text"
    is_required: bool = False
    placeholder: str | None = None


class StepInput(_JsonMixin):
    description: str
    points_per_step: int = Field(default=0, ge=0)
    step_type: StepType = "description"
    form_fields: list[FieldInput] | None = None


class ActionDefinitionInput(_JsonMixin):
    """Payload for creating an action definition."""

    space_id: str
    name: str
    description: str | None = None
    variant: Variant
    points_for_completion: int = Field(default=0, ge=0)
    order: int | None = None
    steps: list[StepInput] | None = None
    form_fields: list[FieldInput] | None = None


class FieldUpdate(_JsonMixin):
    id: str | None = None
    name: str | None = None
    label: str | None = None
    field_type: FieldType | None = None
    is_required: bool | None = None
    placeholder: str | None = None
    # Accepted for compatibility with clients that echo it back; never used.
    order: int | None = None


class StepUpdate(_JsonMixin):
    id: str | None = None
    description: str | None = None
    points_per_step: int | None = Field(default=None, ge=0)
    step_type: StepType | None = None
    form_fields: list[FieldUpdate] | None = None
    order: int | None = None


class ActionDefinitionUpdate(_JsonMixin):
    """Partial update of an action definition.

    Omitted fields are left unchanged. ``description`` distinguishes an
    explicit ``None`` (clear it) from omission via ``model_fields_set``.
    """

    id: str
    name: str | None = None
    description: str | None = None
    variant: Variant | None = None
    points_for_completion: int | None = Field(default=None, ge=0)
    order: int | None = None
    is_enabled: bool | None = None
    steps: list[StepUpdate] | None = None
    form_fields: list[FieldUpdate] | None = None

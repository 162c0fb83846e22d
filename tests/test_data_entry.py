from __future__ import annotations

import pytest

from core.data_entry import DataEntryRequest, validate_form_data
from core.errors import Disabled, InvalidInput, NotFound, ValidationError
from schemas.actions import (
    ActionDefinitionInput,
    ActionDefinitionUpdate,
    FieldInput,
    OrderedField,
    StepInput,
)


def _form(engine, points: int = 4):
    return engine.create_action_definition(
        ActionDefinitionInput(
            space_id="s1",
            name="Fridge check",
            variant="data-entry",
            points_for_completion=points,
            form_fields=[
                FieldInput(name="temp", label="Temperature", field_type="number", is_required=True),
                FieldInput(name="note", label="Note", field_type="textarea"),
            ],
        )
    )


def _field(name, label, field_type="text", required=False, order=0) -> OrderedField:
    return OrderedField(
        id=f"f-{name}", name=name, label=label, field_type=field_type, is_required=required, order=order
    )


def test_validate_form_data_rules() -> None:
    fields = [
        _field("qty", "Quantity", "number", required=True, order=1),
        _field("who", "Who", required=True, order=0),
    ]
    # Fields are checked in order; the first failure wins
    with pytest.raises(ValidationError) as exc:
        validate_form_data(fields, {})
    assert exc.value.label == "Who"
    assert str(exc.value) == 'Field "Who" is required.'

    with pytest.raises(ValidationError) as exc:
        validate_form_data(fields, {"who": "  ", "qty": "3"})
    assert exc.value.label == "Who"

    with pytest.raises(ValidationError) as exc:
        validate_form_data(fields, {"who": "Sam", "qty": "three"})
    assert str(exc.value) == 'Field "Quantity" must be a valid number.'

    for bad in (True, float("nan"), "nan", "1_000", "infinity", "  inf ", "1e", "0x10"):
        with pytest.raises(ValidationError):
            validate_form_data(fields, {"who": "Sam", "qty": bad})

    validate_form_data(fields, {"who": "Sam", "qty": "3.5"})
    validate_form_data(fields, {"who": "Sam", "qty": 0})
    for good in ("-2e3", ".5", " 7 ", "1.", "Infinity", "-Infinity", 2.5):
        validate_form_data(fields, {"who": "Sam", "qty": good})
    # Optional number fields may be left blank
    validate_form_data([_field("n", "N", "number")], {"n": ""})


def test_required_rejected_then_accepted(engine) -> None:
    d = _form(engine)
    with pytest.raises(ValidationError) as exc:
        engine.submit_data_entry(DataEntryRequest(space_id="s1", action_definition_id=d.id, form_data={}))
    assert exc.value.label == "Temperature"
    assert engine.data_entries.find_by_action_definition_id(d.id) == []

    res = engine.submit_data_entry(
        DataEntryRequest(space_id="s1", action_definition_id=d.id, form_data={"temp": "3"})
    )
    assert res.entry.data == {"temp": "3"}
    assert res.entry.points_awarded == 4
    assert res.entry.step_id is None
    assert res.progress.points == 4
    assert engine.data_entries.find_by_id(res.entry.id) == res.entry


def test_step_submission_awards_nothing(engine) -> None:
    d = engine.create_action_definition(
        ActionDefinitionInput(
            space_id="s1",
            name="Opening",
            variant="multi-step",
            points_for_completion=20,
            steps=[
                StepInput(description="Lights", points_per_step=5),
                StepInput(
                    description="Temps",
                    points_per_step=5,
                    step_type="data-entry",
                    form_fields=[FieldInput(name="t", label="Temp", field_type="number", is_required=True)],
                ),
            ],
        )
    )
    lights, temps = d.steps
    with pytest.raises(ValidationError):
        engine.submit_data_entry(
            DataEntryRequest(space_id="s1", action_definition_id=d.id, step_id=temps.id, form_data={"t": "x"})
        )
    res = engine.submit_data_entry(
        DataEntryRequest(space_id="s1", action_definition_id=d.id, step_id=temps.id, form_data={"t": "2"})
    )
    assert res.entry.step_id == temps.id
    assert res.entry.points_awarded == 0
    assert res.progress.points == 0

    with pytest.raises(InvalidInput):
        engine.submit_data_entry(
            DataEntryRequest(space_id="s1", action_definition_id=d.id, step_id=lights.id, form_data={})
        )
    with pytest.raises(InvalidInput):
        engine.submit_data_entry(DataEntryRequest(space_id="s1", action_definition_id=d.id, form_data={}))
    with pytest.raises(NotFound):
        engine.submit_data_entry(
            DataEntryRequest(space_id="s1", action_definition_id=d.id, step_id="nope", form_data={})
        )


def test_submit_preconditions(engine) -> None:
    with pytest.raises(NotFound):
        engine.submit_data_entry(DataEntryRequest(space_id="s1", action_definition_id="missing"))

    single = engine.create_action_definition(
        ActionDefinitionInput(space_id="s1", name="Sweep", variant="single")
    )
    with pytest.raises(InvalidInput):
        engine.submit_data_entry(DataEntryRequest(space_id="s1", action_definition_id=single.id))

    d = _form(engine)
    engine.update_action_definition(ActionDefinitionUpdate(id=d.id, is_enabled=False))
    with pytest.raises(Disabled):
        engine.submit_data_entry(
            DataEntryRequest(space_id="s1", action_definition_id=d.id, form_data={"temp": "1"})
        )


def test_update_entry_revalidates(engine, clock) -> None:
    d = _form(engine)
    res = engine.submit_data_entry(
        DataEntryRequest(space_id="s1", action_definition_id=d.id, form_data={"temp": "3"})
    )
    with pytest.raises(ValidationError):
        engine.update_data_entry(res.entry.id, {"temp": "warm"})
    assert engine.data_entries.find_by_id(res.entry.id).data == {"temp": "3"}

    updated = engine.update_data_entry(res.entry.id, {"temp": "5", "note": "door ajar"})
    assert updated.data == {"temp": "5", "note": "door ajar"}
    assert updated.timestamp > res.entry.timestamp
    assert updated.points_awarded == res.entry.points_awarded
    assert engine.get_progress().points == 4

    with pytest.raises(NotFound):
        engine.update_data_entry("missing", {"temp": "1"})


def test_list_by_space_newest_first(engine) -> None:
    d = _form(engine)
    ids = [
        engine.submit_data_entry(
            DataEntryRequest(space_id="s1", action_definition_id=d.id, form_data={"temp": str(i)})
        ).entry.id
        for i in range(3)
    ]
    assert [e.id for e in engine.validator.list_by_space("s1")] == list(reversed(ids))
    assert engine.validator.list_by_space("s2") == []

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from cli.main import app
from core.engine import Engine
from core.settings import Settings

DEFS = """
actions:
  - space_id: kitchen
    name: Morning prep
    variant: multi-step
    points_for_completion: 20
    steps:
      - {description: Wipe counters, points_per_step: 5}
      - {description: Stock line, points_per_step: 5}
  - space_id: kitchen
    name: Fridge temps
    variant: data-entry
    points_for_completion: 2
    form_fields:
      - {name: temp, label: Temperature, field_type: number, is_required: true}
"""


def _definitions(db: Path):
    engine = Engine(Settings(db_path=db))
    try:
        return engine.list_action_definitions("kitchen")
    finally:
        engine.close()


def test_cli_define_log_timeline_and_clear(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "cli.db"
    defs = tmp_path / "defs.yaml"
    defs.write_text(DEFS, encoding="utf-8")

    res = runner.invoke(app, ["--db", str(db), "define", str(defs)])
    assert res.exit_code == 0, res.output
    assert "Morning prep" in res.output

    prep, fridge = _definitions(db)
    a, b = prep.steps

    res = runner.invoke(
        app, ["--db", str(db), "log", "kitchen", prep.id, "--step", a.id, "--outcome", "completed"]
    )
    assert res.exit_code == 0, res.output
    assert "Logged: 5 points" in res.output

    res = runner.invoke(
        app, ["--db", str(db), "log", "kitchen", prep.id, "--step", b.id, "--outcome", "completed"]
    )
    assert res.exit_code == 0, res.output
    assert "Logged: 25 points" in res.output
    assert "full completion" in res.output

    res = runner.invoke(app, ["--db", str(db), "submit", "kitchen", fridge.id, "--field", "temp=abc"])
    assert res.exit_code == 1
    assert "must be a valid number" in res.output

    res = runner.invoke(app, ["--db", str(db), "submit", "kitchen", fridge.id, "-f", "temp=4"])
    assert res.exit_code == 0, res.output

    res = runner.invoke(app, ["--db", str(db), "timeline", "kitchen", "--limit", "2"])
    assert res.exit_code == 0, res.output
    assert "Fridge" in res.output

    res = runner.invoke(app, ["--db", str(db), "stats", "kitchen"])
    assert res.exit_code == 0, res.output
    assert "32" in res.output

    res = runner.invoke(app, ["--db", str(db), "progress"])
    assert "32 points" in res.output

    res = runner.invoke(app, ["--db", str(db), "clear"])
    assert res.exit_code == 2
    assert len(_definitions(db)) == 2

    res = runner.invoke(app, ["--db", str(db), "clear", "--yes"])
    assert res.exit_code == 0, res.output
    assert _definitions(db) == []


def test_cli_errors_exit_nonzero(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "cli.db"

    res = runner.invoke(app, ["--db", str(db), "log", "kitchen", "missing"])
    assert res.exit_code == 1
    assert "NotFound" in res.output

    res = runner.invoke(app, ["--db", str(db), "delete", "missing"])
    assert res.exit_code == 1

    res = runner.invoke(app, ["--db", str(db), "submit", "kitchen", "missing", "--field", "novalue"])
    assert res.exit_code != 0


def test_cli_define_rejects_malformed_file(tmp_path: Path) -> None:
    runner = CliRunner()
    db = tmp_path / "cli.db"
    defs = tmp_path / "bad.yaml"
    defs.write_text("- space_id: kitchen\n  variant: sometimes\n", encoding="utf-8")

    res = runner.invoke(app, ["--db", str(db), "define", str(defs)])
    assert res.exit_code == 1
    assert "ValidationError" in res.output
    assert res.exception is None or isinstance(res.exception, SystemExit)
    assert _definitions(db) == []

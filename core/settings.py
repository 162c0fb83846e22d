"""Engine settings.

Settings come from defaults, an optional YAML/JSON file, and the ``OKAPI_DB``
environment variable (which wins for the database path).
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from core.progression import BASE_UNIT, DEFAULT_USER_ID, LEVEL_MULTIPLIER
from projections.timeline import DEFAULT_LIMIT

DB_ENV_VAR = "OKAPI_DB"


def default_db_path() -> Path:
    """Return the default path to the SQLite store (``~/.okapi/okapi.db``)."""
    return Path.home() / ".okapi" / "okapi.db"


class Settings(BaseModel):
    db_path: Path = Field(default_factory=default_db_path)
    user_id: str = DEFAULT_USER_ID
    level_base_unit: int = Field(default=BASE_UNIT, gt=0)
    level_multiplier: float = Field(default=LEVEL_MULTIPLIER, gt=0)
    timeline_limit: int = Field(default=DEFAULT_LIMIT, ge=0)


def load_settings(path: Path | None = None, *, db_path: Path | None = None) -> Settings:
    """Build settings from an optional file plus environment overrides.

    Args:
        path: YAML or JSON settings file. ``None`` uses defaults only.
        db_path: Explicit database path; takes precedence over the file and
            the environment.

    Raises:
        TypeError: if the file's top level is not a mapping.
    """
    data: dict = {}
    if path is not None:
        text = Path(path).read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            loaded = json.loads(text)
        else:
            loaded = yaml.safe_load(text) or {}
        if not isinstance(loaded, dict):
            raise TypeError("Settings file must be a mapping at top-level")
        data = loaded

    env_db = os.environ.get(DB_ENV_VAR)
    if env_db:
        data["db_path"] = env_db
    if db_path is not None:
        data["db_path"] = db_path
    return Settings.model_validate(data)

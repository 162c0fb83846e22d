"""Load action definition payloads from YAML or JSON files.

A file holds either a single definition mapping, a list of them, or a mapping
with an ``actions`` list:

.. code-block:: yaml

    actions:
      - space_id: kitchen
        name: Morning prep
        variant: multi-step
        points_for_completion: 20
        steps:
          - {description: Wipe counters, points_per_step: 5}
          - {description: Stock line, points_per_step: 5}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from schemas.actions import ActionDefinitionInput, ActionDefinitionUpdate


def _read_payloads(path: Path) -> list[dict[str, Any]]:
    text = Path(path).read_text(encoding="utf-8")
    stripped = text.lstrip()
    if path.suffix.lower() == ".json" or stripped.startswith(("{", "[")):
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if isinstance(data, dict) and "actions" in data:
        data = data["actions"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        raise TypeError("Definition file must hold a mapping or a list of mappings")
    return data


def load_definitions(path: Path) -> list[ActionDefinitionInput]:
    """Parse a file of new action definitions."""
    return [ActionDefinitionInput.model_validate(d) for d in _read_payloads(path)]


def load_definition_updates(path: Path) -> list[ActionDefinitionUpdate]:
    """Parse a file of partial updates; each entry must carry an ``id``."""
    return [ActionDefinitionUpdate.model_validate(d) for d in _read_payloads(path)]

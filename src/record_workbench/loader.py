"""Plan file loading.

A plan is a YAML (or JSON, which YAML reads as-is) mapping with an
optional ``settings`` block and an ``operations`` list.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from record_workbench.errors import PlanLoadError
from record_workbench.models import Plan


def parse_plan(raw: Any, source: str = "<plan>") -> Plan:
    """Validate an already-decoded plan mapping.

    Raises:
        PlanLoadError: If *raw* is not a mapping or does not match the
            plan structure.
    """
    if not isinstance(raw, dict):
        raise PlanLoadError(
            f"Plan in {source} must be a mapping, got {type(raw).__name__}"
        )

    try:
        return Plan.model_validate(raw)
    except PydanticValidationError as e:
        raise PlanLoadError(f"Plan structure invalid in {source}: {e}") from e


def load_plan(path: str | Path) -> Plan:
    """Load a plan from a YAML or JSON file.

    Args:
        path: Path to the plan file.

    Returns:
        Validated Plan.

    Raises:
        PlanLoadError: If the file doesn't exist, cannot be parsed, or
            the structure doesn't match the expected schema.
    """
    path = Path(path)
    if not path.is_file():
        raise PlanLoadError(f"Plan file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise PlanLoadError(f"Invalid YAML in {path}: {e}") from e

    return parse_plan(raw, str(path))

"""
Ground-truth loader.

Reads the advertised vehicle record from JSON and validates it with a
Pydantic schema.  A malformed file is fatal at startup, so errors are
raised as ValueError with every offending field path in the message.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from sales_trainer.core.logging import logger
from sales_trainer.core.settings import settings
from sales_trainer.domain.ground_truth import GroundTruthRecord
from sales_trainer.schemas.vehicle import VehicleSchema

_BACKEND_ROOT = Path(__file__).resolve().parents[2]


def _resolve(path: str | Path) -> Path:
    candidate = Path(path)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    return _BACKEND_ROOT / candidate


def parse_ground_truth(data: object) -> GroundTruthRecord:
    """Validate a decoded JSON object and convert it to a domain record."""
    try:
        vehicle = VehicleSchema.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValueError(f"Invalid vehicle record: {problems}") from e
    return GroundTruthRecord.from_dict(vehicle.model_dump())


def load_ground_truth(path: str | Path | None = None) -> GroundTruthRecord:
    resolved = _resolve(path or settings.ground_truth_path)
    if not resolved.exists():
        raise ValueError(f"Vehicle file not found: {resolved}")
    try:
        data = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Vehicle file is not valid JSON: {resolved}: {e}") from e
    record = parse_ground_truth(data)
    logger.info("Loaded ground truth %s (%s)", record.id, record.title)
    return record

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .models import ElectricalProjectResult

PAYLOAD_VERSION = "1.0"


def _iso_utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def to_plain(value: Any) -> Any:
    """JSON-ready copy of a result record: enums as values, tuples as lists."""
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(to_plain(k)): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def build_payload(result: ElectricalProjectResult, *, generated_at: str | None = None) -> dict:
    if not isinstance(result, ElectricalProjectResult):
        raise TypeError("result must be an ElectricalProjectResult")

    body = to_plain(result)
    circuits = body["panel"]["circuits"]
    sizings = body["cable_sizing"]
    if len(circuits) != len(sizings):
        raise ValueError(
            f"cable_sizing has {len(sizings)} entries for {len(circuits)} circuits"
        )

    return {
        "version": PAYLOAD_VERSION,
        "generated_at": generated_at or _iso_utc_now(),
        "totals": {
            "cable_meters": body["total_cable_meters"],
            "material_cost_dkk": body["total_electrical_material_cost"],
            "labor_seconds": body["total_electrical_labor_seconds"],
        },
        "load_analysis": body["load_analysis"],
        "panel": body["panel"],
        "cable_sizing": sizings,
        "compliance": body["compliance"],
        "room_summaries": body["room_summaries"],
        "warnings": body["warnings"],
    }

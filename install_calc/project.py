from __future__ import annotations

import dataclasses
import logging
import math
from typing import Sequence

from .cable_sizing import calculate_cable_size
from .compliance import check_compliance
from .load_analysis import calculate_load
from .models import (
    CableSizingInput,
    CableSizingResult,
    CircuitConfig,
    ElectricalProjectInput,
    ElectricalProjectResult,
    InstallationMethod,
    LoadCategory,
    PhaseType,
    Room,
    RoomSummary,
    Severity,
)
from .panel_config import configure_panel_from_loads

logger = logging.getLogger(__name__)

CIRCUIT_VOLTAGE_V = 230.0
CIRCUIT_CORES = 3
MOTOR_POWER_FACTOR = 0.8

DEFAULT_MAX_CABLE_RUN_M = 50.0
UNKNOWN_ROOM_CABLE_M = 15.0
ROOM_LABOR_PER_CIRCUIT_S = 900


def estimate_cable_length(room: Room | None, max_cable_run_m: float | None = None) -> float:
    """
    Cable run from the panel: the room's own distance when given, else
    2·√area + 3 m per floor away from ground level + 3 m, capped at
    max_cable_run_m (50 m by default). Basements count like upper floors.
    """
    if room is None:
        return UNKNOWN_ROOM_CABLE_M
    if room.cable_distance_m is not None:
        return float(room.cable_distance_m)
    estimate = 2.0 * math.sqrt(room.area_m2) + 3.0 * abs(room.floor) + 3.0
    cap = max_cable_run_m or DEFAULT_MAX_CABLE_RUN_M
    return round(min(estimate, cap), 1)


def _size_circuit(
    circuit: CircuitConfig,
    length_m: float,
    method: InstallationMethod,
) -> CableSizingResult:
    pf = MOTOR_POWER_FACTOR if circuit.load_category == LoadCategory.MOTOR else 1.0
    return calculate_cable_size(
        CableSizingInput(
            power_w=circuit.connected_load_w,
            voltage_v=CIRCUIT_VOLTAGE_V,
            phase=PhaseType.SINGLE,
            length_m=length_m,
            installation_method=method,
            power_factor=pf,
            core_count=CIRCUIT_CORES,
            cable_type=circuit.cable_type,
            description=circuit.description,
        )
    )


def _room_summaries(
    rooms: Sequence[Room],
    circuits: Sequence[CircuitConfig],
    sizings: Sequence[CableSizingResult],
) -> tuple[RoomSummary, ...]:
    out = []
    for room in rooms:
        idx = [i for i, c in enumerate(circuits) if c.area == room.name]
        out.append(
            RoomSummary(
                room_name=room.name,
                room_type=room.room_type,
                total_load_w=sum(circuits[i].connected_load_w for i in idx),
                circuit_count=len(idx),
                cable_meters=round(sum(sizings[i].length_m for i in idx), 1),
                material_cost=round(sum(sizings[i].total_cable_cost for i in idx), 2),
                labor_time_seconds=len(idx) * ROOM_LABOR_PER_CIRCUIT_S,
            )
        )
    return tuple(out)


def calculate_electrical_project(data: ElectricalProjectInput) -> ElectricalProjectResult:
    """Load analysis, panel, per-circuit cable sizing and compliance for one project."""
    if not data.rooms:
        raise ValueError("project must have at least one room")

    warnings: list[str] = []
    loads = data.all_loads

    load_analysis = calculate_load(loads, data.supply_phase, data.building_type)
    warnings.extend(load_analysis.warnings)

    if data.existing_main_fuse_a is not None:
        adequate = load_analysis.total_demand_current_a <= data.existing_main_fuse_a
        load_analysis = dataclasses.replace(load_analysis, supply_adequate=adequate)
        if not adequate:
            warnings.append(
                f"Existing main fuse {data.existing_main_fuse_a:g} A is insufficient; "
                f"demand is {load_analysis.total_demand_current_a:.0f} A, an upgrade is required"
            )

    panel = configure_panel_from_loads(loads, data.rooms, data.supply_phase, data.is_renovation)
    warnings.extend(panel.warnings)

    rooms_by_name: dict[str, Room] = {}
    for room in data.rooms:
        rooms_by_name.setdefault(room.name, room)

    sizings = []
    for circuit in panel.circuits:
        room = rooms_by_name.get(circuit.area) if circuit.area is not None else None
        length_m = estimate_cable_length(room, data.max_cable_run_m)
        sizings.append(_size_circuit(circuit, length_m, data.default_installation_method))
    cable_sizing = tuple(sizings)

    compliance = check_compliance(panel, cable_sizing, data.rooms)
    warnings.extend(i.description for i in compliance.issues if i.severity == Severity.WARNING)

    room_summaries = _room_summaries(data.rooms, panel.circuits, cable_sizing)

    total_cable_m = sum(s.length_m for s in cable_sizing)
    total_material = panel.estimated_material_cost + sum(s.total_cable_cost for s in cable_sizing)
    total_labor = panel.estimated_time_seconds + sum(r.labor_time_seconds for r in room_summaries)

    logger.info(
        "project: rooms=%d circuits=%d connected=%d W demand=%d W compliant=%s",
        len(data.rooms),
        len(panel.circuits),
        load_analysis.total_connected_load_w,
        load_analysis.total_demand_load_w,
        compliance.compliant,
    )

    return ElectricalProjectResult(
        load_analysis=load_analysis,
        panel=panel,
        cable_sizing=cable_sizing,
        compliance=compliance,
        room_summaries=room_summaries,
        total_cable_meters=round(total_cable_m),
        total_electrical_material_cost=round(total_material),
        total_electrical_labor_seconds=int(total_labor),
        warnings=tuple(dict.fromkeys(warnings)),
    )

"""
Distribution board configuration.

Walks rooms in order, turns each room's loads into circuits, places every
circuit on a phase as it is created, groups circuits without their own
residual-current protection under shared RCDs, then budgets DIN modules,
picks the enclosure and prices the board.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .models import (
    BreakerType,
    CableType,
    Characteristic,
    CircuitConfig,
    CostItem,
    LoadCategory,
    LoadEntry,
    PanelConfiguration,
    PanelType,
    PhaseType,
    RCDGroup,
    RCDType,
    Room,
    SurgeProtection,
    SurgeType,
)
from .phase_balance import PhaseLoadTracker
from .reference_data import (
    BREAKER_RATINGS,
    ENCLOSURE_SIZES,
    RCD_COST_DEFAULT,
    RCD_MODULES_DEFAULT,
    SURGE_PROTECTION_COSTS,
    breaker_cost,
    cable_for_breaker,
    enclosure_cost,
    enclosure_for_modules,
    main_switch_cost,
    rcd_device,
    select_breaker_rating,
)

logger = logging.getLogger(__name__)

PANEL_NAME = "Main distribution board"

CIRCUIT_VOLTAGE_V = 230.0
U_LL_V = 400.0

LIGHTING_MAX_W = 2300.0  # ~10 A per lighting circuit
LIGHTING_RATING_A = 10
LIGHTING_CABLE_MM2 = 1.5

OUTLETS_MAX_POINTS = 10
OUTLETS_MAX_W = 3680.0  # 16 A x 230 V
OUTLETS_RATING_A = 16
OUTLETS_CABLE_MM2 = 2.5

OTHER_RATING_A = 16
OTHER_CABLE_MM2 = 2.5

RCD_SENSITIVITY_MA = 30
RCD_GROUP_MAX_CIRCUITS = 6
# Heuristic, not a normative value: group W / 230 x 0.5, at least 40 A
RCD_GROUP_DIVERSITY = 0.5
RCD_GROUP_MIN_RATING_A = 40

MAIN_SWITCH_MODULES_1PH = 2
MAIN_SWITCH_MODULES_3PH = 4
MCB_MODULES = 1
RCBO_MODULES = 2
SURGE_MODULES = 3
SURGE_TYPE = SurgeType.TYPE2
SPARE_MARGIN_NUM, SPARE_MARGIN_DEN = 6, 5  # +20 %
MAIN_SWITCH_DIVERSITY = 0.6

SPARE_WARN_PCT = 15.0

PANEL_BASE_TIME_S = 3600
PER_CIRCUIT_TIME_S = 900
MISC_COST_PER_CIRCUIT = 25
MISC_COST_BASE = 200

NOTE_EV = "EV charger requires RCD Type B (30 mA) per DS/HD 60364-7-722"
NOTE_WET_ROOM = "{room}: all circuits require RCD 30 mA protection per DS/HD 60364-7-701"
NOTE_RENOVATION = "Renovation: the existing installation must be inspected for compatibility"
WARN_RENOVATION = "Renovation: existing RCD protection and earthing should be inspected"

PARTITION_LIGHTING = "lighting"
PARTITION_OUTLETS = "outlets"
PARTITION_HEAVY = "heavy"
PARTITION_HEATING = "heating"
PARTITION_OTHER = "other"


def partition_for(category: LoadCategory) -> str:
    """Circuit partition of a load category. Every category must be handled here."""
    category = LoadCategory(category)
    if category == LoadCategory.LIGHTING:
        return PARTITION_LIGHTING
    if category == LoadCategory.SOCKET_OUTLET:
        return PARTITION_OUTLETS
    if category in (LoadCategory.FIXED_APPLIANCE, LoadCategory.COOKING, LoadCategory.EV_CHARGER):
        return PARTITION_HEAVY
    if category == LoadCategory.HEATING:
        return PARTITION_HEATING
    if category in (LoadCategory.MOTOR, LoadCategory.DATA_EQUIPMENT, LoadCategory.OTHER):
        return PARTITION_OTHER
    raise ValueError(f"Unhandled load category: {category}")


def characteristic_for(category: LoadCategory) -> Characteristic:
    category = LoadCategory(category)
    if category == LoadCategory.MOTOR:
        return Characteristic.C
    return Characteristic.B


@dataclass
class _Builder:
    tracker: PhaseLoadTracker
    circuits: list[CircuitConfig] = field(default_factory=list)
    compliance_notes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add(
        self,
        *,
        description: str,
        load_w: float,
        breaker_type: BreakerType,
        rating_a: int,
        cable_mm2: float,
        category: LoadCategory,
        room: Room,
        characteristic: Characteristic = Characteristic.B,
        rcd_type: RCDType | None = None,
        point_count: int | None = None,
    ) -> CircuitConfig:
        ph = self.tracker.assign(load_w)
        circuit = CircuitConfig(
            position=len(self.circuits) + 1,
            description=description,
            breaker_type=breaker_type,
            rating_a=rating_a,
            characteristic=characteristic,
            phase=ph,
            cable_cross_section=cable_mm2,
            cable_type=CableType.PVT,
            connected_load_w=round(load_w),
            load_category=category,
            area=room.name,
            rcd_type=rcd_type,
            rcd_sensitivity_ma=RCD_SENSITIVITY_MA if rcd_type is not None else None,
            point_count=point_count,
        )
        self.circuits.append(circuit)
        return circuit


def _numbered(label: str, room: Room, idx: int, count: int) -> str:
    if count > 1:
        return f"{label} {room.name} ({idx + 1}/{count})"
    return f"{label} {room.name}"


def _lighting_circuits(b: _Builder, room: Room, loads: Sequence[LoadEntry]) -> None:
    total_w = sum(load.connected_w for load in loads)
    points = sum(load.quantity for load in loads)
    count = max(1, math.ceil(total_w / LIGHTING_MAX_W))
    w_per_circuit = total_w / count
    for i in range(count):
        b.add(
            description=_numbered("Lighting", room, i, count),
            load_w=w_per_circuit,
            breaker_type=BreakerType.MCB,
            rating_a=LIGHTING_RATING_A,
            cable_mm2=LIGHTING_CABLE_MM2,
            category=LoadCategory.LIGHTING,
            room=room,
            point_count=math.ceil(points / count),
        )


def _outlet_circuits(b: _Builder, room: Room, loads: Sequence[LoadEntry]) -> None:
    total_w = sum(load.connected_w for load in loads)
    outlets = sum(load.quantity for load in loads)
    count = max(
        1,
        math.ceil(outlets / OUTLETS_MAX_POINTS),
        math.ceil(total_w / OUTLETS_MAX_W),
    )
    w_per_circuit = total_w / count
    for i in range(count):
        b.add(
            description=_numbered("Socket outlets", room, i, count),
            load_w=w_per_circuit,
            breaker_type=BreakerType.RCBO if room.is_wet_room else BreakerType.MCB,
            rating_a=OUTLETS_RATING_A,
            cable_mm2=OUTLETS_CABLE_MM2,
            category=LoadCategory.SOCKET_OUTLET,
            room=room,
            rcd_type=RCDType.A if room.is_wet_room else None,
            point_count=math.ceil(outlets / count),
        )


def _dedicated_rating(b: _Builder, load: LoadEntry, room: Room) -> int:
    current = load.connected_w / CIRCUIT_VOLTAGE_V
    rating = select_breaker_rating(current)
    if current > BREAKER_RATINGS[-1]:
        b.warnings.append(
            f"{load.description or load.category.value} ({room.name}) draws {current:.0f} A, "
            f"above the largest {BREAKER_RATINGS[-1]} A breaker; a dedicated sub-panel is needed"
        )
    return rating


def _heavy_circuit(b: _Builder, room: Room, load: LoadEntry) -> None:
    rating = _dedicated_rating(b, load, room)
    is_ev = load.category == LoadCategory.EV_CHARGER
    b.add(
        description=f"{load.description or load.category.value} ({room.name})",
        load_w=load.connected_w,
        breaker_type=BreakerType.RCBO if is_ev else BreakerType.MCB,
        rating_a=rating,
        cable_mm2=cable_for_breaker(rating),
        category=load.category,
        room=room,
        characteristic=characteristic_for(load.category),
        rcd_type=RCDType.B if is_ev else None,
    )
    if is_ev:
        b.compliance_notes.append(NOTE_EV)


def _heating_circuit(b: _Builder, room: Room, load: LoadEntry) -> None:
    rating = _dedicated_rating(b, load, room)
    b.add(
        description=f"{load.description or load.category.value} ({room.name})",
        load_w=load.connected_w,
        breaker_type=BreakerType.RCBO if room.is_wet_room else BreakerType.MCB,
        rating_a=rating,
        cable_mm2=cable_for_breaker(rating),
        category=LoadCategory.HEATING,
        room=room,
        rcd_type=RCDType.A if room.is_wet_room else None,
    )


def _other_circuit(b: _Builder, room: Room, load: LoadEntry) -> None:
    b.add(
        description=f"{load.description or load.category.value} ({room.name})",
        load_w=load.connected_w,
        breaker_type=BreakerType.MCB,
        rating_a=OTHER_RATING_A,
        cable_mm2=OTHER_CABLE_MM2,
        category=load.category,
        room=room,
        characteristic=characteristic_for(load.category),
    )


def _room_circuits(b: _Builder, room: Room) -> None:
    parts: dict[str, list[LoadEntry]] = {
        PARTITION_LIGHTING: [],
        PARTITION_OUTLETS: [],
        PARTITION_HEAVY: [],
        PARTITION_HEATING: [],
        PARTITION_OTHER: [],
    }
    for load in room.loads:
        parts[partition_for(load.category)].append(load)

    if parts[PARTITION_LIGHTING]:
        _lighting_circuits(b, room, parts[PARTITION_LIGHTING])
    if parts[PARTITION_OUTLETS]:
        _outlet_circuits(b, room, parts[PARTITION_OUTLETS])
    for load in parts[PARTITION_HEAVY]:
        _heavy_circuit(b, room, load)
    for load in parts[PARTITION_HEATING]:
        _heating_circuit(b, room, load)
    for load in parts[PARTITION_OTHER]:
        _other_circuit(b, room, load)

    if room.is_wet_room:
        b.compliance_notes.append(NOTE_WET_ROOM.format(room=room.name))


def _rcd_modules(rcd_type: RCDType, rating_a: int) -> int:
    device = rcd_device(rcd_type, rating_a)
    return device.modules if device is not None else RCD_MODULES_DEFAULT


def build_rcd_groups(circuits: Sequence[CircuitConfig]) -> tuple[RCDGroup, ...]:
    """
    Shared RCDs for circuits on plain MCBs, at most six per group, socket
    circuits grouped apart from lighting and other circuits.
    """
    unprotected = [c for c in circuits if c.breaker_type == BreakerType.MCB]
    sockets = [c for c in unprotected if c.load_category == LoadCategory.SOCKET_OUTLET]
    others = [c for c in unprotected if c.load_category != LoadCategory.SOCKET_OUTLET]

    groups: list[RCDGroup] = []
    for i in range(0, len(sockets), RCD_GROUP_MAX_CIRCUITS):
        batch = sockets[i : i + RCD_GROUP_MAX_CIRCUITS]
        group_w = sum(c.connected_load_w for c in batch)
        needed = select_breaker_rating(group_w / CIRCUIT_VOLTAGE_V * RCD_GROUP_DIVERSITY)
        rating = max(needed, RCD_GROUP_MIN_RATING_A)
        groups.append(
            RCDGroup(
                description=f"RCD socket outlets (group {len(groups) + 1})",
                rcd_type=RCDType.A,
                sensitivity_ma=RCD_SENSITIVITY_MA,
                rating_a=rating,
                circuits=tuple(c.position for c in batch),
                modules=_rcd_modules(RCDType.A, rating),
            )
        )
    for i in range(0, len(others), RCD_GROUP_MAX_CIRCUITS):
        batch = others[i : i + RCD_GROUP_MAX_CIRCUITS]
        groups.append(
            RCDGroup(
                description=f"RCD lighting/other (group {len(groups) + 1})",
                rcd_type=RCDType.A,
                sensitivity_ma=RCD_SENSITIVITY_MA,
                rating_a=RCD_GROUP_MIN_RATING_A,
                circuits=tuple(c.position for c in batch),
                modules=_rcd_modules(RCDType.A, RCD_GROUP_MIN_RATING_A),
            )
        )
    return tuple(groups)


def _breaker_modules(breaker_type: BreakerType) -> int:
    breaker_type = BreakerType(breaker_type)
    if breaker_type == BreakerType.MCB:
        return MCB_MODULES
    if breaker_type in (BreakerType.RCBO, BreakerType.RCD):
        return RCBO_MODULES
    raise ValueError(f"Unhandled breaker type: {breaker_type}")


def count_modules(
    circuits: Sequence[CircuitConfig],
    rcd_groups: Sequence[RCDGroup],
    phase: PhaseType,
    surge: SurgeProtection,
) -> int:
    used = MAIN_SWITCH_MODULES_3PH if PhaseType(phase) == PhaseType.THREE else MAIN_SWITCH_MODULES_1PH
    used += sum(g.modules for g in rcd_groups)
    used += sum(_breaker_modules(c.breaker_type) for c in circuits)
    if surge.required:
        used += surge.modules
    return used


def main_switch_rating(circuits: Sequence[CircuitConfig], phase: PhaseType) -> int:
    total_w = sum(c.connected_load_w for c in circuits)
    if PhaseType(phase) == PhaseType.SINGLE:
        current = total_w / CIRCUIT_VOLTAGE_V
    else:
        current = total_w / (math.sqrt(3.0) * U_LL_V)
    return select_breaker_rating(current * MAIN_SWITCH_DIVERSITY)


def calculate_panel_costs(
    circuits: Sequence[CircuitConfig],
    rcd_groups: Sequence[RCDGroup],
    total_modules: int,
    surge: SurgeProtection,
    main_switch_a: int,
) -> tuple[tuple[CostItem, ...], tuple[str, ...]]:
    """Itemized cost breakdown (DKK) plus warnings for untabulated prices."""
    items: list[CostItem] = []
    warnings: list[str] = []

    enclosure, tabulated = enclosure_cost(total_modules)
    if not tabulated:
        warnings.append(f"Enclosure cost for {total_modules} modules not tabulated; default used")
    items.append(CostItem(f"Enclosure {total_modules} modules", 1, enclosure, enclosure))

    switch = main_switch_cost(main_switch_a)
    items.append(CostItem(f"Main switch {main_switch_a} A", 1, switch, switch))

    counts: Counter[tuple[BreakerType, int, Characteristic]] = Counter()
    for c in circuits:
        counts[(c.breaker_type, c.rating_a, c.characteristic)] += 1
    for (breaker_type, rating, char), qty in counts.items():
        unit, tabulated = breaker_cost(breaker_type, rating)
        if not tabulated:
            warnings.append(
                f"Breaker cost for {breaker_type.value} {rating} A not tabulated; "
                f"default {unit:g} DKK used"
            )
        items.append(CostItem(f"{breaker_type.value} {rating}A {char.value}", qty, unit, unit * qty))

    for group in rcd_groups:
        device = rcd_device(group.rcd_type, group.rating_a)
        if device is None:
            unit = float(RCD_COST_DEFAULT)
            warnings.append(
                f"RCD cost for type {group.rcd_type.value} {group.rating_a} A not tabulated; "
                f"default {unit:g} DKK used"
            )
        else:
            unit = float(device.cost_dkk)
        items.append(CostItem(group.description, 1, unit, unit))

    if surge.required and surge.type is not None:
        unit = float(SURGE_PROTECTION_COSTS[surge.type])
        items.append(CostItem(f"Surge protection {surge.type.value}", 1, unit, unit))

    misc = float(round(len(circuits) * MISC_COST_PER_CIRCUIT + MISC_COST_BASE))
    items.append(CostItem("Bus bars, terminals, labelling", 1, misc, misc))

    return tuple(items), tuple(warnings)


def _unassigned_loads(loads: Iterable[LoadEntry], rooms: Sequence[Room]) -> int:
    remaining = Counter(loads)
    for room in rooms:
        remaining.subtract(room.loads)
    return sum(n for n in remaining.values() if n > 0)


def configure_panel_from_loads(
    loads: Iterable[LoadEntry],
    rooms: Sequence[Room],
    phase: PhaseType,
    is_renovation: bool = False,
) -> PanelConfiguration:
    phase = PhaseType(phase)
    b = _Builder(tracker=PhaseLoadTracker(phase))

    for room in rooms:
        if not room.loads:
            continue
        _room_circuits(b, room)

    orphans = _unassigned_loads(loads, rooms)
    if orphans:
        b.warnings.append(f"{orphans} load(s) are not assigned to any room and were not wired")

    circuits = tuple(b.circuits)
    rcd_groups = build_rcd_groups(circuits)
    surge = SurgeProtection(required=True, type=SURGE_TYPE, modules=SURGE_MODULES)

    modules_used = count_modules(circuits, rcd_groups, phase, surge)
    min_modules = -(-modules_used * SPARE_MARGIN_NUM // SPARE_MARGIN_DEN)
    total_modules = enclosure_for_modules(min_modules)
    if total_modules is None:
        total_modules = ENCLOSURE_SIZES[-1]
        b.warnings.append(
            f"{min_modules} modules needed; exceeds the largest {total_modules}-module enclosure, "
            "split into sub-panels"
        )

    main_a = main_switch_rating(circuits, phase)
    cost_items, cost_warnings = calculate_panel_costs(
        circuits, rcd_groups, total_modules, surge, main_a
    )
    b.warnings.extend(cost_warnings)

    if is_renovation:
        b.compliance_notes.append(NOTE_RENOVATION)
        b.warnings.append(WARN_RENOVATION)

    spare_pct = 100.0 * (total_modules - modules_used) / total_modules
    if spare_pct < SPARE_WARN_PCT:
        b.warnings.append("Low spare capacity in the panel; consider a larger enclosure for future extensions")

    logger.debug(
        "panel: %d circuits, %d RCD groups, %d/%d modules, main switch %d A",
        len(circuits),
        len(rcd_groups),
        modules_used,
        total_modules,
        main_a,
    )

    return PanelConfiguration(
        name=PANEL_NAME,
        panel_type=PanelType.MAIN,
        total_modules=total_modules,
        modules_used=modules_used,
        spare_capacity_pct=round(spare_pct, 1),
        main_switch_rating_a=main_a,
        phase_type=phase,
        rcd_groups=rcd_groups,
        circuits=circuits,
        surge_protection=surge,
        estimated_material_cost=sum(item.total_cost for item in cost_items),
        estimated_time_seconds=PANEL_BASE_TIME_S + len(circuits) * PER_CIRCUIT_TIME_S,
        cost_breakdown=cost_items,
        compliance_notes=tuple(b.compliance_notes),
        warnings=tuple(b.warnings),
    )

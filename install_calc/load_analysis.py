from __future__ import annotations

import logging
import math
from typing import Iterable

from .models import (
    BuildingType,
    CategoryLoad,
    LoadAnalysisResult,
    LoadCategory,
    LoadEntry,
    PhaseLoads,
    PhaseType,
    frozen_mapping,
)
from .phase_balance import PhaseLoadTracker, imbalance_pct
from .reference_data import (
    DEFAULT_DEMAND_FACTOR,
    diversity_table,
    next_breaker_rating,
    select_breaker_rating,
)

logger = logging.getLogger(__name__)

U_PH_V = 230.0
U_LL_V = 400.0

IMBALANCE_WARN_PCT = 20.0
SINGLE_PHASE_MAX_CURRENT_A = 63.0
SINGLE_PHASE_MAX_DEMAND_W = 17000.0


def supply_voltage(phase: PhaseType) -> float:
    phase = PhaseType(phase)
    if phase == PhaseType.SINGLE:
        return U_PH_V
    if phase == PhaseType.THREE:
        return U_LL_V
    raise ValueError(f"Unsupported phase: {phase}")


def _calc_current(power_w: float, phase: PhaseType) -> float:
    phase = PhaseType(phase)
    if phase == PhaseType.THREE:
        return power_w / (math.sqrt(3.0) * U_LL_V)
    if phase == PhaseType.SINGLE:
        return power_w / U_PH_V
    raise ValueError(f"Unsupported phase: {phase}")


def calculate_load(
    loads: Iterable[LoadEntry],
    phase: PhaseType,
    building_type: BuildingType = BuildingType.RESIDENTIAL,
) -> LoadAnalysisResult:
    """
    Diversity-adjusted demand for a project's loads, per-phase distribution
    and main breaker / supply fuse recommendation. `supply_adequate` is always
    True here; the project orchestrator decides it against an existing fuse.
    """
    phase = PhaseType(phase)
    building_type = BuildingType(building_type)
    warnings: list[str] = []

    factors, tabulated = diversity_table(building_type)
    if not tabulated:
        warnings.append(
            f"No diversity table for {building_type.value} buildings; residential factors used"
        )

    tracker = PhaseLoadTracker(phase)
    # category -> [connected, demand, count], in first-seen order
    per_category: dict[LoadCategory, list[float]] = {}
    untabulated: list[LoadCategory] = []

    total_connected = 0.0
    total_demand = 0.0

    for load in loads:
        connected = load.connected_w
        if load.demand_factor is not None:
            factor = float(load.demand_factor)
        else:
            factor = factors.get(load.category)
            if factor is None:
                factor = DEFAULT_DEMAND_FACTOR
                if load.category not in untabulated:
                    untabulated.append(load.category)
        demand = connected * factor

        total_connected += connected
        total_demand += demand

        acc = per_category.setdefault(load.category, [0.0, 0.0, 0])
        acc[0] += connected
        acc[1] += demand
        acc[2] += load.quantity

        tracker.assign(demand, load.phase_assignment)

    for category in untabulated:
        warnings.append(
            f"Diversity factor for category '{category.value}' not tabulated; "
            f"default {DEFAULT_DEMAND_FACTOR:g} used"
        )

    phase_loads = tracker.snapshot()
    imbalance = imbalance_pct(*phase_loads.as_tuple()) if phase == PhaseType.THREE else 0.0

    total_current = _calc_current(total_demand, phase)
    main_breaker = select_breaker_rating(total_current)
    supply_fuse = next_breaker_rating(main_breaker)

    breakdown = []
    for category, (connected, demand, count) in per_category.items():
        if connected > 0:
            effective = demand / connected
        else:
            effective = factors.get(category, DEFAULT_DEMAND_FACTOR)
        breakdown.append(
            CategoryLoad(
                category=category,
                connected_load_w=round(connected),
                demand_factor=round(effective, 3),
                demand_load_w=round(demand),
                count=int(count),
            )
        )

    if imbalance > IMBALANCE_WARN_PCT:
        warnings.append(
            f"Phase loads are unbalanced by {imbalance:.0f}%; consider redistributing loads"
        )
    if total_current > SINGLE_PHASE_MAX_CURRENT_A and phase == PhaseType.SINGLE:
        warnings.append("Total demand current requires a 3-phase supply")
    if total_demand > SINGLE_PHASE_MAX_DEMAND_W and phase == PhaseType.SINGLE:
        warnings.append(
            "Total demand exceeds a typical 1-phase connection; a 3-phase supply is recommended"
        )

    logger.debug(
        "load analysis: connected=%.0f W demand=%.0f W I=%.2f A main=%d A fuse=%d A",
        total_connected,
        total_demand,
        total_current,
        main_breaker,
        supply_fuse,
    )

    return LoadAnalysisResult(
        total_connected_load_w=round(total_connected),
        total_demand_load_w=round(total_demand),
        total_demand_current_a=round(total_current, 2),
        phase_loads=PhaseLoads(
            phase_1_w=round(phase_loads.phase_1_w),
            phase_2_w=round(phase_loads.phase_2_w),
            phase_3_w=round(phase_loads.phase_3_w),
        ),
        phase_imbalance_pct=round(imbalance, 1),
        recommended_main_breaker_a=main_breaker,
        supply_adequate=True,
        recommended_supply_fuse_a=supply_fuse,
        diversity_factors_used=frozen_mapping(factors),
        category_breakdown=tuple(breakdown),
        warnings=tuple(warnings),
    )

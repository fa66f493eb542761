"""
Reference tables (IEC 60364-5-52 / DS/HD 60364-5-52) and unit costs.

Tables are read-only mappings keyed by the closed enums from models.py.
Lookups that can miss return None (or a conservative default together with
a flag) so that callers can record an explicit "not tabulated" warning
instead of silently estimating.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .models import (
    BreakerType,
    BuildingType,
    CableType,
    InstallationMethod,
    LoadCategory,
    RCDType,
    SurgeType,
)

CABLE_SIZES: tuple[float, ...] = (1.5, 2.5, 4, 6, 10, 16, 25, 35, 50, 70, 95, 120)
BREAKER_RATINGS: tuple[int, ...] = (6, 10, 13, 16, 20, 25, 32, 40, 50, 63, 80, 100)
ENCLOSURE_SIZES: tuple[int, ...] = (12, 24, 36, 48, 72)

# Ω·mm²/m
RHO_CU_20C = 0.0175
RHO_CU_70C = 0.0225

# Reference method for cable/breaker coordination (most common in dwellings)
COORDINATION_METHOD = InstallationMethod.B2
COORDINATION_CORES = 3

DEFAULT_DEMAND_FACTOR = 0.5


def _freeze(data: dict) -> Mapping:
    return MappingProxyType(
        {k: _freeze(v) if isinstance(v, dict) else v for k, v in data.items()}
    )


def _row(*values: float) -> dict[float, float]:
    return dict(zip(CABLE_SIZES, values))


# PVC-insulated copper at 30 °C, Tables B.52.2–B.52.5: [method][cores][mm²] = A
CURRENT_CAPACITY: Mapping[InstallationMethod, Mapping[int, Mapping[float, float]]] = _freeze(
    {
        InstallationMethod.A1: {
            2: _row(15.5, 21, 28, 36, 50, 68, 89, 110, 134, 171, 207, 239),
            3: _row(13.5, 18, 24, 31, 42, 57, 75, 92, 110, 139, 167, 192),
        },
        InstallationMethod.A2: {
            2: _row(15, 20, 27, 34, 46, 62, 80, 99, 119, 151, 182, 210),
            3: _row(13, 17.5, 23, 29, 39, 52, 68, 83, 99, 125, 150, 172),
        },
        InstallationMethod.B1: {
            2: _row(17.5, 24, 32, 41, 57, 76, 101, 125, 151, 192, 232, 269),
            3: _row(15.5, 21, 28, 36, 50, 68, 89, 110, 134, 171, 207, 239),
        },
        InstallationMethod.B2: {
            2: _row(16.5, 23, 30, 38, 52, 69, 90, 111, 133, 168, 201, 232),
            3: _row(15, 20, 27, 34, 46, 62, 80, 99, 119, 151, 182, 210),
        },
        InstallationMethod.C: {
            2: _row(19.5, 27, 36, 46, 63, 85, 112, 138, 168, 213, 258, 299),
            3: _row(17.5, 24, 32, 41, 57, 76, 96, 119, 144, 184, 223, 259),
        },
        InstallationMethod.E: {
            2: _row(22, 30, 40, 51, 70, 94, 119, 148, 180, 232, 282, 328),
            3: _row(19.5, 26, 35, 44, 60, 80, 101, 126, 153, 196, 238, 276),
        },
        InstallationMethod.F: {
            2: _row(24, 33, 45, 58, 80, 107, 138, 169, 207, 268, 328, 382),
            3: _row(22, 30, 40, 51, 70, 94, 119, 147, 179, 229, 278, 322),
        },
    }
)

# Table B.52.14, reference 30 °C
TEMP_CORRECTION: Mapping[int, float] = _freeze(
    {
        10: 1.22, 15: 1.17, 20: 1.12, 25: 1.06,
        30: 1.00, 35: 0.94, 40: 0.87, 45: 0.79,
        50: 0.71, 55: 0.61, 60: 0.50,
    }
)

# Table B.52.17, cables bundled or on the same tray
GROUPING_CORRECTION: Mapping[int, float] = _freeze(
    {
        1: 1.00, 2: 0.80, 3: 0.70, 4: 0.65,
        5: 0.60, 6: 0.57, 7: 0.54, 8: 0.52,
        9: 0.50, 10: 0.48, 12: 0.45, 16: 0.41,
        20: 0.38,
    }
)

# DS/HD 60364-3 demand factors. OTHER is deliberately absent (default applies).
DIVERSITY_RESIDENTIAL: Mapping[LoadCategory, float] = _freeze(
    {
        LoadCategory.LIGHTING: 0.85,
        LoadCategory.SOCKET_OUTLET: 0.40,
        LoadCategory.FIXED_APPLIANCE: 0.75,
        LoadCategory.MOTOR: 0.70,
        LoadCategory.HEATING: 0.85,
        LoadCategory.COOKING: 0.65,
        LoadCategory.EV_CHARGER: 1.00,
        LoadCategory.DATA_EQUIPMENT: 0.60,
    }
)

DIVERSITY_COMMERCIAL: Mapping[LoadCategory, float] = _freeze(
    {
        LoadCategory.LIGHTING: 0.90,
        LoadCategory.SOCKET_OUTLET: 0.30,
        LoadCategory.FIXED_APPLIANCE: 0.80,
        LoadCategory.MOTOR: 0.75,
        LoadCategory.HEATING: 0.80,
        LoadCategory.COOKING: 0.70,
        LoadCategory.EV_CHARGER: 0.80,
        LoadCategory.DATA_EQUIPMENT: 0.70,
    }
)

DIVERSITY_TABLES: Mapping[BuildingType, Mapping[LoadCategory, float]] = MappingProxyType(
    {
        BuildingType.RESIDENTIAL: DIVERSITY_RESIDENTIAL,
        BuildingType.COMMERCIAL: DIVERSITY_COMMERCIAL,
    }
)

# DKK per meter: (cable_type, mm², cores) -> cost
CABLE_COSTS: Mapping[tuple[CableType, float, int], float] = MappingProxyType(
    {
        (CableType.PVT, 1.5, 3): 8,
        (CableType.PVT, 2.5, 3): 12,
        (CableType.PVT, 4, 3): 18,
        (CableType.PVT, 6, 3): 26,
        (CableType.PVT, 10, 3): 42,
        (CableType.PVT, 16, 3): 65,
        (CableType.PVT, 25, 3): 98,
        (CableType.PVT, 1.5, 2): 6,
        (CableType.PVT, 2.5, 2): 9,
        (CableType.PVT, 4, 2): 14,
        (CableType.NOIKLX, 4, 3): 35,
        (CableType.NOIKLX, 6, 3): 48,
        (CableType.NOIKLX, 10, 3): 72,
        (CableType.NOIKLX, 16, 3): 105,
        (CableType.NOIKLX, 25, 3): 155,
    }
)

CABLE_COST_MULTIPLIER: Mapping[CableType, float] = MappingProxyType(
    {
        CableType.PVT: 1.0,
        CableType.NOIKLX: 2.0,
        CableType.PR: 1.0,
        CableType.PFSP: 2.5,
        CableType.FK: 1.0,
    }
)


@dataclass(frozen=True)
class DeviceCost:
    cost_dkk: float
    modules: int


# (breaker_type, rating) -> cost, modules
BREAKER_COSTS: Mapping[tuple[BreakerType, int], DeviceCost] = MappingProxyType(
    {
        (BreakerType.MCB, 6): DeviceCost(85, 1),
        (BreakerType.MCB, 10): DeviceCost(85, 1),
        (BreakerType.MCB, 13): DeviceCost(90, 1),
        (BreakerType.MCB, 16): DeviceCost(90, 1),
        (BreakerType.MCB, 20): DeviceCost(95, 1),
        (BreakerType.MCB, 25): DeviceCost(110, 1),
        (BreakerType.MCB, 32): DeviceCost(130, 1),
        (BreakerType.MCB, 40): DeviceCost(165, 1),
        (BreakerType.RCBO, 10): DeviceCost(450, 2),
        (BreakerType.RCBO, 16): DeviceCost(450, 2),
        (BreakerType.RCBO, 20): DeviceCost(480, 2),
        (BreakerType.RCBO, 25): DeviceCost(520, 2),
        (BreakerType.RCBO, 32): DeviceCost(850, 2),
    }
)

# (rcd_type, rating) -> cost, modules
RCD_COSTS: Mapping[tuple[RCDType, int], DeviceCost] = MappingProxyType(
    {
        (RCDType.A, 25): DeviceCost(650, 2),
        (RCDType.A, 40): DeviceCost(750, 2),
        (RCDType.A, 63): DeviceCost(850, 4),
        (RCDType.B, 40): DeviceCost(2200, 4),
    }
)

BREAKER_COST_DEFAULT: Mapping[BreakerType, float] = MappingProxyType(
    {
        BreakerType.MCB: 95,
        BreakerType.RCBO: 480,
        BreakerType.RCD: 750,
    }
)
RCD_COST_DEFAULT = 750
RCD_MODULES_DEFAULT = 2

ENCLOSURE_COSTS: Mapping[int, float] = MappingProxyType(
    {12: 450, 24: 750, 36: 1100, 48: 1500, 72: 2200}
)
ENCLOSURE_COST_DEFAULT = 1500

SURGE_PROTECTION_COSTS: Mapping[SurgeType, float] = MappingProxyType(
    {
        SurgeType.TYPE2: 1200,
        SurgeType.TYPE1_2: 3500,
        SurgeType.TYPE1: 2500,
    }
)

MAIN_SWITCH_BASE_COST = 350
MAIN_SWITCH_SURCHARGE = 200
MAIN_SWITCH_SURCHARGE_ABOVE_A = 40


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def temperature_correction(temp_c: float) -> float:
    """Factor of the nearest tabulated temperature (ties resolve to the lower key)."""
    keys = sorted(TEMP_CORRECTION)
    closest = keys[0]
    for key in keys:
        if abs(key - temp_c) < abs(closest - temp_c):
            closest = key
    return TEMP_CORRECTION[closest]


def grouping_correction(count: int) -> float:
    """Factor of the largest tabulated group size <= count."""
    if count <= 1:
        return 1.0
    chosen = None
    for key in sorted(GROUPING_CORRECTION):
        if key <= count:
            chosen = key
    return GROUPING_CORRECTION[chosen] if chosen is not None else 1.0


def current_capacity(
    method: InstallationMethod,
    core_count: int,
    cross_section: float,
) -> float | None:
    method = InstallationMethod(method)
    by_cores = CURRENT_CAPACITY.get(method)
    if by_cores is None:
        return None
    table = by_cores.get(core_count)
    if table is None:
        return None
    return table.get(cross_section)


def select_breaker_rating(current_a: float) -> int:
    """Smallest ladder rating >= current_a; the ladder maximum when none is."""
    for rating in BREAKER_RATINGS:
        if rating >= current_a:
            return rating
    return BREAKER_RATINGS[-1]


def next_breaker_rating(rating: int) -> int:
    idx = BREAKER_RATINGS.index(rating)
    if idx < len(BREAKER_RATINGS) - 1:
        return BREAKER_RATINGS[idx + 1]
    return rating


def cable_for_breaker(rating_a: int) -> float:
    """
    Smallest cross-section that the reference method can protect with rating_a
    (Ib <= In <= Iz). Falls back to the largest size for ratings beyond the table.
    """
    table = CURRENT_CAPACITY[COORDINATION_METHOD][COORDINATION_CORES]
    for size in CABLE_SIZES:
        if table[size] >= rating_a:
            return size
    return CABLE_SIZES[-1]


def diversity_table(building_type: BuildingType) -> tuple[Mapping[LoadCategory, float], bool]:
    """Returns (table, tabulated); untabulated building types use the residential table."""
    building_type = BuildingType(building_type)
    table = DIVERSITY_TABLES.get(building_type)
    if table is None:
        return DIVERSITY_RESIDENTIAL, False
    return table, True


def cable_cost(cable_type: CableType, cross_section: float, core_count: int) -> tuple[float, bool]:
    """Returns (DKK per meter, tabulated)."""
    cable_type = CableType(cable_type)
    cost = CABLE_COSTS.get((cable_type, cross_section, core_count))
    if cost is not None:
        return float(cost), True
    estimate = round(cross_section * 3 * CABLE_COST_MULTIPLIER[cable_type])
    return float(estimate), False


def breaker_cost(breaker_type: BreakerType, rating_a: int) -> tuple[float, bool]:
    entry = BREAKER_COSTS.get((BreakerType(breaker_type), rating_a))
    if entry is None:
        return float(BREAKER_COST_DEFAULT[BreakerType(breaker_type)]), False
    return float(entry.cost_dkk), True


def rcd_device(rcd_type: RCDType, rating_a: int) -> DeviceCost | None:
    return RCD_COSTS.get((RCDType(rcd_type), rating_a))


def enclosure_for_modules(modules_needed: int) -> int | None:
    for size in ENCLOSURE_SIZES:
        if size >= modules_needed:
            return size
    return None


def enclosure_cost(modules: int) -> tuple[float, bool]:
    cost = ENCLOSURE_COSTS.get(modules)
    if cost is None:
        return float(ENCLOSURE_COST_DEFAULT), False
    return float(cost), True


def main_switch_cost(rating_a: int) -> float:
    surcharge = MAIN_SWITCH_SURCHARGE if rating_a > MAIN_SWITCH_SURCHARGE_ABOVE_A else 0
    return float(MAIN_SWITCH_BASE_COST + surcharge)


def reference_tables() -> dict:
    """Plain-dict snapshot of the reference data for display by callers."""
    return {
        "cable_sizes_mm2": list(CABLE_SIZES),
        "breaker_ratings_a": list(BREAKER_RATINGS),
        "enclosure_sizes_modules": list(ENCLOSURE_SIZES),
        "current_capacity_a": {
            method.value: {
                cores: {str(size): amps for size, amps in table.items()}
                for cores, table in by_cores.items()
            }
            for method, by_cores in CURRENT_CAPACITY.items()
        },
        "temperature_correction": dict(TEMP_CORRECTION),
        "grouping_correction": dict(GROUPING_CORRECTION),
        "diversity": {
            building.value: {cat.value: factor for cat, factor in table.items()}
            for building, table in DIVERSITY_TABLES.items()
        },
        "cable_costs_dkk_per_m": [
            {"cable_type": ct.value, "cross_section": size, "core_count": cores, "cost": cost}
            for (ct, size, cores), cost in CABLE_COSTS.items()
        ],
        "breaker_costs_dkk": [
            {"breaker_type": bt.value, "rating_a": rating, "cost": e.cost_dkk, "modules": e.modules}
            for (bt, rating), e in BREAKER_COSTS.items()
        ],
        "rcd_costs_dkk": [
            {"rcd_type": rt.value, "rating_a": rating, "cost": e.cost_dkk, "modules": e.modules}
            for (rt, rating), e in RCD_COSTS.items()
        ],
        "enclosure_costs_dkk": dict(ENCLOSURE_COSTS),
        "resistivity_ohm_mm2_per_m": {"cu_20c": RHO_CU_20C, "cu_70c": RHO_CU_70C},
    }

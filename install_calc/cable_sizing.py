from __future__ import annotations

import logging
import math

from .models import (
    CableSizingInput,
    CableSizingResult,
    InstallationMethod,
    PhaseType,
)
from .reference_data import (
    CABLE_SIZES,
    CURRENT_CAPACITY,
    RHO_CU_70C,
    cable_cost,
    current_capacity,
    grouping_correction,
    temperature_correction,
)

logger = logging.getLogger(__name__)

SELECTION_TABLE = "IEC_60364_5_52"
SELECTION_MAX_SECTION = f"{SELECTION_TABLE}_MAX_SECTION"
SELECTION_DEFAULT = f"{SELECTION_TABLE}_DEFAULT"

# Falls back to this size when no ampacity column exists for method/cores
FALLBACK_CROSS_SECTION = 2.5

SINGLE_PHASE_ADVISORY_A = 32.0
GROUPED_CABLES_ADVISORY = 6


def design_current(power_w: float, voltage_v: float, phase: PhaseType, power_factor: float) -> float:
    if voltage_v <= 0:
        raise ValueError("voltage_v must be > 0")
    if power_factor <= 0.0 or power_factor > 1.0:
        raise ValueError("power_factor must be in (0, 1]")
    phase = PhaseType(phase)
    if phase == PhaseType.SINGLE:
        return power_w / (voltage_v * power_factor)
    if phase == PhaseType.THREE:
        return power_w / (math.sqrt(3.0) * voltage_v * power_factor)
    raise ValueError(f"Unsupported phase: {phase}")


def derating_factor(ambient_temp_c: float, grouped_cables: int) -> float:
    return temperature_correction(ambient_temp_c) * grouping_correction(grouped_cables)


def _b_factor(phase: PhaseType) -> float:
    phase = PhaseType(phase)
    if phase == PhaseType.SINGLE:
        return 2.0
    if phase == PhaseType.THREE:
        return math.sqrt(3.0)
    raise ValueError(f"Unsupported phase: {phase}")


def calc_voltage_drop_v(
    current_a: float,
    length_m: float,
    s_mm2: float,
    phase: PhaseType,
    rho: float = RHO_CU_70C,
) -> float:
    if s_mm2 <= 0:
        raise ValueError("s_mm2 must be > 0")
    if length_m < 0:
        raise ValueError("length_m must be >= 0")
    if current_a < 0:
        raise ValueError("current_a must be >= 0")
    return _b_factor(phase) * length_m * current_a * float(rho) / s_mm2


def min_cross_section_by_current(
    current_a: float,
    method: InstallationMethod,
    core_count: int,
    derating: float = 1.0,
) -> tuple[float, str]:
    """
    Smallest ladder size whose derated ampacity covers current_a.
    Returns (size, selection method).
    """
    method = InstallationMethod(method)
    table = CURRENT_CAPACITY.get(method, {}).get(core_count)
    if not table:
        return FALLBACK_CROSS_SECTION, SELECTION_DEFAULT
    for s_mm2 in CABLE_SIZES:
        capacity = table.get(s_mm2)
        if capacity is not None and capacity * derating >= current_a:
            return s_mm2, SELECTION_TABLE
    return CABLE_SIZES[-1], SELECTION_MAX_SECTION


def min_cross_section_by_voltage_drop(
    current_a: float,
    length_m: float,
    voltage_v: float,
    phase: PhaseType,
    max_drop_pct: float,
) -> tuple[float, str]:
    if voltage_v <= 0:
        raise ValueError("voltage_v must be > 0")
    max_drop_v = (max_drop_pct / 100.0) * voltage_v
    for s_mm2 in CABLE_SIZES:
        if calc_voltage_drop_v(current_a, length_m, s_mm2, phase) <= max_drop_v:
            return s_mm2, SELECTION_TABLE
    return CABLE_SIZES[-1], SELECTION_MAX_SECTION


def cable_designation(cable_type: str, core_count: int, s_mm2: float) -> str:
    size = f"{s_mm2:g}"
    cores = f"2x{size}" if core_count == 2 else f"3G{size}"
    return f"{cable_type} {cores}"


def calculate_cable_size(data: CableSizingInput) -> CableSizingResult:
    """
    Size one circuit: ampacity after derating and voltage drop both have to
    hold, the larger of the two minimum sizes wins. Non-compliance is
    reported through `compliant` and `warnings`, never raised.
    """
    warnings: list[str] = []

    i_design = design_current(data.power_w, data.voltage_v, data.phase, data.power_factor)
    derating = derating_factor(data.ambient_temp_c, data.grouped_cables)

    s_current, method_current = min_cross_section_by_current(
        i_design, data.installation_method, data.core_count, derating
    )
    s_vd, method_vd = min_cross_section_by_voltage_drop(
        i_design, data.length_m, data.voltage_v, data.phase, data.max_voltage_drop_pct
    )
    recommended = max(s_current, s_vd)

    if method_current == SELECTION_DEFAULT:
        warnings.append(
            f"Ampacity for method {data.installation_method.value} with {data.core_count} cores "
            f"not tabulated; default {FALLBACK_CROSS_SECTION:g} mm² used"
        )
    elif method_current == SELECTION_MAX_SECTION:
        warnings.append(
            f"No standard cross-section carries {i_design:.1f} A; largest size {recommended:g} mm² used"
        )
    if method_vd == SELECTION_MAX_SECTION:
        warnings.append(
            f"No standard cross-section keeps voltage drop within {data.max_voltage_drop_pct:g}%; "
            f"largest size {recommended:g} mm² used"
        )

    capacity = current_capacity(data.installation_method, data.core_count, recommended) or 0.0
    capacity_derated = capacity * derating

    du_v = calc_voltage_drop_v(i_design, data.length_m, recommended, data.phase)
    du_pct = 100.0 * du_v / data.voltage_v

    cost_per_meter, tabulated = cable_cost(data.cable_type, recommended, data.core_count)
    if not tabulated:
        warnings.append(
            f"Cable cost for {cable_designation(data.cable_type.value, data.core_count, recommended)} "
            f"not tabulated; estimated {cost_per_meter:g} DKK/m used"
        )

    compliant = True
    if du_pct > data.max_voltage_drop_pct:
        warnings.append(
            f"Voltage drop {du_pct:.1f}% exceeds the {data.max_voltage_drop_pct:g}% limit"
        )
        compliant = False
    if capacity_derated < i_design:
        warnings.append(
            f"Cable capacity {capacity_derated:.1f} A is below design current {i_design:.1f} A"
        )
        compliant = False
    if i_design > SINGLE_PHASE_ADVISORY_A and data.phase == PhaseType.SINGLE:
        warnings.append("Load above 32 A on a single phase; consider a 3-phase connection")
    if data.grouped_cables > GROUPED_CABLES_ADVISORY:
        warnings.append("Many cables grouped together; consider separate routes for better cooling")

    logger.debug(
        "cable sizing %r: I=%.2f A k=%.3f s_current=%g s_vd=%g -> %g mm² (dU=%.2f%%)",
        data.description,
        i_design,
        derating,
        s_current,
        s_vd,
        recommended,
        du_pct,
    )

    return CableSizingResult(
        recommended_cross_section=recommended,
        min_cross_section_current=s_current,
        min_cross_section_voltage_drop=s_vd,
        design_current_a=round(i_design, 2),
        cable_capacity_a=round(capacity_derated, 2),
        voltage_drop_v=round(du_v, 2),
        voltage_drop_pct=round(du_pct, 2),
        derating_factor=round(derating, 3),
        cable_designation=cable_designation(data.cable_type.value, data.core_count, recommended),
        cost_per_meter=cost_per_meter,
        total_cable_cost=round(cost_per_meter * data.length_m, 2),
        length_m=float(data.length_m),
        max_voltage_drop_pct=float(data.max_voltage_drop_pct),
        compliant=compliant,
        warnings=tuple(warnings),
        description=data.description,
    )

from __future__ import annotations

from typing import Sequence

import pandas as pd

from .models import CableSizingResult, PanelConfiguration, RCDGroup

SCHEDULE_COLUMNS = [
    "position",
    "description",
    "area",
    "category",
    "phase",
    "breaker",
    "rating_a",
    "characteristic",
    "rcd",
    "cable",
    "cable_mm2",
    "length_m",
    "load_w",
    "design_current_a",
    "voltage_drop_pct",
    "cable_cost_dkk",
    "compliant",
]


def _rcd_label(position: int, breaker_rcd: str | None, groups: Sequence[RCDGroup]) -> str:
    if breaker_rcd:
        return breaker_rcd
    for group in groups:
        if position in group.circuits:
            return f"{group.description} ({group.rcd_type.value} {group.sensitivity_ma} mA)"
    return ""


def schedule_frame(
    panel: PanelConfiguration,
    cable_sizings: Sequence[CableSizingResult],
) -> pd.DataFrame:
    """
    One row per circuit: protection, cable and sizing results side by side.
    cable_sizings must be index-aligned with panel.circuits.
    """
    if len(cable_sizings) != len(panel.circuits):
        raise ValueError(
            f"cable_sizings has {len(cable_sizings)} entries for {len(panel.circuits)} circuits"
        )

    rows = []
    for circuit, sizing in zip(panel.circuits, cable_sizings):
        own_rcd = None
        if circuit.rcd_type is not None:
            own_rcd = f"RCBO {circuit.rcd_type.value} {circuit.rcd_sensitivity_ma} mA"
        rows.append(
            {
                "position": circuit.position,
                "description": circuit.description,
                "area": circuit.area or "",
                "category": circuit.load_category.value,
                "phase": f"L{circuit.phase}",
                "breaker": circuit.breaker_type.value,
                "rating_a": circuit.rating_a,
                "characteristic": circuit.characteristic.value,
                "rcd": _rcd_label(circuit.position, own_rcd, panel.rcd_groups),
                "cable": sizing.cable_designation,
                "cable_mm2": sizing.recommended_cross_section,
                "length_m": sizing.length_m,
                "load_w": circuit.connected_load_w,
                "design_current_a": sizing.design_current_a,
                "voltage_drop_pct": sizing.voltage_drop_pct,
                "cable_cost_dkk": sizing.total_cable_cost,
                "compliant": sizing.compliant,
            }
        )
    return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)

"""
Electrical installation calculations for low-voltage installations (DS/HD 60364).

Pure, synchronous functions over the records in `install_calc.models`:
cable sizing, load analysis, panel configuration, compliance checks and the
project-level orchestration that wires them together.
"""

from .cable_sizing import calculate_cable_size
from .compliance import check_compliance
from .load_analysis import calculate_load
from .panel_config import configure_panel_from_loads
from .project import calculate_electrical_project
from .reference_data import reference_tables

__all__ = [
    "calculate_cable_size",
    "calculate_load",
    "configure_panel_from_loads",
    "check_compliance",
    "calculate_electrical_project",
    "reference_tables",
]

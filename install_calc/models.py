"""
Data model for the installation calculation engine.

Enums are closed variant sets (str-valued so they serialize as their wire
strings). Records are frozen dataclasses; sequences are tuples and mappings
are read-only proxies, so a result can be shared between callers without
copying.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class LoadCategory(str, Enum):
    LIGHTING = "lighting"
    SOCKET_OUTLET = "socket_outlet"
    FIXED_APPLIANCE = "fixed_appliance"
    MOTOR = "motor"
    HEATING = "heating"
    COOKING = "cooking"
    EV_CHARGER = "ev_charger"
    DATA_EQUIPMENT = "data_equipment"
    OTHER = "other"


class PhaseType(str, Enum):
    SINGLE = "1-phase"
    THREE = "3-phase"


class BuildingType(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"


class InstallationMethod(str, Enum):
    """IEC 60364-5-52 reference installation methods."""

    A1 = "A1"  # insulated conductors in conduit, thermally insulating wall
    A2 = "A2"  # multi-core cable in conduit, thermally insulating wall
    B1 = "B1"  # insulated conductors in conduit on wall
    B2 = "B2"  # multi-core cable in conduit on wall
    C = "C"  # multi-core cable clipped direct
    E = "E"  # multi-core cable on perforated tray
    F = "F"  # single-core cables touching on tray


class CableType(str, Enum):
    PVT = "PVT"
    NOIKLX = "NOIKLX"
    PR = "PR"
    PFSP = "PFSP"
    FK = "FK"


class BreakerType(str, Enum):
    MCB = "MCB"
    RCBO = "RCBO"
    RCD = "RCD"


class RCDType(str, Enum):
    A = "A"
    B = "B"
    F = "F"


class Characteristic(str, Enum):
    B = "B"
    C = "C"
    D = "D"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class SurgeType(str, Enum):
    TYPE1 = "Type1"
    TYPE2 = "Type2"
    TYPE1_2 = "Type1+2"


class PanelType(str, Enum):
    MAIN = "main"
    SUB = "sub"


PHASE_NUMBERS = (1, 2, 3)
CORE_COUNTS = (2, 3)


def _coerce(obj: object, name: str, enum_cls: type[Enum]) -> None:
    value = getattr(obj, name)
    if value is None or isinstance(value, enum_cls):
        return
    try:
        object.__setattr__(obj, name, enum_cls(value))
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"{name} must be one of: {allowed} (got {value!r})") from exc


def _require_number(value: object, name: str) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise TypeError(f"{name} must be a number")
    val = float(value)
    if math.isnan(val) or math.isinf(val):
        raise ValueError(f"{name} must be finite")
    return val


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadEntry:
    category: LoadCategory
    rated_power_w: float
    quantity: int = 1
    description: str = ""
    power_factor: float = 1.0
    demand_factor: float | None = None
    phase_assignment: int | None = None
    is_continuous: bool = False

    def __post_init__(self) -> None:
        _coerce(self, "category", LoadCategory)
        if _require_number(self.rated_power_w, "rated_power_w") < 0:
            raise ValueError("rated_power_w must be >= 0")
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity <= 0:
            raise ValueError("quantity must be integer > 0")
        pf = _require_number(self.power_factor, "power_factor")
        if pf <= 0.0 or pf > 1.0:
            raise ValueError("power_factor must be in (0, 1]")
        if self.demand_factor is not None:
            df = _require_number(self.demand_factor, "demand_factor")
            if df < 0.0 or df > 1.0:
                raise ValueError("demand_factor must be in [0, 1]")
        if self.phase_assignment is not None and self.phase_assignment not in PHASE_NUMBERS:
            raise ValueError("phase_assignment must be 1, 2 or 3")

    @property
    def connected_w(self) -> float:
        return float(self.rated_power_w) * self.quantity


@dataclass(frozen=True)
class Room:
    name: str
    room_type: str = ""
    area_m2: float = 0.0
    floor: int = 0
    is_wet_room: bool = False
    loads: tuple[LoadEntry, ...] = ()
    cable_distance_m: float | None = None
    ceiling_height_m: float | None = None
    installation_type: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("room name is required")
        if _require_number(self.area_m2, "area_m2") < 0:
            raise ValueError("area_m2 must be >= 0")
        if self.cable_distance_m is not None and _require_number(self.cable_distance_m, "cable_distance_m") <= 0:
            raise ValueError("cable_distance_m must be > 0 when provided")
        loads = tuple(self.loads)
        for load in loads:
            if not isinstance(load, LoadEntry):
                raise TypeError("room loads must be LoadEntry instances")
        object.__setattr__(self, "loads", loads)


@dataclass(frozen=True)
class CableSizingInput:
    power_w: float
    voltage_v: float
    phase: PhaseType
    length_m: float
    installation_method: InstallationMethod
    power_factor: float = 1.0
    core_count: int = 3
    ambient_temp_c: float = 30.0
    grouped_cables: int = 1
    cable_type: CableType = CableType.PVT
    max_voltage_drop_pct: float = 4.0
    description: str = ""

    def __post_init__(self) -> None:
        _coerce(self, "phase", PhaseType)
        _coerce(self, "installation_method", InstallationMethod)
        _coerce(self, "cable_type", CableType)
        if _require_number(self.power_w, "power_w") < 0:
            raise ValueError("power_w must be >= 0")
        if _require_number(self.voltage_v, "voltage_v") <= 0:
            raise ValueError("voltage_v must be > 0")
        if _require_number(self.length_m, "length_m") < 0:
            raise ValueError("length_m must be >= 0")
        pf = _require_number(self.power_factor, "power_factor")
        if pf <= 0.0 or pf > 1.0:
            raise ValueError("power_factor must be in (0, 1]")
        if self.core_count not in CORE_COUNTS:
            raise ValueError("core_count must be 2 or 3")
        _require_number(self.ambient_temp_c, "ambient_temp_c")
        if not isinstance(self.grouped_cables, int) or self.grouped_cables < 1:
            raise ValueError("grouped_cables must be integer >= 1")
        if _require_number(self.max_voltage_drop_pct, "max_voltage_drop_pct") <= 0:
            raise ValueError("max_voltage_drop_pct must be > 0")


@dataclass(frozen=True)
class ElectricalProjectInput:
    building_type: BuildingType
    supply_phase: PhaseType
    rooms: tuple[Room, ...]
    is_renovation: bool = False
    default_installation_method: InstallationMethod = InstallationMethod.B2
    existing_main_fuse_a: float | None = None
    max_cable_run_m: float | None = None
    building_year: int | None = None
    total_area_m2: float | None = None

    def __post_init__(self) -> None:
        _coerce(self, "building_type", BuildingType)
        _coerce(self, "supply_phase", PhaseType)
        _coerce(self, "default_installation_method", InstallationMethod)
        object.__setattr__(self, "rooms", tuple(self.rooms))
        if self.existing_main_fuse_a is not None and _require_number(
            self.existing_main_fuse_a, "existing_main_fuse_a"
        ) <= 0:
            raise ValueError("existing_main_fuse_a must be > 0 when provided")
        if self.max_cable_run_m is not None and _require_number(self.max_cable_run_m, "max_cable_run_m") <= 0:
            raise ValueError("max_cable_run_m must be > 0 when provided")

    @property
    def all_loads(self) -> tuple[LoadEntry, ...]:
        return tuple(load for room in self.rooms for load in room.loads)


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CableSizingResult:
    recommended_cross_section: float
    min_cross_section_current: float
    min_cross_section_voltage_drop: float
    design_current_a: float
    cable_capacity_a: float
    voltage_drop_v: float
    voltage_drop_pct: float
    derating_factor: float
    cable_designation: str
    cost_per_meter: float
    total_cable_cost: float
    length_m: float
    max_voltage_drop_pct: float
    compliant: bool
    warnings: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class CategoryLoad:
    category: LoadCategory
    connected_load_w: int
    demand_factor: float
    demand_load_w: int
    count: int


@dataclass(frozen=True)
class PhaseLoads:
    phase_1_w: float = 0.0
    phase_2_w: float = 0.0
    phase_3_w: float = 0.0

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.phase_1_w, self.phase_2_w, self.phase_3_w)


@dataclass(frozen=True)
class LoadAnalysisResult:
    total_connected_load_w: int
    total_demand_load_w: int
    total_demand_current_a: float
    phase_loads: PhaseLoads
    phase_imbalance_pct: float
    recommended_main_breaker_a: int
    supply_adequate: bool
    recommended_supply_fuse_a: int
    diversity_factors_used: Mapping[LoadCategory, float]
    category_breakdown: tuple[CategoryLoad, ...]
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class CircuitConfig:
    position: int
    description: str
    breaker_type: BreakerType
    rating_a: int
    characteristic: Characteristic
    phase: int
    cable_cross_section: float
    cable_type: CableType
    connected_load_w: int
    load_category: LoadCategory
    area: str | None = None
    rcd_type: RCDType | None = None
    rcd_sensitivity_ma: int | None = None
    point_count: int | None = None

    def __post_init__(self) -> None:
        _coerce(self, "breaker_type", BreakerType)
        _coerce(self, "characteristic", Characteristic)
        _coerce(self, "cable_type", CableType)
        _coerce(self, "load_category", LoadCategory)
        _coerce(self, "rcd_type", RCDType)
        if self.phase not in PHASE_NUMBERS:
            raise ValueError("phase must be 1, 2 or 3")


@dataclass(frozen=True)
class RCDGroup:
    description: str
    rcd_type: RCDType
    sensitivity_ma: int
    rating_a: int
    circuits: tuple[int, ...]
    modules: int

    def __post_init__(self) -> None:
        _coerce(self, "rcd_type", RCDType)
        object.__setattr__(self, "circuits", tuple(self.circuits))


@dataclass(frozen=True)
class SurgeProtection:
    required: bool
    type: SurgeType | None = None
    modules: int = 0


@dataclass(frozen=True)
class CostItem:
    item: str
    quantity: int
    unit_cost: float
    total_cost: float


@dataclass(frozen=True)
class PanelConfiguration:
    name: str
    panel_type: PanelType
    total_modules: int
    modules_used: int
    spare_capacity_pct: float
    main_switch_rating_a: int
    phase_type: PhaseType
    rcd_groups: tuple[RCDGroup, ...]
    circuits: tuple[CircuitConfig, ...]
    surge_protection: SurgeProtection
    estimated_material_cost: float
    estimated_time_seconds: int
    cost_breakdown: tuple[CostItem, ...]
    compliance_notes: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ComplianceIssue:
    code: str
    severity: Severity
    standard_ref: str
    description: str
    recommendation: str
    affected_area: str | None = None


@dataclass(frozen=True)
class ComplianceSummary:
    errors: int = 0
    warnings: int = 0
    info: int = 0


@dataclass(frozen=True)
class ComplianceCheckResult:
    compliant: bool
    issues: tuple[ComplianceIssue, ...]
    summary: ComplianceSummary
    standards_checked: tuple[str, ...]


@dataclass(frozen=True)
class RoomSummary:
    room_name: str
    room_type: str
    total_load_w: int
    circuit_count: int
    cable_meters: float
    material_cost: float
    labor_time_seconds: int


@dataclass(frozen=True)
class ElectricalProjectResult:
    load_analysis: LoadAnalysisResult
    panel: PanelConfiguration
    cable_sizing: tuple[CableSizingResult, ...]
    compliance: ComplianceCheckResult
    room_summaries: tuple[RoomSummary, ...]
    total_cable_meters: int
    total_electrical_material_cost: int
    total_electrical_labor_seconds: int
    warnings: tuple[str, ...] = field(default_factory=tuple)


def frozen_mapping(data: Mapping) -> Mapping:
    return MappingProxyType(dict(data))

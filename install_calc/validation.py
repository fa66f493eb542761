from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import pandas as pd

from .models import (
    BuildingType,
    ElectricalProjectInput,
    InstallationMethod,
    LoadCategory,
    LoadEntry,
    PhaseType,
    Room,
)

Translator = Callable[..., str]

LOAD_COLUMNS = (
    "room",
    "description",
    "category",
    "rated_power_w",
    "quantity",
    "demand_factor",
    "phase_assignment",
)

# Default English strings; the calling layer may pass its own translator.
_VALIDATION_EN = {
    "validation.rooms_required": "at least one room is required",
    "validation.room_name_required": "room name is required",
    "validation.room_name_duplicate": "room name {name!r} is used more than once",
    "validation.enum_value": "{field} must be one of: {allowed}",
    "validation.field_required": "{field} is required",
    "validation.field_number": "{field} must be a number",
    "validation.field_gte_zero": "{field} must be >= 0",
    "validation.field_positive_when_provided": "{field} must be > 0 when provided",
    "validation.quantity_integer": "quantity must be integer > 0",
    "validation.demand_factor_range": "demand_factor must be in [0, 1]",
    "validation.phase_assignment": "phase_assignment must be 1, 2 or 3",
    "validation.phase_assignment_ignored": "phase_assignment is ignored on a 1-phase supply",
    "validation.zero_power": "rated_power_w is 0; the load adds nothing",
    "validation.loads_list": "loads must be a list",
    "validation.rooms_list": "rooms must be a list",
    "validation.project_mapping": "project must be a mapping of fields",
    "validation.room_mapping": "room must be a mapping of fields",
    "validation.load_mapping": "load must be a mapping of fields",
    "validation.field_bool": "{field} must be true or false",
}


def _tr(translator: Translator | None, key: str, **kwargs: Any) -> str:
    if translator is None:
        raw = _VALIDATION_EN.get(key, key)
        return raw.format(**kwargs) if kwargs else raw
    return translator(key, **kwargs)


@dataclass(frozen=True)
class ValidationResult:
    errors: list[str]
    warnings: list[str]
    row_status: dict[int, str]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def is_finite(value: Any) -> bool:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(num)


def _is_blank(value: Any) -> bool:
    if value is None or value == "":
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def is_bool(value: Any) -> bool:
    # "false" is truthy; only real booleans (or 0/1) are accepted.
    return not isinstance(value, str) and value in (True, False)


def _check_bool(value: Any, field: str, errors: list[str], translator: Translator | None) -> None:
    if not _is_blank(value) and not is_bool(value):
        errors.append(_tr(translator, "validation.field_bool", field=field))


def _check_enum(
    value: Any,
    field: str,
    enum_cls: type,
    errors: list[str],
    translator: Translator | None,
) -> None:
    allowed = [m.value for m in enum_cls]
    if str(value or "").strip() not in allowed:
        errors.append(_tr(translator, "validation.enum_value", field=field, allowed=", ".join(allowed)))


def _check_load(load: Mapping[str, Any], translator: Translator | None) -> list[str]:
    errors: list[str] = []
    _check_enum(load.get("category"), "category", LoadCategory, errors, translator)

    power = load.get("rated_power_w")
    if _is_blank(power):
        errors.append(_tr(translator, "validation.field_required", field="rated_power_w"))
    elif not is_finite(power):
        errors.append(_tr(translator, "validation.field_number", field="rated_power_w"))
    elif float(power) < 0:
        errors.append(_tr(translator, "validation.field_gte_zero", field="rated_power_w"))

    qty = load.get("quantity", 1)
    if not _is_blank(qty):
        if not is_finite(qty) or not float(qty).is_integer() or int(float(qty)) <= 0:
            errors.append(_tr(translator, "validation.quantity_integer"))

    factor = load.get("demand_factor")
    if not _is_blank(factor):
        if not is_finite(factor) or not 0.0 <= float(factor) <= 1.0:
            errors.append(_tr(translator, "validation.demand_factor_range"))

    phase = load.get("phase_assignment")
    if not _is_blank(phase):
        if not is_finite(phase) or float(phase) not in (1.0, 2.0, 3.0):
            errors.append(_tr(translator, "validation.phase_assignment"))

    _check_bool(load.get("is_continuous"), "is_continuous", errors, translator)
    return errors


def validate_project_dict(data: Mapping[str, Any], *, translator: Translator | None = None) -> list[str]:
    """
    Structural checks of a project mapping (parsed YAML/JSON) before it is
    turned into model records. Returns error messages; empty means valid.
    """
    if not isinstance(data, Mapping):
        return [_tr(translator, "validation.project_mapping")]

    errors: list[str] = []
    _check_enum(data.get("building_type"), "building_type", BuildingType, errors, translator)
    _check_bool(data.get("is_renovation"), "is_renovation", errors, translator)
    _check_enum(data.get("supply_phase"), "supply_phase", PhaseType, errors, translator)
    method = data.get("default_installation_method")
    if not _is_blank(method):
        _check_enum(method, "default_installation_method", InstallationMethod, errors, translator)

    for field in ("existing_main_fuse_a", "max_cable_run_m"):
        val = data.get(field)
        if _is_blank(val):
            continue
        if not is_finite(val):
            errors.append(_tr(translator, "validation.field_number", field=field))
        elif float(val) <= 0:
            errors.append(_tr(translator, "validation.field_positive_when_provided", field=field))

    rooms = data.get("rooms") or []
    if not isinstance(rooms, list):
        errors.append(_tr(translator, "validation.rooms_list"))
        rooms = []
    elif not rooms:
        errors.append(_tr(translator, "validation.rooms_required"))

    seen: set[str] = set()
    for idx, room in enumerate(rooms):
        if not isinstance(room, Mapping):
            errors.append(f"room#{idx}: " + _tr(translator, "validation.room_mapping"))
            continue
        name = str(room.get("name") or "").strip()
        label = name or f"room#{idx}"
        room_errors: list[str] = []
        if not name:
            room_errors.append(_tr(translator, "validation.room_name_required"))
        elif name in seen:
            room_errors.append(_tr(translator, "validation.room_name_duplicate", name=name))
        seen.add(name)

        area = room.get("area_m2")
        if not _is_blank(area) and (not is_finite(area) or float(area) < 0):
            room_errors.append(_tr(translator, "validation.field_gte_zero", field="area_m2"))
        dist = room.get("cable_distance_m")
        if not _is_blank(dist) and (not is_finite(dist) or float(dist) <= 0):
            room_errors.append(
                _tr(translator, "validation.field_positive_when_provided", field="cable_distance_m")
            )
        _check_bool(room.get("is_wet_room"), "is_wet_room", room_errors, translator)

        loads = room.get("loads") or []
        if not isinstance(loads, list):
            room_errors.append(_tr(translator, "validation.loads_list"))
            loads = []
        for load_idx, load in enumerate(loads):
            if not isinstance(load, Mapping):
                room_errors.append(f"load#{load_idx}: " + _tr(translator, "validation.load_mapping"))
                continue
            for msg in _check_load(load, translator):
                room_errors.append(f"load#{load_idx}: {msg}")

        if room_errors:
            errors.append(f"{label}: " + "; ".join(room_errors))

    return errors


def validate_load_rows(
    df: pd.DataFrame,
    *,
    supply_phase: PhaseType | None = None,
    translator: Translator | None = None,
) -> ValidationResult:
    """
    Validates a load table as edited by an operator.

    Expects DataFrame with columns:
    room, description, category, rated_power_w, quantity, demand_factor, phase_assignment
    """
    errors: list[str] = []
    warnings: list[str] = []
    statuses: dict[int, str] = {}

    for idx, row in df.iterrows():
        row_warnings: list[str] = []
        room = _text(row.get("room"))
        label = _text(row.get("description")) or f"row#{idx}"

        row_errors = _check_load(row, translator)
        if not room:
            row_errors.append(_tr(translator, "validation.room_name_required"))

        power = row.get("rated_power_w")
        if not row_errors and float(power) == 0:
            row_warnings.append(_tr(translator, "validation.zero_power"))
        phase = row.get("phase_assignment")
        if (
            supply_phase is not None
            and PhaseType(supply_phase) == PhaseType.SINGLE
            and not _is_blank(phase)
        ):
            row_warnings.append(_tr(translator, "validation.phase_assignment_ignored"))

        if row_errors:
            errors.append(f"{label}: " + "; ".join(row_errors))
            statuses[idx] = "INVALID"
        else:
            statuses[idx] = "OK"

        if row_warnings:
            warnings.append(f"{label}: " + "; ".join(row_warnings))

    return ValidationResult(errors=errors, warnings=warnings, row_status=statuses)


def _text(value: Any) -> str:
    return "" if _is_blank(value) else str(value).strip()


def _opt_float(value: Any) -> float | None:
    return None if _is_blank(value) else float(value)


def _opt_int(value: Any) -> int | None:
    return None if _is_blank(value) else int(float(value))


def _opt_bool(value: Any) -> bool:
    if _is_blank(value):
        return False
    if not is_bool(value):
        raise ValueError(f"expected true or false, got {value!r}")
    return bool(value)


def load_from_mapping(load: Mapping[str, Any]) -> LoadEntry:
    qty = load.get("quantity")
    pf = _opt_float(load.get("power_factor"))
    return LoadEntry(
        category=LoadCategory(str(load.get("category")).strip()),
        rated_power_w=float(load.get("rated_power_w")),
        quantity=1 if _is_blank(qty) else int(float(qty)),
        description=_text(load.get("description")),
        power_factor=1.0 if pf is None else pf,
        demand_factor=_opt_float(load.get("demand_factor")),
        phase_assignment=_opt_int(load.get("phase_assignment")),
        is_continuous=_opt_bool(load.get("is_continuous")),
    )


def project_from_dict(data: Mapping[str, Any]) -> ElectricalProjectInput:
    """Validated ElectricalProjectInput from a parsed project file. Raises ValueError."""
    errors = validate_project_dict(data)
    if errors:
        raise ValueError("invalid project: " + " | ".join(errors))

    rooms = []
    for room in data["rooms"]:
        rooms.append(
            Room(
                name=str(room["name"]).strip(),
                room_type=str(room.get("room_type") or ""),
                area_m2=float(room.get("area_m2") or 0.0),
                floor=int(room.get("floor") or 0),
                is_wet_room=_opt_bool(room.get("is_wet_room")),
                loads=tuple(load_from_mapping(load) for load in room.get("loads") or []),
                cable_distance_m=_opt_float(room.get("cable_distance_m")),
                ceiling_height_m=_opt_float(room.get("ceiling_height_m")),
                installation_type=room.get("installation_type"),
            )
        )

    method = data.get("default_installation_method")
    return ElectricalProjectInput(
        building_type=BuildingType(str(data["building_type"]).strip()),
        supply_phase=PhaseType(str(data["supply_phase"]).strip()),
        rooms=tuple(rooms),
        is_renovation=_opt_bool(data.get("is_renovation")),
        default_installation_method=(
            InstallationMethod.B2 if _is_blank(method) else InstallationMethod(str(method).strip())
        ),
        existing_main_fuse_a=_opt_float(data.get("existing_main_fuse_a")),
        max_cable_run_m=_opt_float(data.get("max_cable_run_m")),
        building_year=_opt_int(data.get("building_year")),
        total_area_m2=_opt_float(data.get("total_area_m2")),
    )


def loads_from_frame(df: pd.DataFrame) -> dict[str, list[LoadEntry]]:
    """Group valid load rows by room name, in row order. Raises ValueError on invalid rows."""
    result = validate_load_rows(df)
    if result.has_errors:
        raise ValueError("invalid load rows: " + " | ".join(result.errors))
    out: dict[str, list[LoadEntry]] = {}
    for _, row in df.iterrows():
        room = _text(row.get("room"))
        out.setdefault(room, []).append(load_from_mapping(row))
    return out

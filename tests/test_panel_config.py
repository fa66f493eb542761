from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from install_calc import configure_panel_from_loads
from install_calc.models import (
    BreakerType,
    Characteristic,
    LoadCategory,
    LoadEntry,
    PhaseType,
    RCDType,
    Room,
    SurgeType,
)
from install_calc.panel_config import (
    NOTE_EV,
    PARTITION_HEATING,
    PARTITION_HEAVY,
    PARTITION_LIGHTING,
    PARTITION_OTHER,
    PARTITION_OUTLETS,
    partition_for,
)
from install_calc.reference_data import BREAKER_RATINGS, CABLE_SIZES, ENCLOSURE_SIZES


def _room(name: str, *loads: LoadEntry, wet: bool = False, **kw) -> Room:
    return Room(name=name, is_wet_room=wet, loads=loads, **kw)


def _configure(rooms: list[Room], phase: PhaseType = PhaseType.SINGLE, **kw):
    loads = [load for room in rooms for load in room.loads]
    return configure_panel_from_loads(loads, rooms, phase, **kw)


def test_single_lighting_room_panel() -> None:
    room = _room("Hall", LoadEntry("lighting", 10.0, 20))
    panel = _configure([room])

    assert len(panel.circuits) == 1
    c = panel.circuits[0]
    assert (c.position, c.breaker_type, c.rating_a, c.characteristic) == (1, BreakerType.MCB, 10, Characteristic.B)
    assert c.cable_cross_section == 1.5
    assert c.phase == 1
    assert c.connected_load_w == 200
    assert c.point_count == 20
    assert c.area == "Hall"

    assert len(panel.rcd_groups) == 1
    group = panel.rcd_groups[0]
    assert group.circuits == (1,)
    assert (group.rcd_type, group.sensitivity_ma, group.rating_a, group.modules) == (RCDType.A, 30, 40, 2)

    # main switch 2 + RCD 2 + MCB 1 + surge 3
    assert panel.modules_used == 8
    assert panel.total_modules == 12
    assert panel.spare_capacity_pct == pytest.approx(33.3)
    assert panel.main_switch_rating_a == 6
    assert panel.surge_protection.required
    assert panel.surge_protection.type == SurgeType.TYPE2

    # enclosure 450 + main switch 350 + MCB 85 + RCD 750 + surge 1200 + misc 225
    assert panel.estimated_material_cost == pytest.approx(3060.0)
    assert panel.estimated_time_seconds == 3600 + 900
    assert sum(item.total_cost for item in panel.cost_breakdown) == pytest.approx(3060.0)
    assert panel.warnings == ()


def test_wet_room_socket_gets_rcbo() -> None:
    room = _room("Bathroom", LoadEntry("socket_outlet", 1000.0), wet=True)
    panel = _configure([room])

    assert len(panel.circuits) == 1
    c = panel.circuits[0]
    assert c.breaker_type == BreakerType.RCBO
    assert c.rcd_type == RCDType.A
    assert c.rcd_sensitivity_ma == 30
    assert c.rating_a == 16
    assert c.cable_cross_section == 2.5
    assert panel.rcd_groups == ()
    assert any("Bathroom" in note and "60364-7-701" in note for note in panel.compliance_notes)


def test_ev_charger_circuit() -> None:
    room = _room("Carport", LoadEntry("ev_charger", 11000.0, description="EV charger"))
    panel = _configure([room])

    c = panel.circuits[0]
    assert c.breaker_type == BreakerType.RCBO
    assert c.rcd_type == RCDType.B
    assert c.rcd_sensitivity_ma == 30
    # 11000 / 230 = 47.8 A
    assert c.rating_a == 50
    assert c.cable_cross_section == 16
    assert c.description == "EV charger (Carport)"
    assert NOTE_EV in panel.compliance_notes
    assert any("RCBO 50 A not tabulated" in w for w in panel.warnings)


def test_many_outlets_split_into_circuits_and_groups() -> None:
    room = _room("Office", LoadEntry("socket_outlet", 200.0, 25))
    panel = _configure([room])

    outlets = [c for c in panel.circuits if c.load_category == LoadCategory.SOCKET_OUTLET]
    assert len(outlets) >= math.ceil(25 / 10)
    assert len(outlets) == 3
    assert all(c.point_count == 9 for c in outlets)
    assert outlets[0].description == "Socket outlets Office (1/3)"
    assert panel.rcd_groups
    assert all(len(g.circuits) <= 6 for g in panel.rcd_groups)
    socket_group = panel.rcd_groups[0]
    assert socket_group.circuits == (1, 2, 3)
    assert socket_group.rating_a == 40


def test_outlet_circuits_limited_by_power() -> None:
    room = _room("Workshop", LoadEntry("socket_outlet", 2000.0, 4))
    panel = _configure([room])
    # 8000 W / 3680 W -> 3 circuits although only 4 outlets
    assert len(panel.circuits) == 3


def test_lighting_split_near_2300w() -> None:
    room = _room("Hall", LoadEntry("lighting", 100.0, 50))
    panel = _configure([room])
    assert len(panel.circuits) == 3
    assert all(c.connected_load_w == 1667 for c in panel.circuits)


def test_rcd_groups_hold_at_most_six_circuits() -> None:
    rooms = [_room(f"Room {i}", LoadEntry("lighting", 60.0, 2)) for i in range(8)]
    panel = _configure(rooms)

    assert len(panel.circuits) == 8
    assert [len(g.circuits) for g in panel.rcd_groups] == [6, 2]
    covered = [pos for g in panel.rcd_groups for pos in g.circuits]
    assert covered == [c.position for c in panel.circuits]


def test_sockets_grouped_apart_from_lighting() -> None:
    room = _room("Living", LoadEntry("lighting", 40.0, 5), LoadEntry("socket_outlet", 200.0, 6))
    panel = _configure([room])

    by_pos = {c.position: c for c in panel.circuits}
    for group in panel.rcd_groups:
        categories = {by_pos[p].load_category for p in group.circuits}
        assert len(categories) == 1
    assert panel.rcd_groups[0].description.startswith("RCD socket outlets")


def test_three_phase_circuits_are_balanced() -> None:
    rooms = [_room(f"Room {i}", LoadEntry("heating", 1000.0)) for i in range(3)]
    panel = _configure(rooms, PhaseType.THREE)
    assert [c.phase for c in panel.circuits] == [1, 2, 3]
    assert panel.modules_used == 4 + 2 + 3 + 3


def test_heating_in_wet_room_and_motor_characteristic() -> None:
    bath = _room("Bath", LoadEntry("heating", 1500.0), wet=True)
    garage = _room("Garage", LoadEntry("motor", 1100.0, description="Door opener"))
    panel = _configure([bath, garage])

    heating, motor = panel.circuits
    assert heating.breaker_type == BreakerType.RCBO
    assert heating.rcd_type == RCDType.A
    assert motor.characteristic == Characteristic.C
    assert (motor.rating_a, motor.cable_cross_section) == (16, 2.5)


def test_oversized_dedicated_load_warns() -> None:
    room = _room("Plant", LoadEntry("fixed_appliance", 30000.0, description="Boiler"))
    panel = _configure([room])
    c = panel.circuits[0]
    assert c.rating_a == BREAKER_RATINGS[-1]
    assert c.cable_cross_section == 50
    assert any("sub-panel" in w for w in panel.warnings)


def test_module_overflow_keeps_largest_enclosure() -> None:
    rooms = [_room(f"Room {i}", LoadEntry("lighting", 20.0, 2)) for i in range(70)]
    panel = _configure(rooms)
    assert panel.total_modules == ENCLOSURE_SIZES[-1]
    assert panel.modules_used > panel.total_modules
    assert panel.spare_capacity_pct == pytest.approx(
        round(100.0 * (panel.total_modules - panel.modules_used) / panel.total_modules, 1)
    )
    assert any("exceeds the largest" in w for w in panel.warnings)
    assert any("Low spare capacity" in w for w in panel.warnings)


def test_renovation_adds_notes_only() -> None:
    room = _room("Hall", LoadEntry("lighting", 10.0, 20))
    new = _configure([room])
    reno = _configure([room], is_renovation=True)

    assert reno.circuits == new.circuits
    assert reno.total_modules == new.total_modules
    assert len(reno.compliance_notes) == len(new.compliance_notes) + 1
    assert any("Renovation" in w for w in reno.warnings)


def test_loads_outside_rooms_are_reported() -> None:
    room = _room("Hall", LoadEntry("lighting", 10.0, 20))
    stray = LoadEntry("fixed_appliance", 2000.0, description="Unassigned")
    panel = configure_panel_from_loads([*room.loads, stray], [room], PhaseType.SINGLE)
    assert len(panel.circuits) == 1
    assert any("1 load(s) are not assigned" in w for w in panel.warnings)


def test_invariants_over_mixed_project() -> None:
    rooms = [
        _room("Kitchen", LoadEntry("lighting", 8.0, 8), LoadEntry("socket_outlet", 200.0, 8),
              LoadEntry("cooking", 7200.0), LoadEntry("fixed_appliance", 2200.0)),
        _room("Bath", LoadEntry("lighting", 10.0, 4), LoadEntry("socket_outlet", 1000.0),
              LoadEntry("heating", 1500.0), wet=True),
        _room("Office", LoadEntry("data_equipment", 400.0, 2), LoadEntry("other", 300.0)),
    ]
    panel = _configure(rooms, PhaseType.THREE)

    assert [c.position for c in panel.circuits] == list(range(1, len(panel.circuits) + 1))
    for c in panel.circuits:
        assert c.rating_a in BREAKER_RATINGS
        assert c.cable_cross_section in CABLE_SIZES
        assert c.phase in (1, 2, 3)
    assert panel.spare_capacity_pct == pytest.approx(
        round(100.0 * (panel.total_modules - panel.modules_used) / panel.total_modules, 1)
    )
    assert panel.total_modules in ENCLOSURE_SIZES


def test_partition_covers_every_category() -> None:
    expected = {
        LoadCategory.LIGHTING: PARTITION_LIGHTING,
        LoadCategory.SOCKET_OUTLET: PARTITION_OUTLETS,
        LoadCategory.FIXED_APPLIANCE: PARTITION_HEAVY,
        LoadCategory.COOKING: PARTITION_HEAVY,
        LoadCategory.EV_CHARGER: PARTITION_HEAVY,
        LoadCategory.HEATING: PARTITION_HEATING,
        LoadCategory.MOTOR: PARTITION_OTHER,
        LoadCategory.DATA_EQUIPMENT: PARTITION_OTHER,
        LoadCategory.OTHER: PARTITION_OTHER,
    }
    assert set(expected) == set(LoadCategory)
    for category in LoadCategory:
        assert partition_for(category) == expected[category]

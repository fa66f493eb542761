from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from install_calc.cable_sizing import (
    SELECTION_DEFAULT,
    SELECTION_MAX_SECTION,
    SELECTION_TABLE,
    calc_voltage_drop_v,
    calculate_cable_size,
    cable_designation,
    design_current,
    derating_factor,
    min_cross_section_by_current,
    min_cross_section_by_voltage_drop,
)
from install_calc.models import CableSizingInput, CableType, InstallationMethod, PhaseType
from install_calc.reference_data import CABLE_SIZES, CURRENT_CAPACITY


def _input(**overrides) -> CableSizingInput:
    base = dict(
        power_w=3680.0,
        voltage_v=230.0,
        phase=PhaseType.SINGLE,
        length_m=20.0,
        installation_method=InstallationMethod.B2,
    )
    base.update(overrides)
    return CableSizingInput(**base)


def test_design_current_single_and_three_phase() -> None:
    assert design_current(2300.0, 230.0, PhaseType.SINGLE, 1.0) == pytest.approx(10.0)
    assert design_current(1840.0, 230.0, PhaseType.SINGLE, 0.8) == pytest.approx(10.0)
    assert design_current(10000.0, 400.0, PhaseType.THREE, 1.0) == pytest.approx(
        10000.0 / (math.sqrt(3.0) * 400.0)
    )


def test_design_current_rejects_bad_inputs() -> None:
    with pytest.raises(ValueError):
        design_current(1000.0, 0.0, PhaseType.SINGLE, 1.0)
    with pytest.raises(ValueError):
        design_current(1000.0, 230.0, PhaseType.SINGLE, 1.2)


def test_voltage_drop_formula() -> None:
    # 2 * 20 m * 16 A * 0.0225 / 2.5 mm²
    assert calc_voltage_drop_v(16.0, 20.0, 2.5, PhaseType.SINGLE) == pytest.approx(5.76)
    assert calc_voltage_drop_v(16.0, 20.0, 2.5, PhaseType.THREE) == pytest.approx(
        math.sqrt(3.0) * 20.0 * 16.0 * 0.0225 / 2.5
    )
    with pytest.raises(ValueError):
        calc_voltage_drop_v(16.0, 20.0, 0.0, PhaseType.SINGLE)


def test_basic_16a_circuit() -> None:
    res = calculate_cable_size(_input(description="Outlets kitchen"))

    assert res.design_current_a == pytest.approx(16.0)
    assert res.min_cross_section_current == 2.5
    assert res.min_cross_section_voltage_drop == 2.5
    assert res.recommended_cross_section == 2.5
    assert res.cable_capacity_a == pytest.approx(20.0)
    assert res.voltage_drop_v == pytest.approx(5.76)
    assert res.voltage_drop_pct == pytest.approx(2.5, abs=0.01)
    assert res.derating_factor == pytest.approx(1.0)
    assert res.cable_designation == "PVT 3G2.5"
    assert res.cost_per_meter == pytest.approx(12.0)
    assert res.total_cable_cost == pytest.approx(240.0)
    assert res.compliant is True
    assert res.warnings == ()
    assert res.description == "Outlets kitchen"


def test_long_run_is_voltage_drop_limited() -> None:
    res = calculate_cable_size(_input(length_m=60.0))
    assert res.min_cross_section_current == 2.5
    assert res.min_cross_section_voltage_drop == 6
    assert res.recommended_cross_section == 6
    assert res.voltage_drop_pct <= 4.0
    assert res.compliant is True


def test_derating_increases_cross_section() -> None:
    res = calculate_cable_size(_input(ambient_temp_c=40.0, grouped_cables=3))
    assert res.derating_factor == pytest.approx(0.87 * 0.70, abs=1e-3)
    # 2.5 mm² derates to 12.2 A < 16 A
    assert res.min_cross_section_current == 4
    assert res.cable_capacity_a == pytest.approx(27 * 0.87 * 0.70, abs=0.01)


def test_derating_factor_combines_both_tables() -> None:
    assert derating_factor(30.0, 1) == pytest.approx(1.0)
    assert derating_factor(50.0, 4) == pytest.approx(0.71 * 0.65)


def test_min_cross_section_by_current_monotonic() -> None:
    for method, by_cores in CURRENT_CAPACITY.items():
        for cores in by_cores:
            for step in range(1, 60):
                current = step * 2.5
                s1, _ = min_cross_section_by_current(current, method, cores)
                s2, _ = min_cross_section_by_current(current * 2.0, method, cores)
                assert s2 >= s1


def test_min_cross_section_by_current_methods() -> None:
    assert min_cross_section_by_current(16.0, InstallationMethod.B2, 3) == (2.5, SELECTION_TABLE)
    assert min_cross_section_by_current(500.0, InstallationMethod.B2, 3) == (120, SELECTION_MAX_SECTION)
    assert min_cross_section_by_current(16.0, InstallationMethod.B2, 4) == (2.5, SELECTION_DEFAULT)


def test_min_cross_section_by_voltage_drop() -> None:
    size, method = min_cross_section_by_voltage_drop(16.0, 60.0, 230.0, PhaseType.SINGLE, 4.0)
    assert (size, method) == (6, SELECTION_TABLE)
    size, method = min_cross_section_by_voltage_drop(400.0, 2000.0, 230.0, PhaseType.SINGLE, 1.0)
    assert (size, method) == (CABLE_SIZES[-1], SELECTION_MAX_SECTION)


@pytest.mark.parametrize("power_w", [200.0, 1500.0, 3680.0, 7200.0, 11000.0, 18000.0])
@pytest.mark.parametrize("length_m", [3.0, 15.0, 40.0, 80.0])
@pytest.mark.parametrize("method", ["A1", "B2", "C", "F"])
def test_recommended_size_on_ladder_and_covers_both_minimums(
    power_w: float, length_m: float, method: str
) -> None:
    res = calculate_cable_size(_input(power_w=power_w, length_m=length_m, installation_method=method))
    assert res.recommended_cross_section in CABLE_SIZES
    assert res.recommended_cross_section >= res.min_cross_section_current
    assert res.recommended_cross_section >= res.min_cross_section_voltage_drop


@pytest.mark.parametrize("power_w", [500.0, 2300.0, 3680.0, 9200.0])
@pytest.mark.parametrize("length_m", [5.0, 25.0, 50.0])
@pytest.mark.parametrize("max_pct", [1.5, 3.0, 4.0])
def test_voltage_drop_round_trip_within_limit(power_w: float, length_m: float, max_pct: float) -> None:
    res = calculate_cable_size(_input(power_w=power_w, length_m=length_m, max_voltage_drop_pct=max_pct))
    drop_v = calc_voltage_drop_v(
        res.design_current_a, length_m, res.recommended_cross_section, PhaseType.SINGLE
    )
    assert 100.0 * drop_v / 230.0 <= max_pct + 1e-6


def test_beyond_ladder_is_reported_not_raised() -> None:
    res = calculate_cable_size(_input(power_w=100000.0))
    assert res.recommended_cross_section == CABLE_SIZES[-1]
    assert res.compliant is False
    joined = "\n".join(res.warnings)
    assert "largest size 120 mm²" in joined
    assert "below design current" in joined


def test_advisory_warnings() -> None:
    res = calculate_cable_size(_input(power_w=11000.0, grouped_cables=7))
    joined = "\n".join(res.warnings)
    assert "Load above 32 A on a single phase" in joined
    assert "Many cables grouped together" in joined

    res3 = calculate_cable_size(_input(power_w=11000.0, voltage_v=400.0, phase="3-phase"))
    assert not any("single phase" in w for w in res3.warnings)


def test_untabulated_cost_is_explicit() -> None:
    # 108.7 A needs 50 mm² on B2; PVT 50 mm² has no price entry
    res = calculate_cable_size(_input(power_w=25000.0, length_m=10.0))
    assert res.recommended_cross_section == 50
    assert res.cost_per_meter == pytest.approx(150.0)
    assert any("not tabulated" in w for w in res.warnings)


def test_cable_designation_format() -> None:
    assert cable_designation("PVT", 3, 2.5) == "PVT 3G2.5"
    assert cable_designation("NOIKLX", 2, 10) == "NOIKLX 2x10"
    res = calculate_cable_size(_input(core_count=2, cable_type=CableType.NOIKLX, power_w=1000.0))
    assert res.cable_designation.startswith("NOIKLX 2x")


def test_input_validation_fails_fast() -> None:
    with pytest.raises(ValueError):
        _input(voltage_v=0.0)
    with pytest.raises(ValueError):
        _input(core_count=4)
    with pytest.raises(ValueError):
        _input(installation_method="Z9")
    with pytest.raises(ValueError):
        _input(power_w=-1.0)
    with pytest.raises(TypeError):
        _input(length_m="long")


def test_same_input_same_result() -> None:
    data = _input(power_w=7200.0, length_m=33.0)
    assert calculate_cable_size(data) == calculate_cable_size(data)

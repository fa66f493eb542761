from __future__ import annotations

import dataclasses
import json
import sys
from pathlib import Path

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from install_calc import calculate_electrical_project
from install_calc.circuit_schedule import SCHEDULE_COLUMNS, schedule_frame
from install_calc.export_payload import PAYLOAD_VERSION, build_payload, to_plain
from install_calc.models import LoadCategory
from install_calc.validation import project_from_dict

SAMPLE = ROOT / "samples" / "detached_house.yaml"


@pytest.fixture(scope="module")
def result():
    data = yaml.safe_load(SAMPLE.read_text(encoding="utf-8"))
    return calculate_electrical_project(project_from_dict(data))


def test_payload_is_json_ready(result) -> None:
    payload = build_payload(result, generated_at="2026-01-01T00:00:00+00:00")
    text = json.dumps(payload, ensure_ascii=False)
    back = json.loads(text)

    assert back["version"] == PAYLOAD_VERSION
    assert back["generated_at"] == "2026-01-01T00:00:00+00:00"
    assert back["totals"]["cable_meters"] == result.total_cable_meters
    assert back["panel"]["phase_type"] == "3-phase"
    assert back["panel"]["circuits"][0]["breaker_type"] in ("MCB", "RCBO")
    assert back["load_analysis"]["diversity_factors_used"]["lighting"] == 0.85
    assert len(back["cable_sizing"]) == len(result.panel.circuits)
    assert back["compliance"]["standards_checked"] == list(result.compliance.standards_checked)


def test_payload_generated_at_defaults_to_now(result) -> None:
    payload = build_payload(result)
    assert payload["generated_at"].endswith("+00:00")


def test_payload_rejects_misaligned_sizing(result) -> None:
    broken = dataclasses.replace(result, cable_sizing=result.cable_sizing[:-1])
    with pytest.raises(ValueError, match="cable_sizing has"):
        build_payload(broken)
    with pytest.raises(TypeError):
        build_payload({"panel": {}})


def test_to_plain_converts_enums_and_tuples() -> None:
    assert to_plain(LoadCategory.EV_CHARGER) == "ev_charger"
    assert to_plain({LoadCategory.LIGHTING: (1, 2)}) == {"lighting": [1, 2]}


def test_schedule_frame_rows(result) -> None:
    df = schedule_frame(result.panel, result.cable_sizing)

    assert list(df.columns) == SCHEDULE_COLUMNS
    assert len(df) == len(result.panel.circuits)
    assert df["position"].tolist() == [c.position for c in result.panel.circuits]

    ev = df[df["category"] == "ev_charger"].iloc[0]
    assert ev["breaker"] == "RCBO"
    assert ev["rcd"] == "RCBO B 30 mA"
    assert ev["length_m"] == 25.0

    grouped = df[(df["breaker"] == "MCB")]
    assert all(label.startswith("RCD ") for label in grouped["rcd"])
    assert set(df["phase"]) <= {"L1", "L2", "L3"}


def test_schedule_frame_requires_alignment(result) -> None:
    with pytest.raises(ValueError):
        schedule_frame(result.panel, result.cable_sizing[:1])

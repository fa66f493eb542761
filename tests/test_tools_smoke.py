from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
SAMPLE = ROOT / "samples" / "detached_house.yaml"


def _run(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, *args],
        cwd=str(ROOT),
        capture_output=True,
        text=True,
        check=False,
    )


def test_run_calc_smoke(tmp_path: Path) -> None:
    out_json = tmp_path / "out" / "result.json"
    proc = _run(str(ROOT / "tools" / "run_calc.py"), "--project", str(SAMPLE), "--json-out", str(out_json))

    assert proc.returncode == 0, proc.stderr
    assert proc.stdout.startswith("OK")
    assert "circuits:" in proc.stdout
    assert "compliant: True" in proc.stdout

    payload = json.loads(out_json.read_text(encoding="utf-8"))
    assert payload["panel"]["phase_type"] == "3-phase"
    assert payload["compliance"]["compliant"] is True


def test_run_calc_rejects_invalid_project(tmp_path: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("building_type: castle\nsupply_phase: 1-phase\nrooms: []\n", encoding="utf-8")
    proc = _run(str(ROOT / "tools" / "run_calc.py"), "--project", str(bad))

    assert proc.returncode == 2
    assert "building_type must be one of" in proc.stderr


def test_run_calc_accepts_json_input(tmp_path: Path) -> None:
    project = {
        "building_type": "residential",
        "supply_phase": "1-phase",
        "rooms": [
            {
                "name": "Hall",
                "cable_distance_m": 15,
                "loads": [{"category": "lighting", "rated_power_w": 10, "quantity": 20}],
            }
        ],
    }
    path = tmp_path / "hall.json"
    path.write_text(json.dumps(project), encoding="utf-8")
    proc = _run(str(ROOT / "tools" / "run_calc.py"), "--project", str(path), "--log-level", "INFO")

    assert proc.returncode == 0, proc.stderr
    assert "main_breaker_a: 6" in proc.stdout
    assert "install_calc.project" in proc.stderr


def test_export_results_writes_json_and_csv(tmp_path: Path) -> None:
    out_dir = tmp_path / "export"
    proc = _run(
        str(ROOT / "tools" / "export_results.py"),
        "--project",
        str(SAMPLE),
        "--out-dir",
        str(out_dir),
    )
    assert proc.returncode == 0, proc.stderr

    json_path = out_dir / "detached_house_result.json"
    csv_path = out_dir / "detached_house_circuits.csv"
    assert json_path.exists()
    assert csv_path.exists()

    payload = json.loads(json_path.read_text(encoding="utf-8"))
    df = pd.read_csv(csv_path)
    assert len(df) == len(payload["panel"]["circuits"])
    assert "voltage_drop_pct" in df.columns


def test_export_results_csv_only(tmp_path: Path) -> None:
    proc = _run(
        str(ROOT / "tools" / "export_results.py"),
        "--project",
        str(SAMPLE),
        "--out-dir",
        str(tmp_path),
        "--format",
        "csv",
    )
    assert proc.returncode == 0, proc.stderr
    assert (tmp_path / "detached_house_circuits.csv").exists()
    assert not (tmp_path / "detached_house_result.json").exists()


def test_run_calc_rejects_non_mapping_load(tmp_path: Path) -> None:
    bad = tmp_path / "bad_load.yaml"
    bad.write_text(
        "building_type: residential\n"
        "supply_phase: 1-phase\n"
        "rooms:\n"
        "  - name: Hall\n"
        "    loads:\n"
        "      - lighting 10W\n",
        encoding="utf-8",
    )
    proc = _run(str(ROOT / "tools" / "run_calc.py"), "--project", str(bad))

    assert proc.returncode == 2
    assert "load must be a mapping of fields" in proc.stderr
    assert "Traceback" not in proc.stderr

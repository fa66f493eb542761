#!/usr/bin/env python3

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

ROOT = Path(__file__).resolve().parents[1]

# Allow running as "python tools/run_calc.py" (so repo root is importable)
sys.path.insert(0, str(ROOT))

from install_calc import calculate_electrical_project  # noqa: E402
from install_calc.export_payload import build_payload  # noqa: E402
from install_calc.validation import project_from_dict  # noqa: E402

logger = logging.getLogger("install_calc.tools.run_calc")


def load_project_file(path: Path) -> dict:
    """Project input from YAML (JSON files parse as YAML too)."""
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: project file must contain a mapping")
    return data


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Run the electrical installation calculation for one project file."
    )
    ap.add_argument("--project", required=True, help="Path to project file (YAML or JSON)")
    ap.add_argument("--json-out", default=None, help="Write the full result payload as JSON to this path.")
    ap.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="WARNING",
        help="Logging level (default: WARNING).",
    )
    args = ap.parse_args()

    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    project_path = Path(args.project)
    try:
        project = project_from_dict(load_project_file(project_path))
        result = calculate_electrical_project(project)
    except (ValueError, yaml.YAMLError) as exc:
        logger.error("%s", exc)
        return 2

    if args.json_out:
        out_path = Path(args.json_out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(
            json.dumps(build_payload(result), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    la = result.load_analysis
    panel = result.panel
    print("OK")
    print("project:", str(project_path))
    print("rooms:", len(project.rooms))
    print("connected_w:", la.total_connected_load_w)
    print("demand_w:", la.total_demand_load_w)
    print("demand_current_a:", la.total_demand_current_a)
    print("main_breaker_a:", la.recommended_main_breaker_a)
    print("supply_fuse_a:", la.recommended_supply_fuse_a)
    print("supply_adequate:", la.supply_adequate)
    print("circuits:", len(panel.circuits))
    print("rcd_groups:", len(panel.rcd_groups))
    print(f"modules: {panel.modules_used}/{panel.total_modules} (spare {panel.spare_capacity_pct}%)")
    print("cable_m:", result.total_cable_meters)
    print("material_dkk:", result.total_electrical_material_cost)
    print("labor_s:", result.total_electrical_labor_seconds)
    summary = result.compliance.summary
    print(
        "compliant:",
        result.compliance.compliant,
        f"(errors={summary.errors} warnings={summary.warnings} info={summary.info})",
    )
    for issue in result.compliance.issues:
        print(f"issue: {issue.severity.value} {issue.code} {issue.description}")
    for warning in result.warnings:
        print("warning:", warning)
    if args.json_out:
        print("json_out:", args.json_out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

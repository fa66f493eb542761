#!/usr/bin/env python3

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

ROOT = Path(__file__).resolve().parents[1]

sys.path.insert(0, str(ROOT))

from install_calc import calculate_electrical_project  # noqa: E402
from install_calc.circuit_schedule import schedule_frame  # noqa: E402
from install_calc.export_payload import build_payload  # noqa: E402
from install_calc.models import ElectricalProjectResult  # noqa: E402
from install_calc.validation import project_from_dict  # noqa: E402

logger = logging.getLogger("install_calc.tools.export_results")


def export_json(result: ElectricalProjectResult, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        json.dumps(build_payload(result), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def export_csv(result: ElectricalProjectResult, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df = schedule_frame(result.panel, result.cable_sizing)
    df.to_csv(out_path, index=False, encoding="utf-8")


def main() -> int:
    ap = argparse.ArgumentParser(description="Calculate a project and export the results to JSON/CSV.")
    ap.add_argument("--project", required=True, help="Path to project file (YAML or JSON)")
    ap.add_argument("--out-dir", required=True, help="Output directory")
    ap.add_argument("--format", choices=["json", "csv", "both"], default="both", help="Export format")
    ap.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="WARNING",
        help="Logging level (default: WARNING).",
    )
    args = ap.parse_args()

    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    project_path = Path(args.project)
    out_dir = Path(args.out_dir)
    try:
        data = yaml.safe_load(project_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{project_path}: project file must contain a mapping")
        result = calculate_electrical_project(project_from_dict(data))
    except (ValueError, yaml.YAMLError) as exc:
        logger.error("%s", exc)
        return 2

    written = []
    if args.format in ("json", "both"):
        path = out_dir / f"{project_path.stem}_result.json"
        export_json(result, path)
        written.append(path)
    if args.format in ("csv", "both"):
        path = out_dir / f"{project_path.stem}_circuits.csv"
        export_csv(result, path)
        written.append(path)

    print("OK")
    print("project:", str(project_path))
    for path in written:
        print("out:", str(path))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import csv
import json
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from orgactivity.errors import ReportWriteError
from orgactivity.models import REPORT_COLUMNS, UserActivityRecord

logger = logging.getLogger(__name__)

JSON_FILENAME = "organization_user_activity.json"
CSV_FILENAME = "organization_user_activity.csv"


@dataclass(frozen=True)
class ReportPaths:
    json_path: Path
    csv_path: Path

    def as_outputs(self) -> dict[str, str]:
        return {"report_json": str(self.json_path), "report_csv": str(self.csv_path)}


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def ensure_output_dir(path: Path | str) -> Path:
    """Create the output directory up front so no API quota is spent on an unwritable target."""
    out = Path(path).expanduser()
    try:
        out.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ReportWriteError(f"Cannot create output directory {out}: {e}") from e
    if not out.is_dir():
        raise ReportWriteError(f"Output path is not a directory: {out}")
    if not os.access(out, os.W_OK | os.X_OK):
        raise ReportWriteError(f"Output directory is not writable: {out}")
    return out


def write_json_snapshot(output_dir: Path, records: Sequence[UserActivityRecord]) -> Path:
    path = Path(output_dir) / JSON_FILENAME
    payload = [r.json_payload for r in records]
    try:
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ReportWriteError(f"Failed to save intermediate data to {path}: {e}") from e
    logger.info("Saved raw activity data for %d users: %s", len(payload), path)
    return path


def write_csv_report(output_dir: Path, records: Sequence[UserActivityRecord]) -> Path:
    path = Path(output_dir) / CSV_FILENAME
    columns = [column for column, _ in REPORT_COLUMNS]
    try:
        with path.open("w", encoding="utf-8", newline="") as f:
            w = csv.writer(f)
            w.writerow(columns)
            for r in records:
                row = r.to_row()
                w.writerow([_csv_value(row[c]) for c in columns])
    except OSError as e:
        raise ReportWriteError(f"Failed to write report {path}: {e}") from e
    logger.info("User activity report generated: %s", path)
    return path


def publish_output(name: str, value: str) -> None:
    """Expose a named step output to later workflow steps (no-op outside GitHub Actions)."""
    target = os.environ.get("GITHUB_OUTPUT")
    if not target:
        return
    try:
        with open(target, "a", encoding="utf-8") as f:
            f.write(f"{name}={value}\n")
    except OSError as e:
        raise ReportWriteError(f"Cannot write step output {name} to {target}: {e}") from e

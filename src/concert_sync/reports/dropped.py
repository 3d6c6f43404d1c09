"""Report of sync tasks dropped after exhausting their attempts."""

import csv
import json
from datetime import datetime
from pathlib import Path

from concert_sync.config import Settings
from concert_sync.state.store import DroppedTask, SyncStore

CSV_HEADER = ["Entity Type", "Entity ID", "Operation", "Priority", "Attempts", "Error", "Dropped At"]


def generate_dropped_report(
    store: SyncStore,
    settings: Settings,
    format: str = "csv",
    output_path: str | None = None,
    limit: int | None = None,
) -> Path | None:
    """Write dropped tasks to a CSV or JSON file.

    Args:
        store: Store holding dropped tasks.
        settings: Application settings.
        format: Output format ('csv' or 'json').
        output_path: Optional output file path.
        limit: Maximum number of tasks to include, most recent first.

    Returns:
        Path to the generated report, or None if nothing was dropped.
    """
    dropped = store.get_dropped_tasks(limit)

    if not dropped:
        return None

    settings.reports_dir.mkdir(parents=True, exist_ok=True)

    if output_path:
        report_path = Path(output_path)
    else:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report_path = settings.reports_dir / f"dropped_tasks_{timestamp}.{format}"

    if format == "json":
        _write_json_report(dropped, report_path)
    else:
        _write_csv_report(dropped, report_path)

    return report_path


def _write_csv_report(dropped: list[DroppedTask], report_path: Path) -> None:
    with open(report_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for task in dropped:
            writer.writerow(
                [
                    task.entity_type,
                    task.entity_id,
                    task.operation,
                    task.priority,
                    task.attempts,
                    task.error or "",
                    task.dropped_at.isoformat(),
                ]
            )


def _write_json_report(dropped: list[DroppedTask], report_path: Path) -> None:
    data = {
        "generated_at": datetime.now().isoformat(),
        "total_count": len(dropped),
        "tasks": [
            {
                "entity_type": task.entity_type,
                "entity_id": task.entity_id,
                "operation": task.operation,
                "priority": task.priority,
                "attempts": task.attempts,
                "error": task.error,
                "dropped_at": task.dropped_at.isoformat(),
            }
            for task in dropped
        ],
    }

    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

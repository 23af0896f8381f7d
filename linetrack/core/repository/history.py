"""Aggregations over persisted commit snapshots.

Pure functions over snapshot dicts (as produced by
RepositoryManager._snapshot_to_dict); no database access.
"""

from collections import OrderedDict
from typing import Dict, List


def aggregate_daily(snapshots: List[Dict]) -> List[Dict]:
    """Group snapshots by calendar day (UTC).

    total_lines and lines_by_extension are end-of-day values taken from
    the day's last commit; lines_added/lines_removed are summed.

    Args:
        snapshots: Snapshot dicts with a datetime "committed_at"

    Returns:
        One dict per day, oldest first
    """
    ordered = sorted(snapshots, key=lambda s: (s["committed_at"], s["commit_sha"]))
    days: "OrderedDict[object, Dict]" = OrderedDict()

    for snap in ordered:
        day = snap["committed_at"].date()
        entry = days.get(day)
        if entry is None:
            entry = {
                "date": day.isoformat(),
                "total_lines": 0,
                "lines_added": 0,
                "lines_removed": 0,
                "net_lines": 0,
                "commit_count": 0,
                "lines_by_extension": {},
            }
            days[day] = entry

        entry["lines_added"] += snap["lines_added"]
        entry["lines_removed"] += snap["lines_removed"]
        entry["net_lines"] = entry["lines_added"] - entry["lines_removed"]
        entry["commit_count"] += 1
        # Later commits overwrite: the day ends with its last commit's tree
        entry["total_lines"] = snap["total_lines"]
        entry["lines_by_extension"] = dict(snap["lines_by_extension"] or {})

    return list(days.values())


def extension_breakdown(lines_by_extension: Dict[str, int]) -> List[Dict]:
    """Per-extension counts with percentage of the total, largest first."""
    total = sum(v for v in lines_by_extension.values() if v > 0)
    rows = [
        {
            "extension": ext,
            "line_count": count,
            "percentage": round(count / total * 100, 2) if total > 0 else 0.0,
        }
        for ext, count in lines_by_extension.items()
        if count > 0
    ]
    rows.sort(key=lambda r: (-r["line_count"], r["extension"]))
    return rows

"""Data contracts for the analysis engine.

Kept as dataclasses (not ORM models) for transport between layers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class AnalysisState(Enum):
    """Orchestrator state for one repository, persisted as analysis_status."""
    IDLE = "idle"
    SYNCING = "syncing"
    ENUMERATING = "enumerating"
    PROCESSING = "processing"
    ADVANCING = "advancing"
    ABORTED = "aborted"         # clone/pull failed; pass abandoned


@dataclass
class CommitLineCounts:
    """Line totals of one checked-out tree."""
    lines_by_extension: Dict[str, int] = field(default_factory=dict)
    total_lines: int = 0

    def add(self, extension: str, lines: int) -> None:
        self.lines_by_extension[extension] = self.lines_by_extension.get(extension, 0) + lines
        self.total_lines += lines


@dataclass
class RankedFile:
    file_path: str
    line_count: int


@dataclass
class AnalysisResult:
    """Summary of one analysis pass."""

    repository_id: str
    commits_found: int = 0
    snapshots_written: int = 0
    commits_skipped: int = 0
    commits_failed: int = 0
    watermark: Optional[datetime] = None
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "repository_id": self.repository_id,
            "commits_found": self.commits_found,
            "snapshots_written": self.snapshots_written,
            "commits_skipped": self.commits_skipped,
            "commits_failed": self.commits_failed,
            "watermark": self.watermark.isoformat() if self.watermark else None,
            "cancelled": self.cancelled,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }

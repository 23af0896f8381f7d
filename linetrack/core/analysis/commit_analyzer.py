"""Commit Analyzer: line totals for one checked-out tree.

Walks the working copy, drops whatever the file filter excludes and runs
each tracked file through the counter registered for its extension. The
caller checks out the commit first and must hold the repository's
checkout lease while this runs.
"""

import logging
import os
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from ..filters import should_ignore_directory, should_ignore_file
from ..line_counters import LineCounterRegistry, build_default_registry
from .models import CommitLineCounts, RankedFile

logger = logging.getLogger(__name__)


def normalize_extensions(extensions: Iterable[str]) -> Set[str]:
    normalized = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith(".") else f".{ext}")
    return normalized


class CommitAnalyzer:
    """Counts lines per extension in a working copy."""

    def __init__(self, registry: Optional[LineCounterRegistry] = None):
        self._registry = registry or build_default_registry()

    def _iter_countable_files(
        self, working_copy: str, extensions: Set[str]
    ) -> Iterator[Tuple[str, str, str]]:
        """Yield (relative_path, absolute_path, extension) in stable order."""
        for dirpath, dirnames, filenames in os.walk(working_copy):
            rel_dir = os.path.relpath(dirpath, working_copy)
            rel_dir = "" if rel_dir == "." else rel_dir.replace(os.sep, "/")

            # Prune in place so os.walk never descends into ignored trees
            dirnames[:] = sorted(
                d for d in dirnames
                if not should_ignore_directory(f"{rel_dir}/{d}" if rel_dir else d)
            )

            for name in sorted(filenames):
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                abs_path = os.path.join(dirpath, name)
                if os.path.islink(abs_path) or should_ignore_file(name, rel_path):
                    continue
                extension = os.path.splitext(name)[1].lower()
                if extension in extensions:
                    yield rel_path, abs_path, extension

    def count_file(self, path: str, extension: str) -> int:
        """Lines in one file; unreadable or undecodable files count zero."""
        counter = self._registry.resolve(extension)
        try:
            with open(path, "rb") as f:
                return counter.count_lines(f)
        except (UnicodeDecodeError, OSError) as e:
            logger.warning(f"Could not count lines in {path}: {e}")
            return 0

    def analyze(self, working_copy: str, extensions: Iterable[str]) -> CommitLineCounts:
        """Per-extension and total line counts for the checked-out tree.

        Args:
            working_copy: Root of the checked-out commit
            extensions: Extensions to count (e.g. [".cs", ".ts"])

        Returns:
            CommitLineCounts with only the extensions actually present
        """
        tracked = normalize_extensions(extensions)
        counts = CommitLineCounts()
        files = 0

        for _rel_path, abs_path, extension in self._iter_countable_files(working_copy, tracked):
            counts.add(extension, self.count_file(abs_path, extension))
            files += 1

        logger.debug(
            f"Counted {counts.total_lines} lines across {files} files in {working_copy}: "
            f"{counts.lines_by_extension}"
        )
        return counts

    def rank_files(
        self, working_copy: str, extensions: Iterable[str], limit: int
    ) -> List[RankedFile]:
        """Largest tracked files, by line count desc then path asc."""
        tracked = normalize_extensions(extensions)
        ranked = [
            RankedFile(file_path=rel_path, line_count=self.count_file(abs_path, extension))
            for rel_path, abs_path, extension in self._iter_countable_files(working_copy, tracked)
        ]
        ranked.sort(key=lambda f: (-f.line_count, f.file_path))
        return ranked[:limit]

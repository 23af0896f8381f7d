"""File exclusion rules.

Public API:
    should_ignore_file(name, path) -> bool
    should_ignore_directory(path) -> bool
"""

from .file_filter import should_ignore_directory, should_ignore_file

__all__ = [
    "should_ignore_directory",
    "should_ignore_file",
]

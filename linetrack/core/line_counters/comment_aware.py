"""Comment-aware counter for C-family sources.

Skips blank lines and lines whose first non-whitespace characters are the
single-line comment token. Block comments (/* ... */) are counted as code:
lines inside them are not recognised as comments.
"""

from typing import BinaryIO

from ..constants import SINGLE_LINE_COMMENT_TOKEN
from .base import BaseLineCounter


class CommentAwareLineCounter(BaseLineCounter):
    """Counts non-blank lines that don't start with a line comment."""

    def __init__(self, comment_token: str = SINGLE_LINE_COMMENT_TOKEN):
        self.comment_token = comment_token

    def count_lines(self, stream: BinaryIO) -> int:
        lines = 0
        for line in self.iter_lines(stream):
            stripped = line.strip()
            if not stripped or stripped.startswith(self.comment_token):
                continue
            lines += 1
        return lines

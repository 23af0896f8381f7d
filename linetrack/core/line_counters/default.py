"""Fallback counter: every line counts."""

from typing import BinaryIO

from .base import BaseLineCounter


class DefaultLineCounter(BaseLineCounter):
    """Counts every line, including blank and comment lines."""

    def count_lines(self, stream: BinaryIO) -> int:
        return sum(1 for _ in self.iter_lines(stream))

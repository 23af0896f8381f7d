"""Line counting strategies.

Public API:
    LineCounterRegistry.resolve(extension) -> counter
    build_default_registry() -> LineCounterRegistry
    counter.count_lines(binary_stream) -> int
"""

from .base import BaseLineCounter
from .comment_aware import CommentAwareLineCounter
from .default import DefaultLineCounter
from .registry import LineCounterRegistry, build_default_registry

__all__ = [
    "BaseLineCounter",
    "CommentAwareLineCounter",
    "DefaultLineCounter",
    "LineCounterRegistry",
    "build_default_registry",
]

"""Extension -> line counter registry.

The wildcard entry "*" is the fallback for any extension that has no
counter of its own.
"""

import logging
from typing import Dict, Optional

from ..constants import COMMENT_AWARE_EXTENSIONS, WILDCARD_EXTENSION
from .base import BaseLineCounter
from .comment_aware import CommentAwareLineCounter
from .default import DefaultLineCounter

logger = logging.getLogger(__name__)


def _normalize_extension(extension: str) -> str:
    extension = extension.lower()
    if extension != WILDCARD_EXTENSION and not extension.startswith("."):
        extension = f".{extension}"
    return extension


class LineCounterRegistry:
    """Resolves a counter for a file extension."""

    def __init__(self, fallback: Optional[BaseLineCounter] = None):
        self._counters: Dict[str, BaseLineCounter] = {
            WILDCARD_EXTENSION: fallback or DefaultLineCounter(),
        }

    def register(self, extension: str, counter: BaseLineCounter) -> None:
        """Register a counter; registering "*" replaces the fallback."""
        self._counters[_normalize_extension(extension)] = counter

    def resolve(self, extension: str) -> BaseLineCounter:
        """Counter for the extension, or the wildcard fallback."""
        counter = self._counters.get(_normalize_extension(extension))
        if counter is None:
            counter = self._counters[WILDCARD_EXTENSION]
        return counter

    def registered_extensions(self) -> list:
        return sorted(ext for ext in self._counters if ext != WILDCARD_EXTENSION)


def build_default_registry() -> LineCounterRegistry:
    """Registry with the comment-aware counter for C-family extensions."""
    registry = LineCounterRegistry()
    comment_aware = CommentAwareLineCounter()
    for extension in COMMENT_AWARE_EXTENSIONS:
        registry.register(extension, comment_aware)
    logger.debug(f"Line counter registry built: {registry.registered_extensions()}")
    return registry

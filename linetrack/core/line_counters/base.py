"""Base interface for line counting strategies.

Counters consume a binary stream (a file opened in "rb" mode) and return
the number of lines that count for their file type.
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator

logger = logging.getLogger(__name__)

# utf-8-sig strips a leading BOM if present
SOURCE_ENCODING = "utf-8-sig"


class BaseLineCounter(ABC):
    """Abstract base for line counters.

    Subclasses implement count_lines(). Decoding errors are not caught
    here; the caller decides what a failed file contributes.
    """

    @abstractmethod
    def count_lines(self, stream: BinaryIO) -> int:
        """Count lines in a line-delimited text stream.

        Raises:
            UnicodeDecodeError: If the content is not valid UTF-8
            OSError: If the stream cannot be read
        """
        ...

    @staticmethod
    def iter_lines(stream: BinaryIO) -> Iterator[str]:
        """Yield decoded lines without closing the underlying stream.

        Universal newlines are on, so \\r\\n and \\r both terminate a line
        and a final line without a terminator is still yielded.
        """
        reader = io.TextIOWrapper(stream, encoding=SOURCE_ENCODING)
        try:
            yield from reader
        finally:
            reader.detach()

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .errors import InputReadError

logger = logging.getLogger(__name__)

END_OF_STREAM = "EOF"
MAX_VALUE_LENGTH = 2048

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class RecordPair:
    code: int
    value: str

    @property
    def keyword(self) -> str:
        return self.value.strip()


def parse_int(text: str) -> int:
    """Leading integer prefix of ``text``, 0 when there is none."""
    match = _INT_PREFIX.match(text)
    if match is None:
        return 0
    return int(match.group(1))


def parse_float(text: str) -> float:
    """Leading float prefix of ``text``, 0.0 when there is none."""
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        return 0.0
    return float(match.group(1))


class RecordReader:
    """Reads (code, value) pairs, two physical lines at a time.

    Iteration stops on a value line that is exactly ``EOF`` or when the stream
    runs out of complete pairs. ``position`` counts the records handed out.
    """

    def __init__(self, stream: Iterable[str]) -> None:
        self._lines = iter(stream)
        self.position = 0
        self._done = False

    def __iter__(self) -> Iterator[RecordPair]:
        return self

    def __next__(self) -> RecordPair:
        record = self.next()
        if record is None:
            raise StopIteration
        return record

    def next(self) -> RecordPair | None:
        if self._done:
            return None
        code_line = self._readline()
        value_line = self._readline() if code_line is not None else None
        if code_line is None or value_line is None:
            self._done = True
            return None
        if value_line == END_OF_STREAM:
            self._done = True
            return None

        if _INT_PREFIX.match(code_line) is None:
            logger.warning(
                "malformed group code %r at record %d, using 0", code_line, self.position
            )
        if len(value_line) > MAX_VALUE_LENGTH:
            logger.warning("value at record %d truncated to %d characters", self.position, MAX_VALUE_LENGTH)
            value_line = value_line[:MAX_VALUE_LENGTH]

        self.position += 1
        return RecordPair(parse_int(code_line), value_line)

    def _readline(self) -> str | None:
        try:
            line = next(self._lines)
        except StopIteration:
            return None
        except (OSError, UnicodeError) as exc:
            raise InputReadError(f"cannot read input: {exc}") from exc
        return line.rstrip("\r\n")

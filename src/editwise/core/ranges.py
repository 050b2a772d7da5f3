"""Structured helpers for representing text spans and replacements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = ["OffsetRange", "StringReplacement", "position_to_offset", "offset_to_position"]


@dataclass(slots=True, frozen=True)
class OffsetRange:
    """Half-open span ``[start, end_exclusive)`` using absolute offsets."""

    start: int
    end_exclusive: int

    def __post_init__(self) -> None:
        start = self._coerce_index(self.start, "start")
        end = self._coerce_index(self.end_exclusive, "end_exclusive")
        if end < start:
            start, end = end, start
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end_exclusive", end)

    @staticmethod
    def _coerce_index(value: Any, label: str) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"OffsetRange {label} must be an integer") from exc
        if number < 0:
            return 0
        return number

    @classmethod
    def empty_at(cls, offset: int) -> "OffsetRange":
        return cls(offset, offset)

    @property
    def length(self) -> int:
        return self.end_exclusive - self.start

    @property
    def is_empty(self) -> bool:
        return self.start == self.end_exclusive

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end_exclusive

    def clamp(self, text_length: int) -> "OffsetRange":
        """Return a copy limited to ``[0, text_length]``."""

        limit = max(0, text_length)
        return OffsetRange(min(self.start, limit), min(self.end_exclusive, limit))

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "endExclusive": self.end_exclusive}


@dataclass(slots=True, frozen=True)
class StringReplacement:
    """Replace ``replace_range`` of a text with ``new_text``."""

    replace_range: OffsetRange
    new_text: str

    @property
    def is_empty(self) -> bool:
        return self.replace_range.is_empty and not self.new_text

    def apply(self, text: str) -> str:
        span = self.replace_range.clamp(len(text))
        return f"{text[:span.start]}{self.new_text}{text[span.end_exclusive:]}"

    def to_dict(self) -> dict[str, Any]:
        return {"range": self.replace_range.to_dict(), "newText": self.new_text}


def position_to_offset(text: str, line: int, character: int) -> int:
    """Translate a zero-based ``(line, character)`` position into an offset.

    Positions beyond the end of a line clamp to the line end; lines beyond
    the document clamp to the document end.
    """

    if line < 0:
        return 0
    offset = 0
    lines = text.split("\n")
    for index, content in enumerate(lines):
        if index == line:
            return offset + max(0, min(character, len(content)))
        offset += len(content) + 1
    return len(text)


def offset_to_position(text: str, offset: int) -> tuple[int, int]:
    """Translate an offset into a zero-based ``(line, character)`` pair."""

    bounded = max(0, min(offset, len(text)))
    prefix = text[:bounded]
    line = prefix.count("\n")
    last_break = prefix.rfind("\n")
    return line, bounded - (last_break + 1)

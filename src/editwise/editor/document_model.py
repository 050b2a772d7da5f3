"""Dataclasses representing workspace document identity and state."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path

from ..core.ranges import OffsetRange, offset_to_position, position_to_offset

__all__ = ["DocumentId", "WorkspaceDocument"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class DocumentId:
    """URI based identity of a workspace document."""

    uri: str

    @classmethod
    def create(cls, uri_or_path: str | Path) -> "DocumentId":
        """Return an id for ``uri_or_path``; bare filesystem paths become ``file://`` URIs."""

        if isinstance(uri_or_path, Path):
            return cls(uri_or_path.resolve().as_uri())
        text = str(uri_or_path)
        if "://" in text or text.startswith("untitled:"):
            return cls(text)
        return cls(Path(text).resolve().as_uri())

    @property
    def base_name(self) -> str:
        return self.uri.rstrip("/").rsplit("/", 1)[-1]

    def __str__(self) -> str:
        return self.uri


@dataclass(slots=True, frozen=True)
class WorkspaceDocument:
    """Immutable snapshot of a document as seen by the edit engine."""

    id: DocumentId
    text: str = ""
    language_id: str = "plaintext"
    version_id: int = 1
    selection: OffsetRange = field(default_factory=lambda: OffsetRange(0, 0))
    content_hash: str = ""
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.content_hash:
            object.__setattr__(self, "content_hash", _hash_text(self.text))
        object.__setattr__(self, "selection", self.selection.clamp(len(self.text)))

    @property
    def cursor_offset(self) -> int:
        """Offset of the caret; the end of the selection."""

        return self.selection.end_exclusive

    @property
    def cursor_position(self) -> tuple[int, int]:
        return offset_to_position(self.text, self.cursor_offset)

    def with_text(self, text: str, *, selection: OffsetRange | None = None) -> "WorkspaceDocument":
        return replace(
            self,
            text=text,
            version_id=self.version_id + 1,
            selection=selection if selection is not None else self.selection,
            content_hash="",
            updated_at=_utcnow(),
        )

    def with_selection(self, selection: OffsetRange) -> "WorkspaceDocument":
        return replace(self, selection=selection)

    def with_cursor(self, line: int, character: int) -> "WorkspaceDocument":
        return self.with_selection(OffsetRange.empty_at(position_to_offset(self.text, line, character)))

    def version_signature(self) -> str:
        return f"{self.id.uri}:{self.version_id}:{self.content_hash}"

"""In-memory observable workspace used by hosts and tests."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from ..core.errors import DocumentNotFoundError
from ..core.ranges import OffsetRange
from .document_model import DocumentId, WorkspaceDocument
from .events import (
    DocumentChanged,
    DocumentClosed,
    DocumentFocused,
    DocumentOpened,
    EventBus,
    WorkspaceFoldersChanged,
)

__all__ = ["MutableObservableWorkspace"]

LOGGER = logging.getLogger(__name__)


class MutableObservableWorkspace:
    """Tracks open documents and publishes their changes on an :class:`EventBus`."""

    def __init__(self, *, event_bus: EventBus | None = None) -> None:
        self.events = event_bus or EventBus()
        self._documents: dict[DocumentId, WorkspaceDocument] = {}
        self._focused: DocumentId | None = None
        self._folders: tuple[str, ...] = ()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_document(self, doc_id: DocumentId) -> WorkspaceDocument | None:
        with self._lock:
            return self._documents.get(doc_id)

    def documents(self) -> list[WorkspaceDocument]:
        with self._lock:
            return list(self._documents.values())

    @property
    def focused_document(self) -> WorkspaceDocument | None:
        with self._lock:
            return self._documents.get(self._focused) if self._focused is not None else None

    @property
    def workspace_folders(self) -> tuple[str, ...]:
        return self._folders

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_document(
        self,
        uri: str | DocumentId,
        text: str = "",
        *,
        language_id: str = "plaintext",
        selection: OffsetRange | None = None,
    ) -> WorkspaceDocument:
        """Open (or replace) a document and publish :class:`DocumentOpened`."""

        doc_id = uri if isinstance(uri, DocumentId) else DocumentId.create(uri)
        document = WorkspaceDocument(
            id=doc_id,
            text=text,
            language_id=language_id,
            selection=selection or OffsetRange(0, 0),
        )
        with self._lock:
            self._documents[doc_id] = document
        LOGGER.debug("Opened %s (%s)", doc_id.uri, language_id)
        self.events.publish(DocumentOpened(doc_id.uri, language_id, document.version_id))
        return document

    def set_text(
        self,
        doc_id: DocumentId,
        text: str,
        *,
        selection: OffsetRange | None = None,
    ) -> WorkspaceDocument:
        with self._lock:
            document = self._require(doc_id).with_text(text, selection=selection)
            self._documents[doc_id] = document
        self.events.publish(DocumentChanged(doc_id.uri, document.version_id, document.content_hash))
        return document

    def set_selection(self, doc_id: DocumentId, selection: OffsetRange) -> WorkspaceDocument:
        with self._lock:
            document = self._require(doc_id).with_selection(selection)
            self._documents[doc_id] = document
        self.events.publish(
            DocumentChanged(doc_id.uri, document.version_id, document.content_hash, selection_only=True)
        )
        return document

    def close_document(self, doc_id: DocumentId) -> None:
        with self._lock:
            if self._documents.pop(doc_id, None) is None:
                return
            lost_focus = self._focused == doc_id
            if lost_focus:
                self._focused = None
        self.events.publish(DocumentClosed(doc_id.uri))
        if lost_focus:
            self.events.publish(DocumentFocused(None))

    def focus_document(self, doc_id: DocumentId | None) -> None:
        with self._lock:
            if doc_id is not None:
                self._require(doc_id)
            if self._focused == doc_id:
                return
            self._focused = doc_id
        self.events.publish(DocumentFocused(doc_id.uri if doc_id is not None else None))

    def set_workspace_folders(self, folders: Iterable[str]) -> None:
        normalized = tuple(dict.fromkeys(folders))
        if normalized == self._folders:
            return
        self._folders = normalized
        self.events.publish(WorkspaceFoldersChanged(normalized))

    def _require(self, doc_id: DocumentId) -> WorkspaceDocument:
        document = self._documents.get(doc_id)
        if document is None:
            raise DocumentNotFoundError(doc_id.uri)
        return document

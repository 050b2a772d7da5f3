"""Document model and observable workspace."""

from .document_model import DocumentId, WorkspaceDocument
from .events import (
    DocumentChanged,
    DocumentClosed,
    DocumentFocused,
    DocumentOpened,
    Event,
    EventBus,
    WorkspaceFoldersChanged,
)
from .workspace import MutableObservableWorkspace

__all__ = [
    "DocumentChanged",
    "DocumentClosed",
    "DocumentFocused",
    "DocumentId",
    "DocumentOpened",
    "Event",
    "EventBus",
    "MutableObservableWorkspace",
    "WorkspaceDocument",
    "WorkspaceFoldersChanged",
]

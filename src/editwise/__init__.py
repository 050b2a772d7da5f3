"""editwise: validated GitHub access and next edit suggestions over host capabilities."""

from .core import CancellationToken, CancellationTokenSource, EditwiseError
from .editor import DocumentId, MutableObservableWorkspace, WorkspaceDocument
from .nes import (
    NextEditProvider,
    NextEditProviderOptions,
    NextEditSuggestion,
    create_github_service,
    create_next_edit_provider,
)
from .services import EditwiseSettings, HttpxFetcher, InMemoryTelemetrySender, StaticTokenProvider

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "CancellationTokenSource",
    "DocumentId",
    "EditwiseError",
    "EditwiseSettings",
    "HttpxFetcher",
    "InMemoryTelemetrySender",
    "MutableObservableWorkspace",
    "NextEditProvider",
    "NextEditProviderOptions",
    "NextEditSuggestion",
    "StaticTokenProvider",
    "WorkspaceDocument",
    "create_github_service",
    "create_next_edit_provider",
    "__version__",
]

"""Capability contracts supplied by the host and their service identifiers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence

from .instantiation import ServiceIdentifier

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..core.cancellation import CancellationToken
    from ..editor.document_model import DocumentId, WorkspaceDocument
    from ..github.api import GitHubApiClient
    from ..github.service import GitHubService
    from ..nes.engine import NextEditEngine
    from ..nes.telemetry_builder import NextEditTelemetrySender
    from .fetcher import FetcherService
    from .settings import EditwiseSettings
    from .telemetry import TelemetryService

__all__ = [
    "AbortController",
    "AbortSignal",
    "ContextItem",
    "FetchOptions",
    "FetchResponse",
    "Fetcher",
    "IgnoreService",
    "LanguageContextProvider",
    "LogLevel",
    "LogTarget",
    "NullIgnoreService",
    "NullLanguageContextProvider",
    "ObservableWorkspace",
    "StaticTokenProvider",
    "TelemetrySender",
    "TokenProvider",
    # identifiers
    "FETCHER_SERVICE",
    "GITHUB_API",
    "GITHUB_SERVICE",
    "IGNORE_SERVICE",
    "LANGUAGE_CONTEXT_PROVIDER",
    "NES_TELEMETRY_SENDER",
    "NEXT_EDIT_ENGINE",
    "SETTINGS",
    "TELEMETRY_SERVICE",
    "TOKEN_PROVIDER",
    "WORKSPACE",
]


# -----------------------------------------------------------------------------
# Networking
# -----------------------------------------------------------------------------


class AbortSignal(Protocol):
    @property
    def aborted(self) -> bool: ...

    async def wait(self) -> None: ...


class AbortController(Protocol):
    @property
    def signal(self) -> AbortSignal: ...

    def abort(self) -> None: ...


@dataclass(slots=True)
class FetchOptions:
    """Request description handed to :meth:`Fetcher.fetch`."""

    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    json: Any | None = None
    timeout: float | None = None
    signal: AbortSignal | None = None


class FetchResponse(Protocol):
    """Status, headers and body accessors of a completed request."""

    @property
    def status(self) -> int: ...

    @property
    def headers(self) -> Mapping[str, str]: ...

    async def text(self) -> str: ...

    async def json(self) -> Any: ...


class Fetcher(Protocol):
    """Host supplied HTTP transport."""

    def get_user_agent_library(self) -> str: ...

    async def fetch(self, url: str, options: FetchOptions) -> FetchResponse: ...

    async def disconnect_all(self) -> None: ...

    def make_abort_controller(self) -> AbortController: ...

    def is_abort_error(self, error: BaseException) -> bool: ...

    def is_internet_disconnected_error(self, error: BaseException) -> bool: ...

    def is_fetcher_error(self, error: BaseException) -> bool: ...

    def get_user_message_for_fetcher_error(self, error: BaseException) -> str: ...


# -----------------------------------------------------------------------------
# Auth, telemetry, logging
# -----------------------------------------------------------------------------


class TokenProvider(Protocol):
    """Yields a bearer token; refresh is the provider's responsibility."""

    async def get_token(self) -> str: ...


class StaticTokenProvider:
    """Token provider returning a fixed token."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def get_token(self) -> str:
        return self._token


class TelemetrySender(Protocol):
    def send_telemetry_event(
        self,
        event_name: str,
        properties: Mapping[str, str | None] | None = None,
        measurements: Mapping[str, float | None] | None = None,
    ) -> None: ...


class LogLevel(IntEnum):
    """Severity levels understood by host log targets."""

    OFF = 0
    TRACE = 1
    DEBUG = 2
    INFO = 3
    WARNING = 4
    ERROR = 5


class LogTarget(Protocol):
    def log_it(self, level: LogLevel, metadata: str, *extra: Any) -> None: ...


# -----------------------------------------------------------------------------
# Documents and context
# -----------------------------------------------------------------------------


class ObservableWorkspace(Protocol):
    """Resolves document identities to their current content."""

    def get_document(self, doc_id: "DocumentId") -> "WorkspaceDocument | None": ...


class IgnoreService(Protocol):
    """Content exclusion policy."""

    async def is_ignored(self, uri: str) -> bool: ...


class NullIgnoreService:
    async def is_ignored(self, uri: str) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class ContextItem:
    """Snippet of language context offered to the edit engine."""

    name: str
    content: str
    importance: int = 0


class LanguageContextProvider(Protocol):
    async def get_context_items(
        self,
        document: "WorkspaceDocument",
        cancellation: "CancellationToken",
    ) -> Sequence[ContextItem]: ...


class NullLanguageContextProvider:
    async def get_context_items(
        self,
        document: "WorkspaceDocument",
        cancellation: "CancellationToken",
    ) -> Sequence[ContextItem]:
        return []


# -----------------------------------------------------------------------------
# Identifiers
# -----------------------------------------------------------------------------

SETTINGS: ServiceIdentifier["EditwiseSettings"] = ServiceIdentifier("settings")
FETCHER_SERVICE: ServiceIdentifier["FetcherService"] = ServiceIdentifier("fetcherService")
TOKEN_PROVIDER: ServiceIdentifier[TokenProvider] = ServiceIdentifier("tokenProvider")
TELEMETRY_SERVICE: ServiceIdentifier["TelemetryService"] = ServiceIdentifier("telemetryService")
WORKSPACE: ServiceIdentifier[ObservableWorkspace] = ServiceIdentifier("workspace")
IGNORE_SERVICE: ServiceIdentifier[IgnoreService] = ServiceIdentifier("ignoreService")
LANGUAGE_CONTEXT_PROVIDER: ServiceIdentifier[LanguageContextProvider] = ServiceIdentifier(
    "languageContextProvider"
)
GITHUB_API: ServiceIdentifier["GitHubApiClient"] = ServiceIdentifier("githubApi")
GITHUB_SERVICE: ServiceIdentifier["GitHubService"] = ServiceIdentifier("githubService")
NEXT_EDIT_ENGINE: ServiceIdentifier["NextEditEngine"] = ServiceIdentifier("nextEditEngine")
NES_TELEMETRY_SENDER: ServiceIdentifier["NextEditTelemetrySender"] = ServiceIdentifier(
    "nesTelemetrySender"
)

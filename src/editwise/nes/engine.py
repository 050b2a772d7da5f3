"""Contract between the suggestion provider and edit-computation engines."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from ..core.ranges import StringReplacement

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..core.cancellation import CancellationToken
    from ..editor.document_model import DocumentId
    from .telemetry_builder import EngineTelemetryBuilder

__all__ = [
    "NextEditEngine",
    "NextEditRequestContext",
    "NextEditResult",
    "RequestLogContext",
    "TRIGGER_INVOKE",
]

LOGGER = logging.getLogger(__name__)

TRIGGER_INVOKE = "invoke"


@dataclass(slots=True, frozen=True)
class NextEditRequestContext:
    """Identity and timing of one suggestion request.

    Timestamps are milliseconds since the epoch.
    """

    request_uuid: str
    trigger_kind: str = TRIGGER_INVOKE
    request_issued_ms: int = field(default_factory=lambda: int(time.time() * 1000))
    earliest_shown_ms: int = 0


@dataclass(slots=True)
class RequestLogContext:
    """Per-request trace collected for debugging."""

    document_uri: str
    request_id: int
    context: NextEditRequestContext
    entries: list[str] = field(default_factory=list)

    def trace(self, message: str, *args: Any) -> None:
        text = message % args if args else message
        self.entries.append(text)
        LOGGER.debug("[request %d %s] %s", self.request_id, self.context.request_uuid, text)


@dataclass(slots=True)
class NextEditResult:
    """What an engine produced for one request; ``edit`` is None when it has no suggestion."""

    request_uuid: str
    edit: StringReplacement | None = None
    document_version: int | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class NextEditEngine(Protocol):
    """Computes suggestions and learns from their outcome."""

    @property
    def id(self) -> str: ...

    async def get_next_edit(
        self,
        doc_id: "DocumentId",
        context: NextEditRequestContext,
        log_context: RequestLogContext,
        cancellation: "CancellationToken",
        telemetry_hook: "EngineTelemetryBuilder",
    ) -> NextEditResult: ...

    def handle_shown(self, result: NextEditResult) -> None: ...

    def handle_acceptance(self, doc_id: "DocumentId", result: NextEditResult) -> None: ...

    def handle_rejection(self, doc_id: "DocumentId", result: NextEditResult) -> None: ...

    def handle_ignored(
        self,
        doc_id: "DocumentId",
        result: NextEditResult,
        superseded_by: NextEditResult | None,
    ) -> None: ...

"""Suggestion lifecycle: request, show, and exactly one terminal outcome.

Every suggestion handed out by :class:`NextEditProvider` carries its own
telemetry builder. Whatever happens to the suggestion (it fails, is
accepted, rejected or ignored) the builder is sent once and disposed through
:meth:`NextEditProvider._finalize`, the only place telemetry leaves the
provider.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from ..core.cancellation import CancellationToken
from ..core.errors import CancellationError, ConfigurationError, DocumentNotFoundError, EditwiseError
from ..core.ranges import StringReplacement
from ..editor.document_model import DocumentId
from ..services.capabilities import NES_TELEMETRY_SENDER, NEXT_EDIT_ENGINE, SETTINGS, WORKSPACE, ObservableWorkspace
from ..services.instantiation import inject
from ..services.settings import EditwiseSettings
from .engine import TRIGGER_INVOKE, NextEditEngine, NextEditRequestContext, NextEditResult, RequestLogContext
from .telemetry_builder import NextEditTelemetryBuilder, NextEditTelemetrySender

__all__ = ["NextEditProvider", "NextEditSuggestion"]

LOGGER = logging.getLogger(__name__)


class _Disposable(Protocol):
    def dispose(self) -> None: ...


@dataclass(slots=True, eq=False)
class NextEditSuggestion:
    """Handle returned by :meth:`NextEditProvider.get_next_edit`."""

    doc_id: DocumentId
    request_uuid: str
    internal_result: NextEditResult
    telemetry_builder: NextEditTelemetryBuilder
    _finalized: bool = field(default=False, repr=False)

    @property
    def edit(self) -> StringReplacement | None:
        return self.internal_result.edit

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"requestUuid": self.request_uuid, "documentUri": self.doc_id.uri}
        if self.edit is not None:
            payload["result"] = self.edit.to_dict()
        return payload


@inject(
    workspace=WORKSPACE,
    engine=NEXT_EDIT_ENGINE,
    telemetry_sender=NES_TELEMETRY_SENDER,
    settings=SETTINGS,
)
class NextEditProvider:
    """Requests suggestions from the engine and tracks their lifecycle."""

    def __init__(
        self,
        scope: _Disposable | None = None,
        *,
        workspace: ObservableWorkspace,
        engine: NextEditEngine,
        telemetry_sender: NextEditTelemetrySender,
        settings: EditwiseSettings,
    ) -> None:
        self._scope = scope
        self._workspace = workspace
        self._engine = engine
        self._telemetry_sender = telemetry_sender
        self._settings = settings
        self._request_ids = itertools.count(1)
        self._outstanding: dict[str, NextEditSuggestion] = {}
        self._disposed = False

    def get_id(self) -> str:
        self._ensure_alive()
        return self._engine.id

    async def get_next_edit(
        self,
        document_uri: str | DocumentId,
        cancellation: CancellationToken | None = None,
    ) -> NextEditSuggestion:
        """Ask the engine for a suggestion on ``document_uri``.

        Raises:
            DocumentNotFoundError: when the workspace does not know the
                document; no telemetry is sent in that case.
            CancellationError: when ``cancellation`` fires before the
                engine returns.
        """

        self._ensure_alive()
        doc_id = document_uri if isinstance(document_uri, DocumentId) else DocumentId.create(document_uri)
        document = self._workspace.get_document(doc_id)
        if document is None:
            raise DocumentNotFoundError(doc_id.uri)

        now_ms = int(time.time() * 1000)
        context = NextEditRequestContext(
            request_uuid=str(uuid.uuid4()),
            trigger_kind=TRIGGER_INVOKE,
            request_issued_ms=now_ms,
            earliest_shown_ms=now_ms + self._settings.earliest_shown_delay_ms,
        )
        log_context = RequestLogContext(doc_id.uri, next(self._request_ids), context)
        builder = NextEditTelemetryBuilder(self._engine.id, document)
        builder.set_opportunity_id(context.request_uuid)
        token = cancellation or CancellationToken.none()

        try:
            result = await self._engine.get_next_edit(
                doc_id,
                context,
                log_context,
                token,
                builder.engine_builder,
            )
            token.raise_if_cancelled("Next edit request cancelled")
        except BaseException as exc:
            builder.set_status(_failure_status(exc))
            if isinstance(exc, EditwiseError):
                builder.set_error(exc.code)
            LOGGER.debug("Next edit request %s failed: %r", context.request_uuid, exc)
            self._finalize_quietly(builder)
            raise

        builder.set_edit(result.edit)
        log_context.trace("suggestion ready (edit=%s)", result.edit is not None)
        suggestion = NextEditSuggestion(
            doc_id=doc_id,
            request_uuid=context.request_uuid,
            internal_result=result,
            telemetry_builder=builder,
        )
        self._outstanding[suggestion.request_uuid] = suggestion
        return suggestion

    def handle_shown(self, suggestion: NextEditSuggestion) -> None:
        self._ensure_alive()
        if suggestion.is_finalized:
            LOGGER.warning("Suggestion %s was shown after it was finalized", suggestion.request_uuid)
            return
        suggestion.telemetry_builder.set_as_shown()
        self._engine.handle_shown(suggestion.internal_result)

    def handle_acceptance(self, suggestion: NextEditSuggestion) -> None:
        self._end_of_lifetime(
            suggestion,
            "accepted",
            lambda: self._engine.handle_acceptance(suggestion.doc_id, suggestion.internal_result),
        )

    def handle_rejection(self, suggestion: NextEditSuggestion) -> None:
        self._end_of_lifetime(
            suggestion,
            "rejected",
            lambda: self._engine.handle_rejection(suggestion.doc_id, suggestion.internal_result),
        )

    def handle_ignored(
        self,
        suggestion: NextEditSuggestion,
        superseded_by: NextEditSuggestion | None = None,
    ) -> None:
        def forward() -> None:
            self._engine.handle_ignored(
                suggestion.doc_id,
                suggestion.internal_result,
                superseded_by.internal_result if superseded_by is not None else None,
            )

        self._end_of_lifetime(suggestion, None, forward, superseded_by=superseded_by)

    def dispose(self) -> None:
        """Release the provider; suggestions still outstanding are sent as ignored."""

        if self._disposed:
            return
        self._disposed = True
        outstanding = list(self._outstanding.values())
        self._outstanding.clear()
        for suggestion in outstanding:
            if suggestion.is_finalized:
                continue
            suggestion._finalized = True
            suggestion.telemetry_builder.set_status("ignored")
            self._finalize_quietly(suggestion.telemetry_builder)
        if outstanding:
            LOGGER.debug("Flushed %d outstanding suggestion(s) on dispose", len(outstanding))
        if self._scope is not None:
            self._scope.dispose()
        LOGGER.debug("NextEditProvider disposed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _end_of_lifetime(
        self,
        suggestion: NextEditSuggestion,
        outcome: str | None,
        forward: Callable[[], None],
        *,
        superseded_by: NextEditSuggestion | None = None,
    ) -> None:
        self._ensure_alive()
        if suggestion.is_finalized:
            LOGGER.warning(
                "Suggestion %s already reached a terminal state; ignoring %s",
                suggestion.request_uuid,
                outcome or "ignored",
            )
            return
        suggestion._finalized = True
        self._outstanding.pop(suggestion.request_uuid, None)
        builder = suggestion.telemetry_builder
        if outcome is not None:
            builder.set_acceptance(outcome)  # type: ignore[arg-type]
            builder.set_status(outcome)
        else:
            builder.set_status("ignored")
            if superseded_by is not None:
                builder.set_superseded_by(superseded_by.request_uuid)
        try:
            forward()
        except BaseException:
            self._finalize_quietly(builder)
            raise
        self._finalize(builder)

    def _finalize(self, builder: NextEditTelemetryBuilder) -> None:
        try:
            self._telemetry_sender.send_for_builder(builder)
        finally:
            builder.dispose()

    def _finalize_quietly(self, builder: NextEditTelemetryBuilder) -> None:
        try:
            self._finalize(builder)
        except Exception:
            LOGGER.exception("Failed to send telemetry for opportunity %s", builder.opportunity_id)

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise ConfigurationError("NextEditProvider has been disposed")


def _failure_status(error: BaseException) -> str:
    if isinstance(error, (CancellationError, asyncio.CancelledError)):
        return "cancelled"
    return "failed"

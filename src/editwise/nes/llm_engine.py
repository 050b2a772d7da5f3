"""Edit engine backed by an OpenAI-compatible chat completion endpoint."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Sequence

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from ..core.cancellation import CancellationToken
from ..core.errors import ConfigurationError, DocumentNotFoundError, HttpStatusError, TransportError
from ..core.ranges import OffsetRange, StringReplacement, position_to_offset
from ..editor.document_model import DocumentId, WorkspaceDocument
from ..services.capabilities import (
    IGNORE_SERVICE,
    LANGUAGE_CONTEXT_PROVIDER,
    SETTINGS,
    TOKEN_PROVIDER,
    WORKSPACE,
    ContextItem,
    IgnoreService,
    LanguageContextProvider,
    ObservableWorkspace,
    TokenProvider,
)
from ..services.instantiation import inject
from ..services.settings import EditwiseSettings
from .engine import NextEditRequestContext, NextEditResult, RequestLogContext
from .telemetry_builder import EngineTelemetryBuilder

__all__ = ["CURSOR_MARKER", "EditWindow", "LlmNextEditEngine", "minimal_replacement"]

LOGGER = logging.getLogger(__name__)

CURSOR_MARKER = "<|cursor|>"
_ROUTE = "chat/completions"
_MAX_REJECTIONS_PER_DOCUMENT = 20
_MAX_CONTEXT_ITEMS = 8
_FENCE_PATTERN = re.compile(r"^\s*```[\w+-]*\n(.*?)\n?```\s*$", re.DOTALL)

_SYSTEM_PROMPT = (
    "You predict the next edit a developer will make. You receive a window of "
    f"a file with the caret marked as {CURSOR_MARKER}. Reply with the complete "
    "rewritten window and nothing else. Keep every line you do not change "
    "exactly as it was. If no edit is needed, repeat the window unchanged."
)


@dataclass(slots=True, frozen=True)
class EditWindow:
    """Lines around the caret sent to the model; offsets are absolute."""

    start: int
    end: int
    text: str
    cursor: int

    @classmethod
    def around_cursor(cls, document: WorkspaceDocument, window_lines: int) -> "EditWindow":
        text = document.text
        line, _ = document.cursor_position
        half = max(1, window_lines // 2)
        last_line = text.count("\n")
        first = max(0, line - half)
        last = min(last_line, line + half)
        start = position_to_offset(text, first, 0)
        end = position_to_offset(text, last, len(text))
        return cls(start, end, text[start:end], document.cursor_offset - start)

    def with_cursor_marker(self) -> str:
        return f"{self.text[:self.cursor]}{CURSOR_MARKER}{self.text[self.cursor:]}"


def minimal_replacement(original: str, updated: str, base_offset: int = 0) -> StringReplacement | None:
    """Trim the common prefix and suffix of two texts into one replacement."""

    if original == updated:
        return None
    prefix = len(os.path.commonprefix([original, updated]))
    limit = min(len(original), len(updated)) - prefix
    suffix = 0
    while suffix < limit and original[-1 - suffix] == updated[-1 - suffix]:
        suffix += 1
    return StringReplacement(
        OffsetRange(base_offset + prefix, base_offset + len(original) - suffix),
        updated[prefix:len(updated) - suffix],
    )


def _normalize_reply(reply: str, window: EditWindow) -> str:
    match = _FENCE_PATTERN.match(reply)
    text = match.group(1) if match else reply
    text = text.replace(CURSOR_MARKER, "")
    if window.text.endswith("\n") and not text.endswith("\n"):
        text += "\n"
    return text


@inject(
    workspace=WORKSPACE,
    token_provider=TOKEN_PROVIDER,
    ignore_service=IGNORE_SERVICE,
    language_context=LANGUAGE_CONTEXT_PROVIDER,
    settings=SETTINGS,
)
class LlmNextEditEngine:
    """Streams a rewritten window from the model and diffs it into one edit."""

    def __init__(
        self,
        *,
        workspace: ObservableWorkspace,
        token_provider: TokenProvider,
        ignore_service: IgnoreService,
        language_context: LanguageContextProvider,
        settings: EditwiseSettings,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._workspace = workspace
        self._token_provider = token_provider
        self._ignore_service = ignore_service
        self._language_context = language_context
        self._settings = settings
        self._client = client
        self._owns_client = client is None
        self._client_token: str | None = None
        self._rejected: dict[str, deque[tuple[int, int, str]]] = {}
        self._closing: set[asyncio.Task[None]] = set()

    @property
    def id(self) -> str:
        return f"llm-nes:{self._settings.model}"

    async def get_next_edit(
        self,
        doc_id: DocumentId,
        context: NextEditRequestContext,
        log_context: RequestLogContext,
        cancellation: CancellationToken,
        telemetry_hook: EngineTelemetryBuilder,
    ) -> NextEditResult:
        cancellation.raise_if_cancelled("Next edit request cancelled")
        document = self._workspace.get_document(doc_id)
        if document is None:
            raise DocumentNotFoundError(doc_id.uri)
        telemetry_hook.set_property("model", self._settings.model)

        if await self._ignore_service.is_ignored(doc_id.uri):
            log_context.trace("document excluded by content policy")
            return self._no_edit(context, document, telemetry_hook, "excluded")

        window = EditWindow.around_cursor(document, self._settings.window_lines)
        items = await self._language_context.get_context_items(document, cancellation)
        cancellation.raise_if_cancelled("Next edit request cancelled")
        messages = self._build_messages(document, window, items)
        telemetry_hook.set_measurement("contextItems", len(items))
        telemetry_hook.set_measurement("promptChars", sum(len(m["content"]) for m in messages))
        log_context.trace("window %d-%d with %d context item(s)", window.start, window.end, len(items))

        started = time.monotonic()
        reply = await self._stream_reply(messages, cancellation)
        telemetry_hook.set_measurement("modelLatencyMs", round((time.monotonic() - started) * 1000.0, 3))
        telemetry_hook.set_measurement("responseChars", len(reply))

        if not reply.strip():
            log_context.trace("model returned an empty reply")
            return self._no_edit(context, document, telemetry_hook, "emptyResponse")
        edit = minimal_replacement(window.text, _normalize_reply(reply, window), window.start)
        if edit is None:
            return self._no_edit(context, document, telemetry_hook, "noChange")
        if self._was_rejected(doc_id, edit):
            log_context.trace("suppressing edit previously rejected for %s", doc_id.uri)
            return self._no_edit(context, document, telemetry_hook, "previouslyRejected")

        telemetry_hook.set_property("outcome", "edit")
        log_context.trace("edit %s", edit.to_dict())
        return NextEditResult(
            request_uuid=context.request_uuid,
            edit=edit,
            document_version=document.version_id,
        )

    def handle_shown(self, result: NextEditResult) -> None:
        LOGGER.debug("Suggestion %s shown", result.request_uuid)

    def handle_acceptance(self, doc_id: DocumentId, result: NextEditResult) -> None:
        LOGGER.debug("Suggestion %s accepted for %s", result.request_uuid, doc_id.uri)

    def handle_rejection(self, doc_id: DocumentId, result: NextEditResult) -> None:
        if result.edit is None:
            return
        rejected = self._rejected.setdefault(doc_id.uri, deque(maxlen=_MAX_REJECTIONS_PER_DOCUMENT))
        rejected.append(_edit_key(result.edit))
        LOGGER.debug("Remembering rejected suggestion %s for %s", result.request_uuid, doc_id.uri)

    def handle_ignored(
        self,
        doc_id: DocumentId,
        result: NextEditResult,
        superseded_by: NextEditResult | None,
    ) -> None:
        LOGGER.debug(
            "Suggestion %s ignored%s",
            result.request_uuid,
            f" (superseded by {superseded_by.request_uuid})" if superseded_by is not None else "",
        )

    async def aclose(self) -> None:
        """Close the OpenAI client when this engine created it."""

        client, self._client = self._client, None
        if client is not None and self._owns_client:
            await client.close()

    def dispose(self) -> None:
        self._rejected.clear()
        client, self._client = self._client, None
        if client is None or not self._owns_client:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running loop; dropping OpenAI client without closing it")
            return
        task = loop.create_task(client.close())
        self._closing.add(task)
        task.add_done_callback(self._on_client_closed)

    def _on_client_closed(self, task: asyncio.Task[None]) -> None:
        self._closing.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.warning("Closing the OpenAI client failed: %s", error)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_client(self) -> AsyncOpenAI:
        if not self._owns_client:
            if self._client is None:
                raise ConfigurationError("LlmNextEditEngine has been closed")
            return self._client
        token = await self._token_provider.get_token()
        if self._client is None or token != self._client_token:
            if self._client is not None:
                await self._client.close()
            self._client = AsyncOpenAI(
                api_key=token,
                base_url=self._settings.llm_base_url,
                timeout=self._settings.request_timeout,
                max_retries=0,
                default_headers={"User-Agent": self._settings.user_agent},
            )
            self._client_token = token
        return self._client

    def _build_messages(
        self,
        document: WorkspaceDocument,
        window: EditWindow,
        items: Sequence[ContextItem],
    ) -> list[dict[str, Any]]:
        sections: list[str] = []
        ranked = sorted(items, key=lambda item: item.importance, reverse=True)[:_MAX_CONTEXT_ITEMS]
        for item in ranked:
            sections.append(f"### {item.name}\n{item.content}")
        sections.append(
            f"File: {document.id.uri}\nLanguage: {document.language_id}\n"
            f"```{document.language_id}\n{window.with_cursor_marker()}\n```"
        )
        return [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": "\n\n".join(sections)},
        ]

    async def _stream_reply(self, messages: list[dict[str, Any]], cancellation: CancellationToken) -> str:
        client = await self._get_client()
        payload: dict[str, Any] = {
            "model": self._settings.model,
            "messages": messages,
            "temperature": self._settings.temperature,
            "max_completion_tokens": self._settings.max_completion_tokens,
        }
        LOGGER.debug("Starting streamed chat completion via %s", self._settings.model)
        chunks: list[str] = []
        try:
            async with client.chat.completions.stream(**payload) as stream:
                async for event in stream:
                    cancellation.raise_if_cancelled("Next edit request cancelled")
                    if getattr(event, "type", None) == "content.delta":
                        delta = getattr(event, "delta", None)
                        if delta:
                            chunks.append(str(delta))
        except APITimeoutError as exc:
            raise TransportError("Model request timed out", kind="fetcher", route=_ROUTE) from exc
        except APIConnectionError as exc:
            raise TransportError(f"Model endpoint unreachable: {exc}", kind="disconnected", route=_ROUTE) from exc
        except APIStatusError as exc:
            raise HttpStatusError(exc.status_code, route=_ROUTE, message=str(exc)) from exc
        return "".join(chunks)

    def _was_rejected(self, doc_id: DocumentId, edit: StringReplacement) -> bool:
        return _edit_key(edit) in self._rejected.get(doc_id.uri, ())

    def _no_edit(
        self,
        context: NextEditRequestContext,
        document: WorkspaceDocument,
        telemetry_hook: EngineTelemetryBuilder,
        reason: str,
    ) -> NextEditResult:
        telemetry_hook.set_property("outcome", reason)
        return NextEditResult(
            request_uuid=context.request_uuid,
            edit=None,
            document_version=document.version_id,
            reason=reason,
        )


def _edit_key(edit: StringReplacement) -> tuple[int, int, str]:
    return edit.replace_range.start, edit.replace_range.end_exclusive, edit.new_text

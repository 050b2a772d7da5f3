"""Tests for the chat-completion backed edit engine."""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, APITimeoutError

from editwise.core.cancellation import CancellationToken, CancellationTokenSource
from editwise.core.errors import CancellationError, ConfigurationError, DocumentNotFoundError, HttpStatusError, TransportError
from editwise.core.ranges import OffsetRange, StringReplacement
from editwise.editor.document_model import DocumentId, WorkspaceDocument
from editwise.editor.workspace import MutableObservableWorkspace
from editwise.nes import llm_engine
from editwise.nes.engine import NextEditRequestContext, NextEditResult, RequestLogContext
from editwise.nes.llm_engine import CURSOR_MARKER, EditWindow, LlmNextEditEngine, minimal_replacement
from editwise.nes.telemetry_builder import EngineTelemetryBuilder
from editwise.services.capabilities import (
    ContextItem,
    NullIgnoreService,
    NullLanguageContextProvider,
    StaticTokenProvider,
)
from editwise.services.settings import EditwiseSettings

from tests.helpers import FakeOpenAI

RETURN_ZERO_REPLY = "function main() {\n    return 0;\n}\n"
_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class _IgnoreEverything:
    async def is_ignored(self, uri: str) -> bool:
        return True


class _StaticContext:
    def __init__(self, items: Sequence[ContextItem]) -> None:
        self.items = list(items)

    async def get_context_items(self, document, cancellation) -> Sequence[ContextItem]:
        return self.items


def _engine(
    workspace: MutableObservableWorkspace,
    settings: EditwiseSettings,
    client: Any = None,
    *,
    ignore_service: Any = None,
    language_context: Any = None,
    token_provider: Any = None,
) -> LlmNextEditEngine:
    return LlmNextEditEngine(
        workspace=workspace,
        token_provider=token_provider or StaticTokenProvider("sk-test"),
        ignore_service=ignore_service or NullIgnoreService(),
        language_context=language_context or NullLanguageContextProvider(),
        settings=settings,
        client=client,
    )


async def _run(
    engine: LlmNextEditEngine,
    doc_id: DocumentId,
    cancellation: CancellationToken | None = None,
) -> tuple[NextEditResult, EngineTelemetryBuilder, RequestLogContext]:
    context = NextEditRequestContext("req-1")
    log_context = RequestLogContext(doc_id.uri, 1, context)
    hook = EngineTelemetryBuilder()
    result = await engine.get_next_edit(doc_id, context, log_context, cancellation or CancellationToken.none(), hook)
    return result, hook, log_context


class TestHelpers:
    """Tests for window extraction and diffing."""

    def test_window_around_cursor(self, main_document: WorkspaceDocument) -> None:
        window = EditWindow.around_cursor(main_document, 12)
        assert (window.start, window.end) == (0, 21)
        assert window.with_cursor_marker() == f"function main() {{\n{CURSOR_MARKER}\n}}\n"

    def test_window_is_limited_to_nearby_lines(self) -> None:
        text = "".join(f"line {index}\n" for index in range(40))
        document = WorkspaceDocument(DocumentId("file:///a.txt"), text).with_cursor(20, 2)

        window = EditWindow.around_cursor(document, 4)

        assert window.text.splitlines() == [f"line {index}" for index in range(18, 23)]
        assert window.text[window.cursor:].startswith("ne 20")

    @pytest.mark.parametrize(
        ("original", "updated", "expected"),
        [
            ("abc", "abc", None),
            ("function main() {\n\n}\n", RETURN_ZERO_REPLY, StringReplacement(OffsetRange(18, 18), "    return 0;")),
            ("hello world", "hello", StringReplacement(OffsetRange(5, 11), "")),
            ("aaa", "aaaa", StringReplacement(OffsetRange(3, 3), "a")),
        ],
    )
    def test_minimal_replacement(self, original: str, updated: str, expected: StringReplacement | None) -> None:
        assert minimal_replacement(original, updated) == expected

    def test_minimal_replacement_offsets(self) -> None:
        assert minimal_replacement("x1y", "x2y", base_offset=10) == StringReplacement(OffsetRange(11, 12), "2")


class TestGetNextEdit:
    @pytest.mark.asyncio
    async def test_main_scenario(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
    ) -> None:
        client = FakeOpenAI(["function main() {\n", "    return 0;\n", "}\n"])
        engine = _engine(workspace, settings, client)

        result, hook, log_context = await _run(engine, main_document.id)

        assert result.edit == StringReplacement(OffsetRange(18, 18), "    return 0;")
        assert result.document_version == 1
        assert result.request_uuid == "req-1"
        assert hook.properties == {"model": "gpt-4o-mini", "outcome": "edit"}
        assert hook.measurements["responseChars"] == float(len(RETURN_ZERO_REPLY))
        assert hook.measurements["contextItems"] == 0.0
        assert log_context.entries
        [call] = client.completions.calls
        assert call["model"] == "gpt-4o-mini"
        assert call["max_completion_tokens"] == 512
        assert CURSOR_MARKER in call["messages"][1]["content"]
        assert engine.id == "llm-nes:gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_fenced_reply_with_marker(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
    ) -> None:
        reply = f"```javascript\nfunction main() {{\n    return 0;{CURSOR_MARKER}\n}}\n```"
        result, _, _ = await _run(_engine(workspace, settings, FakeOpenAI(reply)), main_document.id)

        assert result.edit == StringReplacement(OffsetRange(18, 18), "    return 0;")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("reply", "reason"), [("   ", "emptyResponse"), ("function main() {\n\n}\n", "noChange")])
    async def test_no_edit_reasons(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
        reply: str,
        reason: str,
    ) -> None:
        result, hook, _ = await _run(_engine(workspace, settings, FakeOpenAI(reply)), main_document.id)

        assert result.edit is None
        assert result.reason == reason
        assert hook.properties["outcome"] == reason

    @pytest.mark.asyncio
    async def test_excluded_document_skips_model(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
    ) -> None:
        client = FakeOpenAI(RETURN_ZERO_REPLY)
        engine = _engine(workspace, settings, client, ignore_service=_IgnoreEverything())

        result, _, _ = await _run(engine, main_document.id)

        assert result.reason == "excluded"
        assert client.completions.calls == []

    @pytest.mark.asyncio
    async def test_unknown_document(self, workspace: MutableObservableWorkspace, settings: EditwiseSettings) -> None:
        with pytest.raises(DocumentNotFoundError):
            await _run(_engine(workspace, settings, FakeOpenAI("x")), DocumentId("file:///missing.js"))

    @pytest.mark.asyncio
    async def test_context_items_ranked_and_capped(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
    ) -> None:
        items = [ContextItem(f"item{index}", f"body{index}", importance=index) for index in range(10)]
        client = FakeOpenAI(RETURN_ZERO_REPLY)
        engine = _engine(workspace, settings, client, language_context=_StaticContext(items))

        _, hook, _ = await _run(engine, main_document.id)

        prompt = client.completions.calls[0]["messages"][1]["content"]
        assert prompt.index("### item9") < prompt.index("### item2")
        assert "### item1\n" not in prompt
        assert "### item0\n" not in prompt
        assert hook.measurements["contextItems"] == 10.0

    @pytest.mark.asyncio
    async def test_rejected_edit_is_suppressed(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
    ) -> None:
        engine = _engine(workspace, settings, FakeOpenAI(RETURN_ZERO_REPLY))
        first, _, _ = await _run(engine, main_document.id)
        engine.handle_rejection(main_document.id, first)

        second, _, _ = await _run(engine, main_document.id)

        assert second.edit is None
        assert second.reason == "previouslyRejected"


class TestFailures:
    """Tests for cancellation and error mapping."""

    @pytest.mark.asyncio
    async def test_cancellation_mid_stream(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
    ) -> None:
        source = CancellationTokenSource()
        client = FakeOpenAI(["function", " main"])
        client.completions.on_event = lambda index: source.cancel() if index == 1 else None

        with pytest.raises(CancellationError):
            await _run(_engine(workspace, settings, client), main_document.id, source.token)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected", "kind"),
        [
            (APITimeoutError(request=_REQUEST), TransportError, "fetcher"),
            (APIConnectionError(request=_REQUEST), TransportError, "disconnected"),
            (
                APIStatusError("overloaded", response=httpx.Response(503, request=_REQUEST), body=None),
                HttpStatusError,
                None,
            ),
        ],
    )
    async def test_error_mapping(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
        error: Exception,
        expected: type[Exception],
        kind: str | None,
    ) -> None:
        engine = _engine(workspace, settings, FakeOpenAI(error=error))

        with pytest.raises(expected) as excinfo:
            await _run(engine, main_document.id)

        assert excinfo.value.__cause__ is error
        if kind is not None:
            assert excinfo.value.kind == kind
        else:
            assert excinfo.value.status == 503


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_owned_client_follows_token(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        created: list[tuple[dict[str, Any], FakeOpenAI]] = []

        def fake_async_openai(**kwargs: Any) -> FakeOpenAI:
            client = FakeOpenAI(RETURN_ZERO_REPLY)
            created.append((kwargs, client))
            return client

        class _RotatingTokens:
            def __init__(self) -> None:
                self.tokens = iter(["sk-1", "sk-1", "sk-2"])

            async def get_token(self) -> str:
                return next(self.tokens)

        monkeypatch.setattr(llm_engine, "AsyncOpenAI", fake_async_openai)
        engine = _engine(workspace, settings, token_provider=_RotatingTokens())

        for _ in range(3):
            await _run(engine, main_document.id)

        assert [kwargs["api_key"] for kwargs, _ in created] == ["sk-1", "sk-2"]
        assert created[0][0]["max_retries"] == 0
        assert created[0][0]["base_url"] == "https://api.openai.com/v1"
        assert created[0][1].closed
        await engine.aclose()
        assert created[1][1].closed

    @pytest.mark.asyncio
    async def test_borrowed_client_is_not_closed(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
    ) -> None:
        client = FakeOpenAI(RETURN_ZERO_REPLY)
        engine = _engine(workspace, settings, client)

        engine.dispose()

        assert not client.closed
        with pytest.raises(ConfigurationError):
            await _run(engine, main_document.id)

    @pytest.mark.asyncio
    async def test_dispose_closes_owned_client_in_background(
        self,
        workspace: MutableObservableWorkspace,
        settings: EditwiseSettings,
        main_document: WorkspaceDocument,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        created: list[FakeOpenAI] = []

        def fake_async_openai(**kwargs: Any) -> FakeOpenAI:
            client = FakeOpenAI(RETURN_ZERO_REPLY)
            created.append(client)
            return client

        monkeypatch.setattr(llm_engine, "AsyncOpenAI", fake_async_openai)
        healthy = _engine(workspace, settings)
        broken = _engine(workspace, settings)
        await _run(healthy, main_document.id)
        await _run(broken, main_document.id)

        async def failing_close() -> None:
            raise RuntimeError("socket already gone")

        monkeypatch.setattr(created[1], "close", failing_close)
        healthy.dispose()
        broken.dispose()
        for _ in range(3):
            await asyncio.sleep(0)

        assert created[0].closed
        assert "Closing the OpenAI client failed: socket already gone" in caplog.text

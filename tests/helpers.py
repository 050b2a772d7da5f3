"""Shared test helpers and stub classes.

Import from here instead of duplicating fakes in individual test files.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from editwise.core.cancellation import CancellationToken
from editwise.core.ranges import StringReplacement
from editwise.github.api import GitHubApiClient
from editwise.nes.engine import NextEditRequestContext, NextEditResult, RequestLogContext
from editwise.nes.telemetry_builder import EngineTelemetryBuilder
from editwise.services.capabilities import FetchOptions, LogLevel
from editwise.services.fetcher import FetchAbortedError, FetcherService, HttpxAbortController
from editwise.services.settings import EditwiseSettings
from editwise.services.telemetry import InMemoryTelemetrySender, TelemetryService


class FakeResponse:
    """:class:`FetchResponse` stand-in with a canned status, headers and body."""

    def __init__(
        self,
        status: int = 200,
        body: Any = None,
        *,
        headers: dict[str, str] | None = None,
        text: str | None = None,
    ) -> None:
        self.status = status
        self.headers = dict(headers or {})
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self._text = text

    async def text(self) -> str:
        return self._text

    async def json(self) -> Any:
        return json.loads(self._text)


Handler = Callable[[str, FetchOptions], "FakeResponse | BaseException"]


class RecordingFetcher:
    """Fetcher that replays queued responses and records every request.

    Queue entries may be exceptions, which are raised instead of returned.
    A ``handler`` callable takes precedence over the queue.
    """

    def __init__(self, *responses: FakeResponse | BaseException, handler: Handler | None = None) -> None:
        self.responses: deque[FakeResponse | BaseException] = deque(responses)
        self.handler = handler
        self.requests: list[tuple[str, FetchOptions]] = []
        self.disconnected = False

    def queue(self, *responses: FakeResponse | BaseException) -> None:
        self.responses.extend(responses)

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.requests]

    def get_user_agent_library(self) -> str:
        return "recording-fetcher/1.0"

    async def fetch(self, url: str, options: FetchOptions) -> FakeResponse:
        self.requests.append((url, options))
        if options.signal is not None and options.signal.aborted:
            raise FetchAbortedError(url)
        outcome = self.handler(url, options) if self.handler else self.responses.popleft()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def disconnect_all(self) -> None:
        self.disconnected = True

    def make_abort_controller(self) -> HttpxAbortController:
        return HttpxAbortController()

    def is_abort_error(self, error: BaseException) -> bool:
        return isinstance(error, FetchAbortedError)

    def is_internet_disconnected_error(self, error: BaseException) -> bool:
        return isinstance(error, ConnectionError)

    def is_fetcher_error(self, error: BaseException) -> bool:
        return isinstance(error, OSError)

    def get_user_message_for_fetcher_error(self, error: BaseException) -> str:
        return f"fetch failed: {error}"


def make_api(
    fetcher: RecordingFetcher,
    *,
    sender: InMemoryTelemetrySender | None = None,
    **settings: Any,
) -> tuple[GitHubApiClient, InMemoryTelemetrySender]:
    """Return an API client over ``fetcher`` and the sender recording its telemetry."""

    sender = sender or InMemoryTelemetrySender()
    client = GitHubApiClient(
        fetcher=FetcherService(fetcher),
        telemetry=TelemetryService(sender),
        settings=EditwiseSettings(**settings),
    )
    return client, sender


class StubEngine:
    """Edit engine returning a fixed edit (or raising) and recording callbacks."""

    id = "stub-engine"

    def __init__(
        self,
        edit: StringReplacement | None = None,
        *,
        error: BaseException | None = None,
        before_return: Callable[[CancellationToken], Awaitable[None]] | None = None,
    ) -> None:
        self.edit = edit
        self.error = error
        self.before_return = before_return
        self.requests: list[NextEditRequestContext] = []
        self.calls: list[tuple[Any, ...]] = []

    async def get_next_edit(
        self,
        doc_id: Any,
        context: NextEditRequestContext,
        log_context: RequestLogContext,
        cancellation: CancellationToken,
        telemetry_hook: EngineTelemetryBuilder,
    ) -> NextEditResult:
        self.requests.append(context)
        telemetry_hook.set_property("engine", self.id)
        if self.before_return is not None:
            await self.before_return(cancellation)
        if self.error is not None:
            raise self.error
        return NextEditResult(request_uuid=context.request_uuid, edit=self.edit)

    def handle_shown(self, result: NextEditResult) -> None:
        self.calls.append(("shown", result.request_uuid))

    def handle_acceptance(self, doc_id: Any, result: NextEditResult) -> None:
        self.calls.append(("accepted", doc_id.uri, result.request_uuid))

    def handle_rejection(self, doc_id: Any, result: NextEditResult) -> None:
        self.calls.append(("rejected", doc_id.uri, result.request_uuid))

    def handle_ignored(self, doc_id: Any, result: NextEditResult, superseded_by: NextEditResult | None) -> None:
        self.calls.append(
            ("ignored", doc_id.uri, result.request_uuid, superseded_by.request_uuid if superseded_by else None)
        )


class RecordingLogTarget:
    def __init__(self) -> None:
        self.entries: list[tuple[LogLevel, str, tuple[Any, ...]]] = []

    def log_it(self, level: LogLevel, metadata: str, *extra: Any) -> None:
        self.entries.append((level, metadata, extra))


# -----------------------------------------------------------------------------
# OpenAI streaming fakes
# -----------------------------------------------------------------------------


@dataclass
class FakeStreamEvent:
    """Simple structure emulating ChatCompletionStreamEvent attributes."""

    type: str
    delta: str | None = None


class _FakeStream:
    def __init__(self, events: Iterable[FakeStreamEvent], on_event: Callable[[int], None] | None) -> None:
        self._iterator = iter(list(events))
        self._on_event = on_event
        self._index = 0

    def __aiter__(self) -> "_FakeStream":
        return self

    async def __anext__(self) -> FakeStreamEvent:
        try:
            event = next(self._iterator)
        except StopIteration as exc:
            raise StopAsyncIteration from exc
        if self._on_event is not None:
            self._on_event(self._index)
        self._index += 1
        return event


class _FakeStreamContext:
    def __init__(self, owner: "FakeCompletions") -> None:
        self._owner = owner
        self.exited = False

    async def __aenter__(self) -> _FakeStream:
        if self._owner.error is not None:
            raise self._owner.error
        return _FakeStream(self._owner.events, self._owner.on_event)

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.exited = True
        return False


class FakeCompletions:
    def __init__(self, events: Iterable[FakeStreamEvent], error: BaseException | None = None) -> None:
        self.events = list(events)
        self.error = error
        self.on_event: Callable[[int], None] | None = None
        self.calls: list[dict[str, Any]] = []

    def stream(self, **kwargs: Any) -> _FakeStreamContext:
        self.calls.append(kwargs)
        return _FakeStreamContext(self)


class FakeOpenAI:
    """Minimal ``AsyncOpenAI`` replacement exposing ``chat.completions.stream``."""

    def __init__(self, reply: str | Iterable[str] = "", *, error: BaseException | None = None) -> None:
        chunks = [reply] if isinstance(reply, str) else list(reply)
        events = [FakeStreamEvent("chunk")]
        events.extend(FakeStreamEvent("content.delta", delta=chunk) for chunk in chunks)
        events.append(FakeStreamEvent("content.done"))
        self.completions = FakeCompletions(events, error)
        self.chat = type("Chat", (), {"completions": self.completions})()
        self.closed = False

    async def close(self) -> None:
        self.closed = True

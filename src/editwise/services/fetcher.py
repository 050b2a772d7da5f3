"""Fetcher capability adapters.

:class:`FetcherService` forwards to the host's fetcher and classifies its
exceptions into the editwise error taxonomy. :class:`HttpxFetcher` is a
ready-made fetcher backed by :class:`httpx.AsyncClient`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from ..core.errors import CancellationError, TransportError
from .capabilities import AbortController, FetchOptions, Fetcher, FetchResponse

__all__ = [
    "FetchAbortedError",
    "FetcherService",
    "HttpxAbortController",
    "HttpxFetcher",
    "HttpxResponse",
]

LOGGER = logging.getLogger(__name__)


class FetcherService:
    """Single-fetcher service used by the API client."""

    def __init__(self, fetcher: Fetcher) -> None:
        self._fetcher = fetcher

    def get_user_agent_library(self) -> str:
        return self._fetcher.get_user_agent_library()

    async def fetch(self, url: str, options: FetchOptions) -> FetchResponse:
        return await self._fetcher.fetch(url, options)

    async def disconnect_all(self) -> None:
        await self._fetcher.disconnect_all()

    def make_abort_controller(self) -> AbortController:
        return self._fetcher.make_abort_controller()

    def is_abort_error(self, error: BaseException) -> bool:
        return self._fetcher.is_abort_error(error)

    def is_internet_disconnected_error(self, error: BaseException) -> bool:
        return self._fetcher.is_internet_disconnected_error(error)

    def is_fetcher_error(self, error: BaseException) -> bool:
        return self._fetcher.is_fetcher_error(error)

    def get_user_message_for_fetcher_error(self, error: BaseException) -> str:
        return self._fetcher.get_user_message_for_fetcher_error(error)

    def classify_error(
        self,
        error: BaseException,
        *,
        route: str | None = None,
        cancelled: bool = False,
    ) -> Exception | None:
        """Map a fetcher exception to an editwise error, or ``None`` if unknown."""

        if self.is_abort_error(error):
            if cancelled:
                return CancellationError(f"Request to {route or 'remote service'} was cancelled")
            return TransportError("Request aborted", kind="abort", route=route)
        if self.is_internet_disconnected_error(error):
            return TransportError(
                self.get_user_message_for_fetcher_error(error),
                kind="disconnected",
                route=route,
            )
        if self.is_fetcher_error(error):
            return TransportError(
                self.get_user_message_for_fetcher_error(error),
                kind="fetcher",
                route=route,
            )
        return None


# -----------------------------------------------------------------------------
# httpx backed fetcher
# -----------------------------------------------------------------------------


class FetchAbortedError(Exception):
    """Raised by :class:`HttpxFetcher` when a request's signal fires."""


class _EventSignal:
    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def _set(self) -> None:
        self._event.set()


class HttpxAbortController:
    """Abort controller whose signal can be awaited by :class:`HttpxFetcher`."""

    def __init__(self) -> None:
        self._signal = _EventSignal()

    @property
    def signal(self) -> _EventSignal:
        return self._signal

    def abort(self) -> None:
        self._signal._set()


class HttpxResponse:
    """:class:`FetchResponse` view over an :class:`httpx.Response`."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers

    async def text(self) -> str:
        return self._response.text

    async def json(self) -> Any:
        return self._response.json()


class HttpxFetcher:
    """Fetcher implementation using a shared :class:`httpx.AsyncClient`."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = 30.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout

    def get_user_agent_library(self) -> str:
        return f"httpx/{httpx.__version__}"

    async def fetch(self, url: str, options: FetchOptions) -> HttpxResponse:
        request = self._client.build_request(
            options.method,
            url,
            headers=options.headers,
            json=options.json,
            timeout=options.timeout if options.timeout is not None else self._timeout,
        )
        signal = options.signal
        if signal is None:
            return HttpxResponse(await self._client.send(request))
        if signal.aborted:
            raise FetchAbortedError(f"Request to {url} aborted before sending")

        send_task = asyncio.ensure_future(self._client.send(request))
        abort_task = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait({send_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            abort_task.cancel()
        if send_task in done:
            return HttpxResponse(send_task.result())
        send_task.cancel()
        LOGGER.debug("Aborted in-flight request to %s", url)
        raise FetchAbortedError(f"Request to {url} aborted")

    async def disconnect_all(self) -> None:
        await self._client.aclose()

    def make_abort_controller(self) -> HttpxAbortController:
        return HttpxAbortController()

    def is_abort_error(self, error: BaseException) -> bool:
        return isinstance(error, FetchAbortedError)

    def is_internet_disconnected_error(self, error: BaseException) -> bool:
        return isinstance(error, httpx.ConnectError)

    def is_fetcher_error(self, error: BaseException) -> bool:
        return isinstance(error, httpx.HTTPError)

    def get_user_message_for_fetcher_error(self, error: BaseException) -> str:
        if isinstance(error, httpx.ConnectError):
            return "Unable to connect to the server. Check your internet connection."
        if isinstance(error, httpx.TimeoutException):
            return "The request timed out."
        return f"Network request failed: {error}"

"""Authenticated REST and GraphQL requests against GitHub style services.

The client returns raw decoded bodies; callers validate them before reading
any field (see :mod:`editwise.github.service`).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Literal, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..core.cancellation import CancellationToken
from ..core.errors import GraphQLError, HttpStatusError, ValidationError
from ..core.validators import ValidationFailure
from ..services.capabilities import FETCHER_SERVICE, SETTINGS, TELEMETRY_SERVICE, FetchOptions, FetchResponse
from ..services.fetcher import FetcherService
from ..services.instantiation import inject
from ..services.settings import EditwiseSettings
from ..services.telemetry import TelemetryService
from .validators import v_graphql_envelope

__all__ = ["GitHubApiClient", "MAX_PAGES", "parse_next_link"]

LOGGER = logging.getLogger(__name__)

HttpMethod = Literal["GET", "POST", "PATCH", "PUT", "DELETE"]
ResponseType = Literal["json", "text"]

MAX_PAGES = 100
_ABSENT_STATUSES = frozenset({204, 404})
_LINK_PATTERN = re.compile(r'<([^>]+)>\s*;\s*rel="?([^";]+)"?')


def parse_next_link(header: str | None) -> str | None:
    """Return the ``rel="next"`` target of a ``Link`` header, if any."""

    if not header:
        return None
    for url, rel in _LINK_PATTERN.findall(header):
        if "next" in rel.split():
            return url
    return None


def _header(response: FetchResponse, name: str) -> str | None:
    headers = response.headers
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def _with_query(url: str, params: Mapping[str, Any]) -> str:
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update({key: str(value) for key, value in params.items()})
    return urlunsplit(parts._replace(query=urlencode(query)))


@inject(fetcher=FETCHER_SERVICE, telemetry=TELEMETRY_SERVICE, settings=SETTINGS)
class GitHubApiClient:
    """Issues bearer-authenticated requests and decodes their bodies."""

    def __init__(
        self,
        *,
        fetcher: FetcherService,
        telemetry: TelemetryService,
        settings: EditwiseSettings,
    ) -> None:
        self._fetcher = fetcher
        self._telemetry = telemetry
        self._settings = settings

    @property
    def settings(self) -> EditwiseSettings:
        return self._settings

    async def request(
        self,
        base_url: str,
        route: str,
        method: HttpMethod,
        token: str,
        body: Mapping[str, Any] | None = None,
        *,
        api_version: str | None = None,
        user_agent: str | None = None,
        response_type: ResponseType = "json",
        return_status_on_error: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> Any | None:
        """Send one request and return its decoded body.

        Returns ``None`` when the body is absent (204, 404 or empty).

        Raises:
            HttpStatusError: for any other non-2xx status, unless
                ``return_status_on_error`` asks for ``{"status": code}``.
            ValidationError: when a JSON body cannot be decoded.
            TransportError: for classified fetcher failures.
            CancellationError: when ``cancellation`` was requested.
        """

        url = f"{base_url.rstrip('/')}/{route.lstrip('/')}"
        response = await self._send(
            url,
            route,
            method,
            token,
            body,
            api_version=api_version,
            user_agent=user_agent,
            cancellation=cancellation,
        )
        return await self._decode(
            response,
            route,
            method,
            response_type=response_type,
            return_status_on_error=return_status_on_error,
        )

    async def request_with_pagination(
        self,
        base_url: str,
        route: str,
        token: str,
        *,
        items_key: str | None = None,
        page_size: int = 20,
        params: Mapping[str, Any] | None = None,
        api_version: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> list[Any]:
        """Collect every page of a list endpoint, in order.

        ``Link: rel="next"`` headers are followed when the server sends them;
        otherwise ``page``/``per_page`` are incremented until a short page.
        Each page is the body itself or, with ``items_key``, that key of it.
        """

        page_size = max(1, page_size)
        first_url = _with_query(
            f"{base_url.rstrip('/')}/{route.lstrip('/')}",
            {**(params or {}), "page": 1, "per_page": page_size},
        )
        items: list[Any] = []
        url: str | None = first_url
        for page in range(1, MAX_PAGES + 1):
            response = await self._send(
                url,
                route,
                "GET",
                token,
                None,
                api_version=api_version,
                cancellation=cancellation,
            )
            payload = await self._decode(response, route, "GET")
            page_items = self._page_items(payload, route, items_key)
            items.extend(page_items)

            link_header = _header(response, "link")
            if link_header is not None:
                url = parse_next_link(link_header)
            elif len(page_items) < page_size:
                url = None
            else:
                url = _with_query(first_url, {"page": page + 1})
            if url is None:
                LOGGER.debug("Fetched %d item(s) from %s across %d page(s)", len(items), route, page)
                break
        else:
            LOGGER.warning("Stopping pagination of %s after %d pages", route, MAX_PAGES)
        return items

    async def graphql_request(
        self,
        base_url: str,
        query: str,
        token: str,
        variables: Mapping[str, Any] | None = None,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Any | None:
        """POST a GraphQL document and return the unwrapped ``data`` member.

        Raises:
            GraphQLError: when the envelope carries ``errors``.
            ValidationError: when the envelope itself is malformed.
        """

        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = dict(variables)
        payload = await self.request(
            base_url,
            "graphql",
            "POST",
            token,
            body,
            cancellation=cancellation,
        )
        if payload is None:
            return None
        envelope = v_graphql_envelope().validate(payload)
        if envelope.error is not None:
            LOGGER.error("Invalid GraphQL envelope: %s", envelope.error.message)
            raise ValidationError(
                f"Invalid GraphQL envelope: {envelope.error.message}",
                failure=envelope.error,
                operation="graphql",
            )
        errors = envelope.content.get("errors") if envelope.content else None
        if errors:
            messages = [entry["message"] for entry in errors]
            self._report_failure("graphql", "POST", reason="graphql_errors")
            raise GraphQLError(messages)
        return payload.get("data")

    async def _send(
        self,
        url: str,
        route: str,
        method: str,
        token: str,
        body: Mapping[str, Any] | None,
        *,
        api_version: str | None = None,
        user_agent: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> FetchResponse:
        token_state = cancellation or CancellationToken.none()
        token_state.raise_if_cancelled(f"Request to {route} cancelled")

        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "User-Agent": user_agent or self._settings.user_agent,
        }
        if api_version:
            headers["X-GitHub-Api-Version"] = api_version
        if body is not None:
            headers["Content-Type"] = "application/json"

        controller = self._fetcher.make_abort_controller()
        unsubscribe = token_state.on_cancellation_requested(controller.abort)
        options = FetchOptions(
            method=method,
            headers=headers,
            json=dict(body) if body is not None else None,
            timeout=self._settings.request_timeout,
            signal=controller.signal,
        )
        LOGGER.debug("%s %s", method, url)
        try:
            return await self._fetcher.fetch(url, options)
        except Exception as exc:
            classified = self._fetcher.classify_error(
                exc,
                route=route,
                cancelled=token_state.is_cancellation_requested,
            )
            if classified is None:
                raise
            self._report_failure(route, method, reason=getattr(classified, "code", "error"))
            LOGGER.warning("Request %s %s failed: %s", method, route, classified)
            raise classified from exc
        finally:
            unsubscribe()

    async def _decode(
        self,
        response: FetchResponse,
        route: str,
        method: str,
        *,
        response_type: ResponseType = "json",
        return_status_on_error: bool = False,
    ) -> Any | None:
        status = response.status
        if status in _ABSENT_STATUSES:
            LOGGER.debug("%s %s returned %d; treating body as absent", method, route, status)
            return None
        if not 200 <= status < 300:
            self._report_failure(route, method, status=status)
            LOGGER.error("%s %s failed with status %d", method, route, status)
            if return_status_on_error:
                return {"status": status}
            raise HttpStatusError(status, route=route)

        text = await response.text()
        if response_type == "text":
            return text or None
        if not text or not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            failure = ValidationFailure(f"malformed JSON body ({exc.__class__.__name__})")
            LOGGER.error("%s %s returned malformed JSON", method, route)
            raise ValidationError(
                f"Malformed JSON from {route}",
                failure=failure,
                operation=route,
            ) from exc

    def _page_items(self, payload: Any, route: str, items_key: str | None) -> list[Any]:
        if payload is None:
            return []
        container = payload
        if items_key is not None:
            if not isinstance(payload, Mapping):
                raise ValidationError(
                    f"Page of {route} is not an object",
                    failure=ValidationFailure("expected object"),
                    operation=route,
                )
            container = payload.get(items_key, [])
        if not isinstance(container, list):
            failure = ValidationFailure("expected array", (items_key,) if items_key else ())
            raise ValidationError(f"Page of {route} is not a list", failure=failure, operation=route)
        return container

    def _report_failure(
        self,
        route: str,
        method: str,
        *,
        status: int | None = None,
        reason: str | None = None,
    ) -> None:
        self._telemetry.send_event(
            "githubApi.requestFailed",
            {"route": route.split("?", 1)[0], "method": method, "reason": reason},
            {"status": float(status) if status is not None else None},
        )

"""Tests for :class:`editwise.github.api.GitHubApiClient`."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from editwise.core.cancellation import CancellationTokenSource
from editwise.core.errors import (
    CancellationError,
    GraphQLError,
    HttpStatusError,
    TransportError,
    ValidationError,
)
from editwise.github.api import parse_next_link
from editwise.services.fetcher import FetchAbortedError

from tests.helpers import FakeResponse, RecordingFetcher, make_api

BASE = "https://api.github.com"


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


class TestRequest:
    """Tests for single requests."""

    @pytest.mark.asyncio
    async def test_returns_decoded_json_and_sends_headers(self) -> None:
        fetcher = RecordingFetcher(FakeResponse(200, {"login": "octocat"}))
        client, _ = make_api(fetcher, user_agent="editwise-tests")

        body = await client.request(BASE, "user", "GET", "tok", api_version="2022-11-28")

        assert body == {"login": "octocat"}
        url, options = fetcher.requests[0]
        assert url == "https://api.github.com/user"
        assert options.method == "GET"
        assert options.headers["Authorization"] == "Bearer tok"
        assert options.headers["Accept"] == "application/vnd.github+json"
        assert options.headers["User-Agent"] == "editwise-tests"
        assert options.headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert "Content-Type" not in options.headers
        assert options.signal is not None

    @pytest.mark.asyncio
    async def test_json_body_sets_content_type(self) -> None:
        fetcher = RecordingFetcher(FakeResponse(200, {"state": "closed"}))
        client, _ = make_api(fetcher)

        await client.request(BASE, "/repos/o/r/pulls/1", "PATCH", "tok", {"state": "closed"})

        url, options = fetcher.requests[0]
        assert url == "https://api.github.com/repos/o/r/pulls/1"
        assert options.json == {"state": "closed"}
        assert options.headers["Content-Type"] == "application/json"
        assert "X-GitHub-Api-Version" not in options.headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [FakeResponse(404, {"message": "Not Found"}), FakeResponse(204), FakeResponse(200, text="  ")])
    async def test_absent_bodies_return_none(self, response: FakeResponse) -> None:
        client, sender = make_api(RecordingFetcher(response))

        assert await client.request(BASE, "repos/o/r", "GET", "tok") is None
        assert len(sender) == 0

    @pytest.mark.asyncio
    async def test_error_status_raises_and_reports(self) -> None:
        client, sender = make_api(RecordingFetcher(FakeResponse(500, {"message": "boom"})))

        with pytest.raises(HttpStatusError) as excinfo:
            await client.request(BASE, "repos/o/r?x=1", "GET", "tok")

        assert excinfo.value.status == 500
        assert excinfo.value.details["route"] == "repos/o/r?x=1"
        [event] = sender.events()
        assert event.name == "githubApi.requestFailed"
        assert event.properties == {"route": "repos/o/r", "method": "GET"}
        assert event.measurements == {"status": 500.0}

    @pytest.mark.asyncio
    async def test_return_status_on_error(self) -> None:
        client, _ = make_api(RecordingFetcher(FakeResponse(422, {"message": "invalid"})))

        body = await client.request(BASE, "jobs", "POST", "tok", {}, return_status_on_error=True)

        assert body == {"status": 422}

    @pytest.mark.asyncio
    async def test_malformed_json_is_a_validation_error(self) -> None:
        client, _ = make_api(RecordingFetcher(FakeResponse(200, text="{not json")))

        with pytest.raises(ValidationError) as excinfo:
            await client.request(BASE, "user", "GET", "tok")

        assert excinfo.value.operation == "user"
        assert "malformed JSON" in excinfo.value.failure.reason

    @pytest.mark.asyncio
    async def test_text_response(self) -> None:
        client, _ = make_api(RecordingFetcher(FakeResponse(200, text="line 1\nline 2")))

        text = await client.request(BASE, "logs", "GET", "tok", response_type="text")

        assert text == "line 1\nline 2"


class TestFailures:
    """Tests for fetcher failures and cancellation."""

    @pytest.mark.asyncio
    async def test_cancelled_token_short_circuits(self) -> None:
        fetcher = RecordingFetcher(FakeResponse(200, {}))
        client, _ = make_api(fetcher)
        source = CancellationTokenSource()
        source.cancel()

        with pytest.raises(CancellationError):
            await client.request(BASE, "user", "GET", "tok", cancellation=source.token)

        assert fetcher.requests == []

    @pytest.mark.asyncio
    async def test_cancellation_aborts_in_flight_request(self) -> None:
        source = CancellationTokenSource()

        def handler(url, options):
            source.cancel()
            if options.signal.aborted:
                return FetchAbortedError(url)
            return FakeResponse(200, {})

        client, sender = make_api(RecordingFetcher(handler=handler))

        with pytest.raises(CancellationError):
            await client.request(BASE, "user", "GET", "tok", cancellation=source.token)

        assert sender.events()[0].properties["reason"] == "cancelled"

    @pytest.mark.asyncio
    async def test_abort_without_cancellation_is_transport_error(self) -> None:
        client, _ = make_api(RecordingFetcher(FetchAbortedError("timeout")))

        with pytest.raises(TransportError) as excinfo:
            await client.request(BASE, "user", "GET", "tok")

        assert excinfo.value.kind == "abort"

    @pytest.mark.asyncio
    async def test_disconnected(self) -> None:
        client, sender = make_api(RecordingFetcher(ConnectionError("offline")))

        with pytest.raises(TransportError) as excinfo:
            await client.request(BASE, "user", "GET", "tok")

        assert excinfo.value.kind == "disconnected"
        assert isinstance(excinfo.value.__cause__, ConnectionError)
        assert sender.events()[0].properties["reason"] == "transport_error"

    @pytest.mark.asyncio
    async def test_unclassified_errors_propagate_unchanged(self) -> None:
        client, _ = make_api(RecordingFetcher(KeyError("bug")))

        with pytest.raises(KeyError):
            await client.request(BASE, "user", "GET", "tok")


class TestPagination:
    """Tests for ``request_with_pagination``."""

    @pytest.mark.asyncio
    async def test_pages_of_two_two_one_yield_five_ordered_items(self) -> None:
        fetcher = RecordingFetcher(
            FakeResponse(200, [1, 2]),
            FakeResponse(200, [3, 4]),
            FakeResponse(200, [5]),
        )
        client, _ = make_api(fetcher)

        items = await client.request_with_pagination(BASE, "repos/o/r/pulls", "tok", page_size=2)

        assert items == [1, 2, 3, 4, 5]
        assert [_query(url)["page"] for url in fetcher.urls] == [["1"], ["2"], ["3"]]
        assert all(_query(url)["per_page"] == ["2"] for url in fetcher.urls)

    @pytest.mark.asyncio
    async def test_full_last_page_needs_empty_page_to_stop(self) -> None:
        fetcher = RecordingFetcher(FakeResponse(200, [1, 2]), FakeResponse(200, []))
        client, _ = make_api(fetcher)

        assert await client.request_with_pagination(BASE, "items", "tok", page_size=2) == [1, 2]
        assert len(fetcher.requests) == 2

    @pytest.mark.asyncio
    async def test_follows_link_headers(self) -> None:
        next_url = "https://api.github.com/items?page=2&per_page=2&cursor=abc"
        fetcher = RecordingFetcher(
            FakeResponse(200, [1], headers={"Link": f'<{next_url}>; rel="next", <https://x/last>; rel="last"'}),
            FakeResponse(200, [2], headers={"link": '<https://x/first>; rel="first"'}),
        )
        client, _ = make_api(fetcher)

        items = await client.request_with_pagination(BASE, "items", "tok", page_size=2)

        assert items == [1, 2]
        assert fetcher.urls[1] == next_url

    @pytest.mark.asyncio
    async def test_items_key_and_params(self) -> None:
        fetcher = RecordingFetcher(FakeResponse(200, {"sessions": [{"id": "a"}], "total": 1}))
        client, _ = make_api(fetcher)

        items = await client.request_with_pagination(
            "https://api.githubcopilot.com",
            "agents/sessions",
            "tok",
            items_key="sessions",
            params={"nwo": "o/r"},
        )

        assert items == [{"id": "a"}]
        assert _query(fetcher.urls[0])["nwo"] == ["o/r"]

    @pytest.mark.asyncio
    async def test_non_list_page_is_a_validation_error(self) -> None:
        client, _ = make_api(RecordingFetcher(FakeResponse(200, {"sessions": "nope"})))

        with pytest.raises(ValidationError):
            await client.request_with_pagination(BASE, "agents/sessions", "tok", items_key="sessions")

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            (None, None),
            ('<https://a/2>; rel="next"', "https://a/2"),
            ('<https://a/1>; rel="prev", <https://a/3>; rel="next"', "https://a/3"),
            ('<https://a/9>; rel="last"', None),
        ],
    )
    def test_parse_next_link(self, header: str | None, expected: str | None) -> None:
        assert parse_next_link(header) == expected


class TestGraphQL:
    @pytest.mark.asyncio
    async def test_returns_data_member(self) -> None:
        fetcher = RecordingFetcher(FakeResponse(200, {"data": {"viewer": {"login": "octocat"}}}))
        client, _ = make_api(fetcher)

        data = await client.graphql_request(BASE, "query { viewer { login } }", "tok", {"first": 1})

        assert data == {"viewer": {"login": "octocat"}}
        url, options = fetcher.requests[0]
        assert url == "https://api.github.com/graphql"
        assert options.method == "POST"
        assert options.json == {"query": "query { viewer { login } }", "variables": {"first": 1}}

    @pytest.mark.asyncio
    async def test_errors_raise_graphql_error(self) -> None:
        payload = {"data": None, "errors": [{"message": "Could not resolve"}, {"message": "Second"}]}
        client, sender = make_api(RecordingFetcher(FakeResponse(200, payload)))

        with pytest.raises(GraphQLError) as excinfo:
            await client.graphql_request(BASE, "query {}", "tok")

        assert excinfo.value.messages == ["Could not resolve", "Second"]
        assert sender.events()[0].properties["reason"] == "graphql_errors"

    @pytest.mark.asyncio
    async def test_malformed_envelope(self) -> None:
        client, _ = make_api(RecordingFetcher(FakeResponse(200, {"data": [1, 2]})))

        with pytest.raises(ValidationError):
            await client.graphql_request(BASE, "query {}", "tok")

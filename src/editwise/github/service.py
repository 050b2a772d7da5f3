"""Validated domain operations over the GitHub and agent-service APIs.

Every operation obtains a bearer token from the token provider, issues the
generic request, treats an absent body as "not found" and validates the
payload before returning it. Validation failures are logged and replaced by
the operation's fallback: an empty value for list-shaped and best-effort
queries, a :class:`ValidationError` for must-exist resources.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Awaitable, TypeVar, cast
from urllib.parse import quote

from ..core.errors import ValidationError
from ..core.validators import Validator, v_array
from ..services.capabilities import GITHUB_API, SETTINGS, TOKEN_PROVIDER, TokenProvider
from ..services.instantiation import inject
from ..services.settings import EditwiseSettings
from .api import GitHubApiClient
from .models import (
    CustomAgentListItem,
    ErrorResponseWithStatusCode,
    JobInfo,
    OctoKitUser,
    PullRequestComment,
    PullRequestFile,
    PullRequestSearchItem,
    RemoteAgentJobPayload,
    RemoteAgentJobResponse,
    RepositoryItem,
    SessionInfo,
)
from .validators import (
    v_close_pull_request_response,
    v_error_response_with_status_code,
    v_file_content_response,
    v_get_custom_agents_response,
    v_job_info,
    v_octokit_user,
    v_pull_request_comment,
    v_pull_request_file,
    v_pull_request_search_item,
    v_remote_agent_job_response,
    v_repository_item,
    v_session_info,
    v_sessions_response,
)

__all__ = ["GitHubService", "COPILOT_AGENT_LOGIN"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

COPILOT_AGENT_LOGIN = "copilot-swe-agent[bot]"

_SEARCH_PULL_REQUESTS_QUERY = """
query SearchPullRequests($query: String!) {
  search(query: $query, type: ISSUE, first: 50) {
    nodes {
      ... on PullRequest {
        id number title state url createdAt updatedAt body
        author { login }
        repository { name owner { login } }
      }
    }
  }
}
"""

_PULL_REQUEST_BY_ID_QUERY = """
query PullRequestById($id: ID!) {
  node(id: $id) {
    ... on PullRequest {
      id number title state url createdAt updatedAt body
      author { login }
      repository { name owner { login } }
    }
  }
}
"""

_ADD_COMMENT_MUTATION = """
mutation AddPullRequestComment($subjectId: ID!, $body: String!) {
  addComment(input: {subjectId: $subjectId, body: $body}) {
    commentEdge { node { id body createdAt url author { login } } }
  }
}
"""


@inject(api=GITHUB_API, token_provider=TOKEN_PROVIDER, settings=SETTINGS)
class GitHubService:
    """Typed, validated access to repositories, pull requests and agent jobs."""

    def __init__(
        self,
        *,
        api: GitHubApiClient,
        token_provider: TokenProvider,
        settings: EditwiseSettings,
    ) -> None:
        self._api = api
        self._token_provider = token_provider
        self._settings = settings

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_current_authed_user(self) -> OctoKitUser | None:
        return await self._read_or_none(self._github_request("user"), v_octokit_user(), "user")

    # ------------------------------------------------------------------
    # Agent jobs and sessions
    # ------------------------------------------------------------------

    async def post_job(
        self,
        owner: str,
        name: str,
        payload: RemoteAgentJobPayload,
        *,
        api_version: str = "v1",
        user_agent: str | None = None,
    ) -> RemoteAgentJobResponse | ErrorResponseWithStatusCode:
        """Create a remote agent job; HTTP failures come back as ``{"status": code}``."""

        token = await self._token_provider.get_token()
        response = await self._api.request(
            self._settings.copilot_api_url,
            f"agents/swe/{api_version}/jobs/{owner}/{name}",
            "POST",
            token,
            payload.to_payload(),
            user_agent=user_agent,
            return_status_on_error=True,
        )
        if response is None:
            raise ValidationError("Empty response when creating agent job", operation="post_job")
        if isinstance(response, dict) and set(response) == {"status"}:
            return cast(
                ErrorResponseWithStatusCode,
                self._validate_or_raise(v_error_response_with_status_code(), response, "post_job"),
            )
        return cast(
            RemoteAgentJobResponse,
            self._validate_or_raise(v_remote_agent_job_response(), response, "post_job"),
        )

    async def get_job_by_job_id(
        self,
        owner: str,
        repo: str,
        job_id: str,
        user_agent: str | None = None,
    ) -> JobInfo | None:
        return await self._get_job(f"agents/swe/v1/jobs/{owner}/{repo}/{job_id}", user_agent, "get_job_by_job_id")

    async def get_job_by_session_id(
        self,
        owner: str,
        repo: str,
        session_id: str,
        user_agent: str | None = None,
    ) -> JobInfo | None:
        return await self._get_job(
            f"agents/swe/v1/jobs/{owner}/{repo}/session/{session_id}",
            user_agent,
            "get_job_by_session_id",
        )

    async def _get_job(self, route: str, user_agent: str | None, operation: str) -> JobInfo | None:
        token = await self._token_provider.get_token()
        response = await self._api.request(
            self._settings.copilot_api_url,
            route,
            "GET",
            token,
            user_agent=user_agent,
        )
        if response is None:
            LOGGER.info("No job found for %s", route)
            return None
        return cast(JobInfo, self._validate_or_raise(v_job_info(), response, operation))

    async def get_custom_agents(self, owner: str, repo: str) -> list[CustomAgentListItem]:
        token = await self._token_provider.get_token()
        request = self._api.request(
            self._settings.copilot_api_url,
            f"agents/swe/custom-agents/{owner}/{repo}?exclude_invalid_config=true",
            "GET",
            token,
            user_agent=self._settings.user_agent,
        )
        content = await self._read_or_none(request, v_get_custom_agents_response(), "get_custom_agents")
        return content["agents"] if content is not None else []

    async def get_copilot_sessions_for_pr(self, pr_id: str) -> list[SessionInfo]:
        token = await self._token_provider.get_token()
        request = self._api.request(
            self._settings.copilot_api_url,
            f"agents/sessions/resource/pull/{pr_id}",
            "GET",
            token,
        )
        content = await self._read_or_none(request, v_sessions_response(), "get_copilot_sessions_for_pr")
        return content["sessions"] if content is not None else []

    async def get_session_info(self, session_id: str) -> SessionInfo | None:
        token = await self._token_provider.get_token()
        response = await self._api.request(
            self._settings.copilot_api_url,
            f"agents/sessions/{session_id}",
            "GET",
            token,
        )
        if response is None:
            return None
        return cast(SessionInfo, self._validate_or_raise(v_session_info(), response, "get_session_info"))

    async def get_session_logs(self, session_id: str) -> str:
        token = await self._token_provider.get_token()
        response = await self._api.request(
            self._settings.copilot_api_url,
            f"agents/sessions/{session_id}/logs",
            "GET",
            token,
            response_type="text",
        )
        return response if isinstance(response, str) else ""

    async def get_all_open_sessions(self, nwo: str) -> list[SessionInfo]:
        token = await self._token_provider.get_token()
        try:
            sessions = await self._api.request_with_pagination(
                self._settings.copilot_api_url,
                "agents/sessions",
                token,
                items_key="sessions",
                params={"nwo": nwo, "resource_state": "draft,open"},
            )
        except ValidationError as exc:
            LOGGER.error("[GitHubService] Failed to read open sessions: %s", exc.message)
            return []
        content = self._validate_or_none(v_array(v_session_info()), sessions, "get_all_open_sessions")
        return content if content is not None else []

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def get_copilot_pull_requests_for_user(
        self,
        owner: str,
        repo: str,
        user: str,
    ) -> list[PullRequestSearchItem]:
        token = await self._token_provider.get_token()
        query = f"repo:{owner}/{repo} is:open author:{COPILOT_AGENT_LOGIN} involves:{user}"
        data = await self._graphql_or_none(
            _SEARCH_PULL_REQUESTS_QUERY,
            token,
            {"query": query},
            "get_copilot_pull_requests_for_user",
        )
        search = data.get("search") if isinstance(data, dict) else None
        nodes = search.get("nodes") if isinstance(search, dict) else None
        if not isinstance(nodes, list):
            return []
        content = self._validate_or_none(
            v_array(v_pull_request_search_item()),
            [node for node in nodes if node],
            "get_copilot_pull_requests_for_user",
        )
        return content if content is not None else []

    async def get_pull_request_from_global_id(self, global_id: str) -> PullRequestSearchItem | None:
        token = await self._token_provider.get_token()
        data = await self._graphql_or_none(
            _PULL_REQUEST_BY_ID_QUERY,
            token,
            {"id": global_id},
            "get_pull_request_from_global_id",
        )
        node = data.get("node") if isinstance(data, dict) else None
        if node is None:
            return None
        return self._validate_or_none(v_pull_request_search_item(), node, "get_pull_request_from_global_id")

    async def add_pull_request_comment(self, pull_request_id: str, body: str) -> PullRequestComment | None:
        token = await self._token_provider.get_token()
        data = await self._graphql_or_none(
            _ADD_COMMENT_MUTATION,
            token,
            {"subjectId": pull_request_id, "body": body},
            "add_pull_request_comment",
        )
        try:
            node = data["addComment"]["commentEdge"]["node"]
        except (KeyError, TypeError):
            LOGGER.error("[GitHubService] addComment response missing comment node")
            return None
        return self._validate_or_none(v_pull_request_comment(), node, "add_pull_request_comment")

    async def get_pull_request_files(self, owner: str, repo: str, pull_number: int) -> list[PullRequestFile]:
        content = await self._read_or_none(
            self._github_request(f"repos/{owner}/{repo}/pulls/{pull_number}/files"),
            v_array(v_pull_request_file()),
            "get_pull_request_files",
        )
        return content if content is not None else []

    async def close_pull_request(self, owner: str, repo: str, pull_number: int) -> bool:
        content = await self._read_or_none(
            self._github_request(
                f"repos/{owner}/{repo}/pulls/{pull_number}",
                method="PATCH",
                body={"state": "closed"},
            ),
            v_close_pull_request_response(),
            "close_pull_request",
        )
        return content is not None and content["state"] == "closed"

    # ------------------------------------------------------------------
    # Repository contents
    # ------------------------------------------------------------------

    async def get_repository_items(self, owner: str, repo: str, path: str = "") -> list[RepositoryItem]:
        content = await self._read_or_none(
            self._github_request(f"repos/{owner}/{repo}/contents/{_quote_path(path)}"),
            v_array(v_repository_item()),
            "get_repository_items",
        )
        return content if content is not None else []

    async def get_file_content(self, owner: str, repo: str, ref: str, path: str) -> str:
        """Return the decoded text of ``path`` at ``ref``.

        Only base64 payloads are decoded; any other encoding yields ``""``.
        """

        content = await self._read_or_none(
            self._github_request(f"repos/{owner}/{repo}/contents/{_quote_path(path)}?ref={quote(ref, safe='')}"),
            v_file_content_response(),
            "get_file_content",
        )
        if content is None:
            return ""
        if content["encoding"] != "base64":
            LOGGER.warning("Unsupported file content encoding %r for %s", content["encoding"], path)
            return ""
        try:
            raw = base64.b64decode(content["content"].replace("\n", ""), validate=True)
        except (binascii.Error, ValueError):
            LOGGER.error("[GitHubService] File content for %s is not valid base64", path)
            return ""
        return raw.decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _github_request(
        self,
        route: str,
        *,
        method: str = "GET",
        body: dict[str, Any] | None = None,
    ) -> Any | None:
        token = await self._token_provider.get_token()
        return await self._api.request(
            self._settings.github_api_url,
            route,
            method,  # type: ignore[arg-type]
            token,
            body,
            api_version=self._settings.api_version,
        )

    async def _read_or_none(self, request: Awaitable[Any], validator: Validator[Any], operation: str) -> Any | None:
        """Await ``request`` and validate it; absent, unreadable or invalid bodies give ``None``."""

        try:
            response = await request
        except ValidationError as exc:
            LOGGER.error("[GitHubService] Failed to read %s response: %s", operation, exc.message)
            return None
        if response is None:
            LOGGER.debug("No %s response body", operation)
            return None
        return self._validate_or_none(validator, response, operation)

    async def _graphql_or_none(self, query: str, token: str, variables: dict[str, Any], operation: str) -> Any | None:
        try:
            return await self._api.graphql_request(self._settings.github_api_url, query, token, variables)
        except ValidationError as exc:
            LOGGER.error("[GitHubService] Failed to read %s response: %s", operation, exc.message)
            return None

    def _validate_or_none(self, validator: Validator[Any], payload: Any, operation: str) -> Any | None:
        result = validator.validate(payload)
        if result.error is not None:
            LOGGER.error("[GitHubService] Failed to validate %s response: %s", operation, result.error.message)
            return None
        return result.content

    def _validate_or_raise(self, validator: Validator[T], payload: Any, operation: str) -> T:
        result = validator.validate(payload)
        if result.error is not None:
            LOGGER.error("[GitHubService] Failed to validate %s response: %s", operation, result.error.message)
            raise ValidationError(
                f"Invalid {operation} response: {result.error.message}",
                failure=result.error,
                operation=operation,
            )
        return cast(T, result.content)


def _quote_path(path: str) -> str:
    return quote(path.strip("/"), safe="/")

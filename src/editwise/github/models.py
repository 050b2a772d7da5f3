"""Typed shapes of validated GitHub and agent-service payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, NotRequired, TypedDict

__all__ = [
    "Actor",
    "ClosePullRequestResponse",
    "CustomAgentListItem",
    "ErrorResponseWithStatusCode",
    "FileContentResponse",
    "JobInfo",
    "OctoKitUser",
    "PullRequestComment",
    "PullRequestFile",
    "PullRequestSearchItem",
    "RemoteAgentJobPayload",
    "RemoteAgentJobResponse",
    "RepositoryItem",
    "SessionInfo",
]


class OctoKitUser(TypedDict):
    login: str
    name: str | None
    avatar_url: str


class Actor(TypedDict):
    id: float
    login: str


class _PullRequestRef(TypedDict):
    id: float
    number: float


class _WorkflowRunRef(TypedDict):
    id: float


class _JobError(TypedDict):
    message: str


class JobInfo(TypedDict):
    job_id: str
    session_id: str
    problem_statement: str
    status: str
    actor: Actor
    created_at: str
    updated_at: str
    content_filter_mode: NotRequired[str]
    result: NotRequired[str]
    pull_request: NotRequired[_PullRequestRef]
    workflow_run: NotRequired[_WorkflowRunRef]
    error: NotRequired[_JobError]
    event_type: NotRequired[str]
    event_url: NotRequired[str]
    event_identifiers: NotRequired[list[str]]


class RemoteAgentJobResponse(TypedDict):
    job_id: str
    session_id: str
    actor: Actor
    created_at: str
    updated_at: str


class ErrorResponseWithStatusCode(TypedDict):
    status: float


class CustomAgentListItem(TypedDict):
    name: str
    repo_owner_id: float
    repo_owner: str
    repo_id: float
    repo_name: str
    display_name: str
    description: str
    tools: list[str]
    version: str


PullRequestFileStatus = Literal["added", "removed", "modified", "renamed", "copied", "changed", "unchanged"]


class PullRequestFile(TypedDict):
    filename: str
    status: PullRequestFileStatus
    additions: float
    deletions: float
    changes: float
    patch: NotRequired[str]
    previous_filename: NotRequired[str]


SessionState = Literal["completed", "in_progress", "failed", "queued"]


class SessionInfo(TypedDict):
    id: str
    name: str
    user_id: float
    agent_id: float
    logs: str
    logs_blob_id: str
    state: SessionState
    owner_id: float
    repo_id: float
    resource_type: str
    resource_id: float
    last_updated_at: str
    created_at: str
    completed_at: str
    event_type: str
    workflow_run_id: float
    premium_requests: float
    error: str | None
    resource_global_id: str


class FileContentResponse(TypedDict):
    content: str
    encoding: str


class ClosePullRequestResponse(TypedDict):
    state: str


class RepositoryItem(TypedDict):
    name: str
    path: str
    type: Literal["file", "dir"]
    html_url: str


class PullRequestSearchItem(TypedDict):
    id: str
    number: float
    title: str
    state: str
    url: str
    createdAt: str
    updatedAt: str
    author: NotRequired[dict[str, Any] | None]
    repository: NotRequired[dict[str, Any]]
    body: NotRequired[str]


class PullRequestComment(TypedDict):
    id: str
    body: str
    createdAt: str
    url: NotRequired[str]
    author: NotRequired[dict[str, Any] | None]


@dataclass(slots=True)
class RemoteAgentJobPayload:
    """Body posted to create a remote agent job."""

    problem_statement: str
    event_type: str
    pull_request_title: str | None = None
    pull_request_body_placeholder: str | None = None
    pull_request_body_suffix: str | None = None
    base_ref: str | None = None
    head_ref: str | None = None
    run_name: str | None = None
    custom_agent: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "problem_statement": self.problem_statement,
            "event_type": self.event_type,
        }
        pull_request = {
            key: value
            for key, value in (
                ("title", self.pull_request_title),
                ("body_placeholder", self.pull_request_body_placeholder),
                ("body_suffix", self.pull_request_body_suffix),
                ("base_ref", self.base_ref),
                ("head_ref", self.head_ref),
            )
            if value is not None
        }
        if pull_request:
            payload["pull_request"] = pull_request
        if self.run_name is not None:
            payload["run_name"] = self.run_name
        if self.custom_agent is not None:
            payload["custom_agent"] = self.custom_agent
        return payload

"""Response validators for GitHub REST, GraphQL and agent-service payloads."""

from __future__ import annotations

from typing import Any

from ..core.validators import (
    Validator,
    v_array,
    v_enum,
    v_null,
    v_number,
    v_obj,
    v_required,
    v_string,
    v_union,
)

__all__ = [
    "v_close_pull_request_response",
    "v_custom_agent_list_item",
    "v_error_response_with_status_code",
    "v_file_content_response",
    "v_get_custom_agents_response",
    "v_graphql_envelope",
    "v_job_info",
    "v_octokit_user",
    "v_pull_request_comment",
    "v_pull_request_file",
    "v_pull_request_search_item",
    "v_remote_agent_job_response",
    "v_repository_item",
    "v_session_info",
    "v_sessions_response",
]


def v_octokit_user() -> Validator[dict[str, Any]]:
    return v_obj({
        "login": v_required(v_string()),
        "name": v_required(v_union(v_string(), v_null())),
        "avatar_url": v_required(v_string()),
    })


def _v_actor() -> Validator[dict[str, Any]]:
    return v_obj({
        "id": v_required(v_number()),
        "login": v_required(v_string()),
    })


def v_job_info() -> Validator[dict[str, Any]]:
    return v_obj({
        "job_id": v_required(v_string()),
        "session_id": v_required(v_string()),
        "problem_statement": v_required(v_string()),
        "content_filter_mode": v_string(),
        "status": v_required(v_string()),
        "result": v_string(),
        "actor": v_required(_v_actor()),
        "created_at": v_required(v_string()),
        "updated_at": v_required(v_string()),
        "pull_request": v_obj({
            "id": v_required(v_number()),
            "number": v_required(v_number()),
        }),
        "workflow_run": v_obj({
            "id": v_required(v_number()),
        }),
        "error": v_obj({
            "message": v_required(v_string()),
        }),
        "event_type": v_string(),
        "event_url": v_string(),
        "event_identifiers": v_array(v_string()),
    })


def v_remote_agent_job_response() -> Validator[dict[str, Any]]:
    return v_obj({
        "job_id": v_required(v_string()),
        "session_id": v_required(v_string()),
        "actor": v_required(_v_actor()),
        "created_at": v_required(v_string()),
        "updated_at": v_required(v_string()),
    })


def v_error_response_with_status_code() -> Validator[dict[str, Any]]:
    return v_obj({
        "status": v_required(v_number()),
    })


def v_custom_agent_list_item() -> Validator[dict[str, Any]]:
    return v_obj({
        "name": v_required(v_string()),
        "repo_owner_id": v_required(v_number()),
        "repo_owner": v_required(v_string()),
        "repo_id": v_required(v_number()),
        "repo_name": v_required(v_string()),
        "display_name": v_required(v_string()),
        "description": v_required(v_string()),
        "tools": v_required(v_array(v_string())),
        "version": v_required(v_string()),
    })


def v_get_custom_agents_response() -> Validator[dict[str, Any]]:
    return v_obj({
        "agents": v_required(v_array(v_custom_agent_list_item())),
    })


def v_pull_request_file() -> Validator[dict[str, Any]]:
    return v_obj({
        "filename": v_required(v_string()),
        "status": v_required(
            v_enum("added", "removed", "modified", "renamed", "copied", "changed", "unchanged")
        ),
        "additions": v_required(v_number()),
        "deletions": v_required(v_number()),
        "changes": v_required(v_number()),
        "patch": v_string(),
        "previous_filename": v_string(),
    })


def v_session_info() -> Validator[dict[str, Any]]:
    return v_obj({
        "id": v_required(v_string()),
        "name": v_required(v_string()),
        "user_id": v_required(v_number()),
        "agent_id": v_required(v_number()),
        "logs": v_required(v_string()),
        "logs_blob_id": v_required(v_string()),
        "state": v_required(v_enum("completed", "in_progress", "failed", "queued")),
        "owner_id": v_required(v_number()),
        "repo_id": v_required(v_number()),
        "resource_type": v_required(v_string()),
        "resource_id": v_required(v_number()),
        "last_updated_at": v_required(v_string()),
        "created_at": v_required(v_string()),
        "completed_at": v_required(v_string()),
        "event_type": v_required(v_string()),
        "workflow_run_id": v_required(v_number()),
        "premium_requests": v_required(v_number()),
        "error": v_required(v_union(v_string(), v_null())),
        "resource_global_id": v_required(v_string()),
    })


def v_sessions_response() -> Validator[dict[str, Any]]:
    return v_obj({
        "sessions": v_required(v_array(v_session_info())),
    })


def v_file_content_response() -> Validator[dict[str, Any]]:
    return v_obj({
        "content": v_required(v_string()),
        "encoding": v_required(v_string()),
    })


def v_close_pull_request_response() -> Validator[dict[str, Any]]:
    return v_obj({
        "state": v_required(v_string()),
    })


def v_repository_item() -> Validator[dict[str, Any]]:
    return v_obj({
        "name": v_required(v_string()),
        "path": v_required(v_string()),
        "type": v_required(v_enum("file", "dir")),
        "html_url": v_required(v_string()),
    })


# GraphQL shapes

def _v_graphql_author() -> Validator[Any]:
    return v_union(v_obj({"login": v_required(v_string())}), v_null())


def v_pull_request_search_item() -> Validator[dict[str, Any]]:
    return v_obj({
        "id": v_required(v_string()),
        "number": v_required(v_number()),
        "title": v_required(v_string()),
        "state": v_required(v_string()),
        "url": v_required(v_string()),
        "createdAt": v_required(v_string()),
        "updatedAt": v_required(v_string()),
        "author": _v_graphql_author(),
        "repository": v_obj({
            "name": v_required(v_string()),
            "owner": v_required(v_obj({"login": v_required(v_string())})),
        }),
        "body": v_string(),
    })


def v_pull_request_comment() -> Validator[dict[str, Any]]:
    return v_obj({
        "id": v_required(v_string()),
        "body": v_required(v_string()),
        "createdAt": v_required(v_string()),
        "url": v_string(),
        "author": _v_graphql_author(),
    })


def v_graphql_envelope() -> Validator[dict[str, Any]]:
    """Outer ``{data, errors}`` envelope of a GraphQL response."""

    return v_obj({
        "data": v_union(v_obj({}), v_null()),
        "errors": v_array(v_obj({"message": v_required(v_string())})),
    })

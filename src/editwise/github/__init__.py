"""Validated access to GitHub REST/GraphQL and the agent-sessions service."""

from .api import MAX_PAGES, GitHubApiClient, parse_next_link
from .models import RemoteAgentJobPayload
from .service import COPILOT_AGENT_LOGIN, GitHubService

__all__ = [
    "COPILOT_AGENT_LOGIN",
    "GitHubApiClient",
    "GitHubService",
    "MAX_PAGES",
    "RemoteAgentJobPayload",
    "parse_next_link",
]

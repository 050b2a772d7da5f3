"""Runtime settings with environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

__all__ = ["EditwiseSettings"]

LOGGER = logging.getLogger(__name__)

_ENV_OVERRIDES: Mapping[str, str] = {
    "EDITWISE_GITHUB_API_URL": "github_api_url",
    "EDITWISE_COPILOT_API_URL": "copilot_api_url",
    "EDITWISE_API_VERSION": "api_version",
    "EDITWISE_USER_AGENT": "user_agent",
    "EDITWISE_LLM_BASE_URL": "llm_base_url",
    "EDITWISE_MODEL": "model",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "EDITWISE_TELEMETRY": "telemetry_enabled",
    "EDITWISE_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "EDITWISE_REQUEST_TIMEOUT": "request_timeout",
    "EDITWISE_TEMPERATURE": "temperature",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "EDITWISE_MAX_COMPLETION_TOKENS": "max_completion_tokens",
    "EDITWISE_WINDOW_LINES": "window_lines",
    "EDITWISE_EARLIEST_SHOWN_DELAY_MS": "earliest_shown_delay_ms",
}
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(slots=True, frozen=True)
class EditwiseSettings:
    """Endpoints and tuning knobs shared by the API client and edit engine."""

    github_api_url: str = "https://api.github.com"
    copilot_api_url: str = "https://api.githubcopilot.com"
    api_version: str = "2022-11-28"
    user_agent: str = "editwise"
    request_timeout: float = 30.0
    llm_base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    max_completion_tokens: int = 512
    window_lines: int = 12
    earliest_shown_delay_ms: int = 200
    telemetry_enabled: bool = True
    debug_logging: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "EditwiseSettings":
        """Build settings from ``EDITWISE_*`` variables, then ``overrides``."""

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for env_key, attr in _ENV_OVERRIDES.items():
            value = env.get(env_key)
            if value:
                values[attr] = value.strip()
        for env_key, attr in _BOOL_ENV_OVERRIDES.items():
            value = env.get(env_key)
            if value is not None:
                values[attr] = value.strip().lower() in _TRUE_VALUES
        for env_key, attr in _FLOAT_ENV_OVERRIDES.items():
            value = env.get(env_key)
            if value is None:
                continue
            try:
                values[attr] = float(value)
            except ValueError:
                LOGGER.warning("Ignoring invalid float for %s: %r", env_key, value)
        for env_key, attr in _INT_ENV_OVERRIDES.items():
            value = env.get(env_key)
            if value is None:
                continue
            try:
                values[attr] = int(value)
            except ValueError:
                LOGGER.warning("Ignoring invalid integer for %s: %r", env_key, value)
        known = {item.name for item in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")
        values.update(overrides)
        return cls(**values).clamp()

    def clamp(self) -> "EditwiseSettings":
        """Return a copy with numeric values forced into safe ranges."""

        return replace(
            self,
            request_timeout=max(1.0, float(self.request_timeout)),
            temperature=max(0.0, min(float(self.temperature), 2.0)),
            max_completion_tokens=max(16, int(self.max_completion_tokens)),
            window_lines=max(1, min(int(self.window_lines), 200)),
            earliest_shown_delay_ms=max(0, int(self.earliest_shown_delay_ms)),
        )

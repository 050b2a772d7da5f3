"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from editwise.core.ranges import OffsetRange
from editwise.editor.workspace import MutableObservableWorkspace
from editwise.services.settings import EditwiseSettings
from editwise.services.telemetry import InMemoryTelemetrySender


@pytest.fixture
def telemetry_sender() -> InMemoryTelemetrySender:
    return InMemoryTelemetrySender()


@pytest.fixture
def settings() -> EditwiseSettings:
    return EditwiseSettings(earliest_shown_delay_ms=200, window_lines=12)


@pytest.fixture
def workspace() -> MutableObservableWorkspace:
    return MutableObservableWorkspace()


@pytest.fixture
def main_document(workspace: MutableObservableWorkspace):
    """``function main() {\\n\\n}\\n`` with the caret on the empty line."""

    return workspace.add_document(
        "file:///project/main.js",
        "function main() {\n\n}\n",
        language_id="javascript",
        selection=OffsetRange.empty_at(18),
    )

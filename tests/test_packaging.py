"""Tests for project metadata."""

from __future__ import annotations

import tomllib
from pathlib import Path

import editwise

ROOT = Path(__file__).resolve().parent.parent


class TestProjectMetadata:
    def _project(self) -> dict:
        with (ROOT / "pyproject.toml").open("rb") as handle:
            return tomllib.load(handle)["project"]

    def test_readme_is_the_user_facing_readme(self) -> None:
        readme = self._project()["readme"]

        assert readme == "README.md"
        assert "create_next_edit_provider" in (ROOT / readme).read_text(encoding="utf-8")

    def test_version_matches_package(self) -> None:
        assert self._project()["version"] == editwise.__version__

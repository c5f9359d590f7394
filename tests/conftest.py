"""Shared pytest fixtures for the Morphy test suite.

Provides reusable fixtures for:
- A copy of the small fixture template (with its reducer module)
- A factory for ad-hoc templates with inline reducer source
- A Config pointed at temporary directories with installation disabled
- A scripted answer source that records what it was asked
"""

from __future__ import annotations

import os
import shutil
import textwrap
from pathlib import Path
from typing import Any

import pytest

from morphy.config import Config
from morphy.contract import ConfigParameter

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@pytest.fixture
def simple_template(tmp_path: Path) -> Path:
    """Writable copy of ``fixtures/simple-template``."""
    target = tmp_path / "templates" / "simple"
    shutil.copytree(FIXTURES_DIR / "simple-template", target)
    return target


@pytest.fixture
def make_template(tmp_path: Path):
    """Factory writing a template directory from a reducer source and files.

    Usage::

        template = make_template(REDUCER_SOURCE, {"package.json": "{}"})
    """

    def _make(
        reducer_source: str | None,
        files: dict[str, str] | None = None,
        name: str = "custom",
    ) -> Path:
        root = tmp_path / "templates" / name
        root.mkdir(parents=True)
        if reducer_source is not None:
            (root / "template_reducer.py").write_text(
                textwrap.dedent(reducer_source), encoding="utf-8"
            )
        for relative, content in (files or {}).items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


# ---------------------------------------------------------------------------
# Configuration & working directory
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with installation disabled and test runs under ``tmp_path/runs``."""
    return Config(skip_install=True, test_root=tmp_path / "runs")


@pytest.fixture
def workdir(tmp_path: Path):
    """Run the test from inside a fresh ``tmp_path/work`` directory."""
    work = tmp_path / "work"
    work.mkdir()
    previous = Path.cwd()
    os.chdir(work)
    yield work
    os.chdir(previous)


# ---------------------------------------------------------------------------
# Answer sources
# ---------------------------------------------------------------------------

class ScriptedAnswers:
    """Answer source returning fixed values and recording every question."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values = values or {}
        self.asked: list[str] = []

    async def ask(self, parameter: ConfigParameter) -> Any:
        self.asked.append(parameter.name)
        return self.values.get(parameter.name, parameter.default)


@pytest.fixture
def scripted_answers():
    return ScriptedAnswers

"""Morphy configuration.

Centralised, typed settings for the generator and the test harness. All
settings live on a Pydantic v2 model so they are validated at construction
time and can be serialised to/from JSON or read from environment variables.
"""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

#: Directory holding the templates that ship with Morphy.
TEMPLATES_DIR = Path(__file__).parent / "templates"

DEFAULT_TEMPLATE = TEMPLATES_DIR / "default"


class Config(BaseModel):
    """Global Morphy configuration.

    Instances are created once by the CLI entry point (usually through
    :meth:`from_env`) and handed to :class:`~morphy.generator.ProjectCreator`
    or :class:`~morphy.harness.TemplateTester`.
    """

    default_template: str = Field(
        default=str(DEFAULT_TEMPLATE),
        description="Template used when no template source is given",
    )
    remote_pattern: str = Field(
        default=r"^https://github\.com/[^/]+/[^/]+",
        description="Regex identifying template sources that must be downloaded",
    )
    github_api_url: str = Field(default="https://api.github.com")
    download_timeout: int = Field(default=60, ge=1, description="Archive download timeout in seconds")

    install_command: list[str] = Field(default_factory=lambda: ["npm", "install"])
    install_timeout: int = Field(default=900, ge=1, description="Install timeout in seconds")
    skip_install: bool = Field(default=False)

    # Support package templates depend on for typings; never kept in a generated manifest.
    reducer_package: str = Field(default="@morphy/template-reducer")

    copy_ignore: list[str] = Field(
        default_factory=lambda: [".git", "node_modules", "package-lock.json", "__pycache__"],
    )

    test_root: Path = Field(default=Path("."))
    transcript_name: str = Field(default="test-answers.txt")

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            MORPHY_DEFAULT_TEMPLATE, MORPHY_REMOTE_PATTERN,
            MORPHY_GITHUB_API_URL, MORPHY_DOWNLOAD_TIMEOUT,
            MORPHY_INSTALL_COMMAND, MORPHY_INSTALL_TIMEOUT,
            MORPHY_SKIP_INSTALL, MORPHY_TEST_ROOT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("MORPHY_DEFAULT_TEMPLATE"):
            kwargs["default_template"] = os.environ["MORPHY_DEFAULT_TEMPLATE"]
        if os.environ.get("MORPHY_REMOTE_PATTERN"):
            kwargs["remote_pattern"] = os.environ["MORPHY_REMOTE_PATTERN"]
        if os.environ.get("MORPHY_GITHUB_API_URL"):
            kwargs["github_api_url"] = os.environ["MORPHY_GITHUB_API_URL"]
        if os.environ.get("MORPHY_DOWNLOAD_TIMEOUT"):
            kwargs["download_timeout"] = int(os.environ["MORPHY_DOWNLOAD_TIMEOUT"])
        if os.environ.get("MORPHY_INSTALL_COMMAND"):
            kwargs["install_command"] = shlex.split(os.environ["MORPHY_INSTALL_COMMAND"])
        if os.environ.get("MORPHY_INSTALL_TIMEOUT"):
            kwargs["install_timeout"] = int(os.environ["MORPHY_INSTALL_TIMEOUT"])
        if os.environ.get("MORPHY_SKIP_INSTALL"):
            kwargs["skip_install"] = os.environ["MORPHY_SKIP_INSTALL"].lower() in ("1", "true", "yes")
        if os.environ.get("MORPHY_TEST_ROOT"):
            kwargs["test_root"] = Path(os.environ["MORPHY_TEST_ROOT"])
        return cls(**kwargs)

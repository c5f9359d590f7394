"""Reducer for the default Morphy template (Express + TypeScript).

Lines of source code that belong to an optional feature end with a
``// @<feature>`` marker. Disabled features lose their marked lines together
with their directories and npm dependencies; enabled features only lose the
marker.
"""

from __future__ import annotations

import random
import re
import shutil
from pathlib import Path

from morphy.contract import (
    AbstractTemplateReducer,
    Choice,
    ConfigParameter,
    ContentReplacer,
    Dynamic,
    ParameterType,
)

FEATURES: dict[str, dict[str, list[str]]] = {
    "db": {
        "directories": ["src/Database"],
        "dependencies": ["typeorm", "pg"],
    },
    "logger": {
        "directories": ["src/Logger"],
        "dependencies": ["winston"],
    },
    "twing": {
        "directories": ["src/Template", "templates"],
        "dependencies": ["twing", "@types/luxon"],
    },
}

_MARKER_RE = re.compile(r"^(?P<code>.*?)[ \t]*// @(?P<feature>\w+)[ \t]*$", re.MULTILINE)


class TemplateReducer(AbstractTemplateReducer):

    def __init__(self, app_name: str, directory: str) -> None:
        super().__init__(app_name, directory)
        self.config.update(
            {
                "type": "default",
                "features": list(FEATURES),
                "tabSize": 4,
                "quotemark": True,
                "semicolon": True,
                "port": random.randint(10000, 60000),
            }
        )

    @property
    def custom(self) -> bool:
        return self.config.get("type") == "select"

    @property
    def features(self) -> list[str]:
        if not self.custom:
            return list(FEATURES)
        return list(self.config.get("features") or [])

    def get_config_parameters(self):
        return [
            ConfigParameter(
                name="type",
                description="Select installation type",
                type=ParameterType.RADIO,
                choices=[
                    Choice(value="default", description="Default + all features", checked=True),
                    Choice(value="select", description="Select features"),
                ],
            ),
            Dynamic(self._custom_parameters),
        ]

    def _custom_parameters(self, config):
        if config.get("type") != "select":
            return None
        return [
            ConfigParameter(
                name="features",
                description="Select features",
                type=ParameterType.CHECKBOX,
                choices=[
                    Choice(value="db", description="TypeORM for DB", checked=True),
                    Choice(value="logger", description="Logger for logs", checked=True),
                    Choice(value="twing", description="Twing for HTML", checked=True),
                ],
            ),
            ConfigParameter(name="tabSize", description="Tab size", type=ParameterType.NUMBER, default=4),
            ConfigParameter(
                name="quotemark",
                description="Use single quotemark (') instead of double (\")?",
                type=ParameterType.CONFIRM,
                default=True,
            ),
            ConfigParameter(
                name="semicolon",
                description="Semicolons at end of the lines?",
                type=ParameterType.CONFIRM,
                default=True,
            ),
            ConfigParameter(
                name="port",
                description="Listening port",
                type=ParameterType.NUMBER,
                default=self.config["port"],
            ),
        ]

    def get_directories_for_remove(self):
        return [
            directory
            for feature, spec in FEATURES.items()
            if feature not in self.features
            for directory in spec["directories"]
        ]

    def get_dependencies_for_remove(self):
        return [
            dependency
            for feature, spec in FEATURES.items()
            if feature not in self.features
            for dependency in spec["dependencies"]
        ]

    def get_files_content_replacers(self):
        return [
            ContentReplacer(re.compile(r"^(src/.*\.ts|index\.js)$"), self._reduce_code),
            ContentReplacer(".eslintrc.json", self._reduce_eslint),
            ContentReplacer("config.js.dist", self._reduce_config),
        ]

    def get_test_config_set(self):
        return [
            {"type": "default"},
            {
                "type": "select",
                "features": [],
                "tabSize": 2,
                "quotemark": False,
                "semicolon": False,
                "port": 8080,
            },
            {
                "type": "select",
                "features": ["db", "twing"],
                "tabSize": 4,
                "quotemark": True,
                "semicolon": True,
                "port": 3000,
            },
        ]

    def finish(self) -> None:
        # Runs inside the generated project.
        gitignore = Path(".gitignore.template")
        if gitignore.exists():
            gitignore.rename(".gitignore")
        if not Path("config.js").exists():
            shutil.copyfile("config.js.dist", "config.js")

    # -- Replacers ---------------------------------------------------------

    def _reduce_code(self, content: str, path: str) -> str:
        enabled = self.features

        def _marker(match: re.Match) -> str:
            return match["code"] if match["feature"] in enabled else "\0"

        content = _MARKER_RE.sub(_marker, content)
        content = "".join(line for line in content.splitlines(keepends=True) if line.rstrip("\n") != "\0")
        return self._lint(content)

    def _lint(self, content: str) -> str:
        if not self.custom:
            return content
        tab_size = int(self.config.get("tabSize") or 4)
        if tab_size != 4:
            content = re.sub(
                r"^((?:    )+)",
                lambda match: " " * tab_size * (len(match[1]) // 4),
                content,
                flags=re.MULTILINE,
            )
        if not self.config.get("semicolon", True):
            content = re.sub(r";[ \t]*$", "", content, flags=re.MULTILINE)
        if not self.config.get("quotemark", True):
            content = content.replace("'", '"')
        return content

    def _reduce_eslint(self, content: str, path: str) -> str:
        if not self.custom:
            return content
        tab_size = int(self.config.get("tabSize") or 4)
        if tab_size != 4:
            content = content.replace(
                '"@typescript-eslint/indent": ["error", 4, { "SwitchCase": 1 }],',
                f'"@typescript-eslint/indent": ["error", {tab_size}, {{ "SwitchCase": 1 }}],',
            )
        if not self.config.get("semicolon", True):
            content = content.replace('"semi": ["error", "always"],', '"semi": ["error", "never"],')
        if not self.config.get("quotemark", True):
            content = content.replace('"quotes": ["error", "single"],', '"quotes": ["error", "double"],')
        return content

    def _reduce_config(self, content: str, path: str) -> str:
        content = content.replace("1000000000", str(self.config.get("port")))
        if not self.config.get("quotemark", True):
            content = content.replace("'", '"')
        return content

"""Template reduction engine.

Wraps one live reducer instance and its accumulated configuration, and
presents the operations the generator and the test harness need: resolving
the parameter tree, listing what to remove, and rewriting file contents.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from morphy.answers import AnswerSource
from morphy.contract import (
    ConfigParameter,
    ConfigParameterNode,
    Configuration,
    ContentReplacer,
    Dynamic,
    TemplateReducer,
    as_node,
)
from morphy.errors import ReducerContractError, ReductionError
from morphy.utils import maybe_await

MANIFEST_NAME = "package.json"

#: Reducer module files; generation-time only, always removed from the result.
REDUCER_FILES: tuple[str, ...] = ("template_reducer.py", "template_reducer.pyc")

DEPENDENCY_GROUPS: tuple[str, ...] = ("dependencies", "devDependencies")


class ReducerService:
    """Uniform API over a template's reducer.

    Attributes:
        reducer: The live reducer instance.
        app_name: Normalised project name.
        directory: Destination directory the template was copied to.
        reducer_package: Support package stripped from every manifest.
    """

    def __init__(
        self,
        reducer_cls: type[TemplateReducer],
        app_name: str,
        directory: str | Path,
        reducer_package: str = "@morphy/template-reducer",
    ) -> None:
        self.app_name = app_name
        self.directory = Path(directory)
        self.reducer_package = reducer_package
        self.reducer: TemplateReducer = reducer_cls(app_name, str(directory))
        self._replacers: list[ContentReplacer] | None = None
        self._dependencies: list[str] | None = None

    # -- Configuration -----------------------------------------------------

    async def get_config_parameters(self) -> list[ConfigParameterNode]:
        nodes = await maybe_await(self.reducer.get_config_parameters())
        return [as_node(node) for node in nodes or []]

    def get_config(self) -> Configuration:
        return self.reducer.get_config()

    def update_config(self, parameter: ConfigParameter, value: Any) -> None:
        self.reducer.set_config({parameter.name: value})

    async def resolve_parameters(self, answers: AnswerSource) -> Configuration:
        """Walk the parameter tree depth-first and record every answer.

        Dynamic nodes are evaluated only when reached, with the configuration
        accumulated so far, so later questions can depend on earlier answers.

        Returns:
            The reducer's configuration after resolution.
        """
        await self._resolve_nodes(await self.get_config_parameters(), answers)
        return self.get_config()

    async def _resolve_nodes(self, nodes: Sequence[ConfigParameterNode], answers: AnswerSource) -> None:
        for node in nodes:
            if isinstance(node, Dynamic):
                result = await maybe_await(node.resolve(self.get_config()))
                if not result:
                    continue
                if isinstance(result, ConfigParameter):
                    node = result
                elif isinstance(result, (list, tuple)):
                    await self._resolve_nodes([as_node(item) for item in result], answers)
                    continue
                else:
                    raise ReducerContractError(
                        f"Dynamic parameter node returned {type(result).__name__}"
                    )
            self.update_config(node, await answers.ask(node))

    # -- Removal -----------------------------------------------------------

    async def get_directories_for_remove(self) -> list[str]:
        return list(await maybe_await(self.reducer.get_directories_for_remove()) or [])

    async def get_files_for_remove(self) -> list[str]:
        files = await maybe_await(self.reducer.get_files_for_remove()) or []
        return [*REDUCER_FILES, *files]

    # -- Content -----------------------------------------------------------

    async def reduce_file(self, content: str, relative_path: str) -> str:
        """Return the reduced content of one file.

        ``package.json`` at the project root is rewritten first (name set,
        unwanted dependencies stripped), then every matching content replacer
        runs in declaration order. Unmatched files come back unchanged.

        Raises:
            ReductionError: If ``package.json`` is not a valid JSON object.
        """
        if relative_path == MANIFEST_NAME:
            content = self._reduce_manifest(content, await self._get_dependencies())

        for replacer in await self._get_replacers():
            if replacer.matches(relative_path):
                content = await maybe_await(replacer.replacer(content, relative_path))
        return content

    def _reduce_manifest(self, content: str, dependencies: list[str]) -> str:
        try:
            manifest = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ReductionError(MANIFEST_NAME, f"invalid JSON: {exc}") from exc
        if not isinstance(manifest, dict):
            raise ReductionError(MANIFEST_NAME, "expected a JSON object")

        manifest["name"] = self.app_name
        for group in DEPENDENCY_GROUPS:
            declared = manifest.get(group)
            if not isinstance(declared, dict):
                continue
            for dependency in dependencies:
                declared.pop(dependency, None)
        return json.dumps(manifest, indent=4, ensure_ascii=False) + "\n"

    async def _get_dependencies(self) -> list[str]:
        if self._dependencies is None:
            extra = await maybe_await(self.reducer.get_dependencies_for_remove()) or []
            self._dependencies = [self.reducer_package, *extra]
        return self._dependencies

    async def _get_replacers(self) -> list[ContentReplacer]:
        if self._replacers is None:
            replacers = await maybe_await(self.reducer.get_files_content_replacers()) or []
            for replacer in replacers:
                if not isinstance(replacer, ContentReplacer):
                    raise ReducerContractError(
                        f"Expected ContentReplacer, got {type(replacer).__name__}"
                    )
            self._replacers = list(replacers)
        return self._replacers

    # -- Lifecycle ---------------------------------------------------------

    async def get_test_config_set(self) -> list[Configuration]:
        return list(await maybe_await(self.reducer.get_test_config_set()) or [])

    async def finish(self) -> None:
        await maybe_await(self.reducer.finish())

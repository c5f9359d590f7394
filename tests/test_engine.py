"""Unit tests for the reduction engine (morphy.engine).

Tests cover:
- resolve_parameters ordering, lazy dynamic expansion, async resolvers
- Contract violations inside the parameter tree
- reduce_file for package.json (name, dependency pruning, idempotency, errors)
- Content replacer dispatch (exact, pattern, ordering, caching)
- Removal lists and the finish hook
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest

from morphy.contract import (
    AbstractTemplateReducer,
    Choice,
    ConfigParameter,
    ContentReplacer,
    Dynamic,
    ParameterType,
)
from morphy.engine import REDUCER_FILES, ReducerService
from morphy.errors import ReducerContractError, ReductionError

pytestmark = pytest.mark.unit


def _param(name: str, **kwargs) -> ConfigParameter:
    return ConfigParameter(name=name, description=name.title(), **kwargs)


def _service(reducer_cls, tmp_path: Path, name: str = "myapp") -> ReducerService:
    return ReducerService(reducer_cls, name, tmp_path)


# ---------------------------------------------------------------------------
# resolve_parameters
# ---------------------------------------------------------------------------


class TestResolveParameters:
    async def test_flat_parameters_in_order(self, tmp_path, scripted_answers):
        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("a"), _param("b"), _param("c")]

        answers = scripted_answers({"a": "1", "b": "2", "c": "3"})
        config = await _service(Reducer, tmp_path).resolve_parameters(answers)

        assert answers.asked == ["a", "b", "c"]
        assert config["a"] == "1" and config["b"] == "2" and config["c"] == "3"

    async def test_dynamic_node_sees_earlier_answers(self, tmp_path, scripted_answers):
        seen: list[dict] = []

        def resolver(config):
            seen.append(dict(config))
            return _param("tabSize", type=ParameterType.NUMBER, default=4) if config["advanced"] else None

        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("advanced", type=ParameterType.CONFIRM), Dynamic(resolver), _param("last")]

        answers = scripted_answers({"advanced": True, "tabSize": 2})
        config = await _service(Reducer, tmp_path).resolve_parameters(answers)

        assert answers.asked == ["advanced", "tabSize", "last"]
        assert seen[0]["advanced"] is True
        assert "last" not in seen[0]
        assert config["tabSize"] == 2

    async def test_dynamic_node_returning_none_is_skipped(self, tmp_path, scripted_answers):
        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("advanced"), Dynamic(lambda config: None), _param("last")]

        answers = scripted_answers({"advanced": False})
        await _service(Reducer, tmp_path).resolve_parameters(answers)
        assert answers.asked == ["advanced", "last"]

    async def test_nested_sequences_are_flattened_lazily(self, tmp_path, scripted_answers):
        order: list[str] = []

        def inner(config):
            order.append("inner")
            assert config["x"] == "x-value"
            return [_param("y")]

        def outer(config):
            order.append("outer")
            return [_param("x"), Dynamic(inner), _param("z")]

        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("w"), Dynamic(outer)]

        answers = scripted_answers({"x": "x-value"})
        await _service(Reducer, tmp_path).resolve_parameters(answers)

        assert answers.asked == ["w", "x", "y", "z"]
        assert order == ["outer", "inner"]

    async def test_async_parameters_and_resolvers(self, tmp_path, scripted_answers):
        async def resolver(config):
            return [_param("second")]

        class Reducer(AbstractTemplateReducer):
            async def get_config_parameters(self):
                return [_param("first"), resolver]

        answers = scripted_answers()
        await _service(Reducer, tmp_path).resolve_parameters(answers)
        assert answers.asked == ["first", "second"]

    async def test_later_answer_overwrites_same_name(self, tmp_path, scripted_answers):
        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("a", default="first"), Dynamic(lambda c: _param("a", default="second"))]

        config = await _service(Reducer, tmp_path).resolve_parameters(scripted_answers())
        assert config["a"] == "second"

    async def test_invalid_node_raises(self, tmp_path, scripted_answers):
        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("a"), "not-a-node"]

        with pytest.raises(ReducerContractError):
            await _service(Reducer, tmp_path).resolve_parameters(scripted_answers())

    async def test_invalid_dynamic_result_raises(self, tmp_path, scripted_answers):
        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [Dynamic(lambda config: 42)]

        with pytest.raises(ReducerContractError):
            await _service(Reducer, tmp_path).resolve_parameters(scripted_answers())

    async def test_resolver_exception_propagates(self, tmp_path, scripted_answers):
        def resolver(config):
            raise ValueError("broken resolver")

        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("a"), Dynamic(resolver), _param("never")]

        answers = scripted_answers()
        with pytest.raises(ValueError, match="broken resolver"):
            await _service(Reducer, tmp_path).resolve_parameters(answers)
        assert answers.asked == ["a"]

    async def test_radio_parameter_resolves_through_answers(self, tmp_path, scripted_answers):
        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [
                    _param(
                        "type",
                        type=ParameterType.RADIO,
                        choices=[Choice(value="default"), Choice(value="select")],
                    )
                ]

        config = await _service(Reducer, tmp_path).resolve_parameters(scripted_answers({"type": "select"}))
        assert config["type"] == "select"


# ---------------------------------------------------------------------------
# reduce_file: package.json
# ---------------------------------------------------------------------------


MANIFEST = json.dumps(
    {
        "name": "template",
        "dependencies": {"keep": "1", "drop": "1"},
        "devDependencies": {"@morphy/template-reducer": "1", "drop": "1", "tool": "1"},
    }
)


class DropReducer(AbstractTemplateReducer):
    def get_dependencies_for_remove(self):
        return ["drop"]


class TestReduceManifest:
    async def test_name_and_dependencies(self, tmp_path):
        result = json.loads(await _service(DropReducer, tmp_path).reduce_file(MANIFEST, "package.json"))

        assert result["name"] == "myapp"
        assert result["dependencies"] == {"keep": "1"}
        assert result["devDependencies"] == {"tool": "1"}

    async def test_idempotent(self, tmp_path):
        service = _service(DropReducer, tmp_path)
        once = await service.reduce_file(MANIFEST, "package.json")
        twice = await service.reduce_file(once, "package.json")
        assert once == twice

    async def test_missing_dependency_groups(self, tmp_path):
        result = await _service(DropReducer, tmp_path).reduce_file('{"name": "x"}', "package.json")
        assert json.loads(result) == {"name": "myapp"}

    async def test_nested_manifest_untouched(self, tmp_path):
        service = _service(DropReducer, tmp_path)
        assert await service.reduce_file(MANIFEST, "packages/a/package.json") == MANIFEST

    async def test_malformed_json(self, tmp_path):
        with pytest.raises(ReductionError, match="package.json"):
            await _service(DropReducer, tmp_path).reduce_file("{not json", "package.json")

    async def test_non_object_json(self, tmp_path):
        with pytest.raises(ReductionError):
            await _service(DropReducer, tmp_path).reduce_file("[1, 2]", "package.json")

    async def test_custom_reducer_package(self, tmp_path):
        service = ReducerService(AbstractTemplateReducer, "myapp", tmp_path, reducer_package="tool")
        result = json.loads(await service.reduce_file(MANIFEST, "package.json"))
        assert "tool" not in result["devDependencies"]
        assert "@morphy/template-reducer" in result["devDependencies"]


# ---------------------------------------------------------------------------
# reduce_file: content replacers
# ---------------------------------------------------------------------------


class TestContentReplacers:
    async def test_unmatched_file_unchanged(self, tmp_path):
        class Reducer(AbstractTemplateReducer):
            def get_files_content_replacers(self):
                return [ContentReplacer("README.md", lambda content, path: content.upper())]

        content = "const a = 1;\n"
        assert await _service(Reducer, tmp_path).reduce_file(content, "src/app.js") is content

    async def test_all_matching_replacers_apply_in_order(self, tmp_path):
        class Reducer(AbstractTemplateReducer):
            def get_files_content_replacers(self):
                return [
                    ContentReplacer(re.compile(r"\.md$"), lambda content, path: content + "1"),
                    ContentReplacer("docs/a.md", lambda content, path: content + "2"),
                    ContentReplacer("other.md", lambda content, path: content + "X"),
                    ContentReplacer(re.compile(r"^docs/"), lambda content, path: content + f"3:{path}"),
                ]

        result = await _service(Reducer, tmp_path).reduce_file("", "docs/a.md")
        assert result == "123:docs/a.md"

    async def test_async_replacer(self, tmp_path):
        async def replace(content, path):
            return content.replace("a", "b")

        class Reducer(AbstractTemplateReducer):
            async def get_files_content_replacers(self):
                return [ContentReplacer("f.txt", replace)]

        assert await _service(Reducer, tmp_path).reduce_file("aaa", "f.txt") == "bbb"

    async def test_manifest_then_replacers(self, tmp_path):
        class Reducer(AbstractTemplateReducer):
            def get_files_content_replacers(self):
                return [ContentReplacer("package.json", lambda content, path: content.replace("myapp", "renamed"))]

        result = json.loads(await _service(Reducer, tmp_path).reduce_file(MANIFEST, "package.json"))
        assert result["name"] == "renamed"

    async def test_replacers_fetched_once(self, tmp_path):
        calls: list[int] = []

        class Reducer(AbstractTemplateReducer):
            def get_files_content_replacers(self):
                calls.append(1)
                return [ContentReplacer("a", lambda content, path: content)]

        service = _service(Reducer, tmp_path)
        for path in ("a", "b", "c"):
            await service.reduce_file("x", path)
        assert len(calls) == 1

    async def test_invalid_replacer_raises(self, tmp_path):
        class Reducer(AbstractTemplateReducer):
            def get_files_content_replacers(self):
                return [{"filename": "a", "replacer": str.upper}]

        with pytest.raises(ReducerContractError):
            await _service(Reducer, tmp_path).reduce_file("x", "a")

    async def test_replacer_reads_configuration(self, tmp_path, scripted_answers):
        class Reducer(AbstractTemplateReducer):
            def get_config_parameters(self):
                return [_param("greeting")]

            def get_files_content_replacers(self):
                return [ContentReplacer("a.txt", lambda content, path: content.replace("$", self.config["greeting"]))]

        service = _service(Reducer, tmp_path)
        await service.resolve_parameters(scripted_answers({"greeting": "hi"}))
        assert await service.reduce_file("$ there", "a.txt") == "hi there"


# ---------------------------------------------------------------------------
# Removal lists & lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_files_for_remove_include_reducer_module(self, tmp_path):
        class Reducer(AbstractTemplateReducer):
            def get_files_for_remove(self):
                return ["a.txt"]

        files = await _service(Reducer, tmp_path).get_files_for_remove()
        assert files == [*REDUCER_FILES, "a.txt"]

    async def test_directories_for_remove_delegate(self, tmp_path):
        class Reducer(AbstractTemplateReducer):
            async def get_directories_for_remove(self):
                return ["docs"]

        assert await _service(Reducer, tmp_path).get_directories_for_remove() == ["docs"]

    async def test_reducer_receives_construction_context(self, tmp_path):
        service = _service(AbstractTemplateReducer, tmp_path, name="hello")
        assert service.reducer.app_name == "hello"
        assert service.reducer.directory == str(tmp_path)
        assert service.get_config()["name"] == "hello"

    async def test_update_config(self, tmp_path):
        service = _service(AbstractTemplateReducer, tmp_path)
        service.update_config(_param("port"), 8080)
        assert service.get_config()["port"] == 8080

    async def test_test_config_set(self, tmp_path):
        class Reducer(AbstractTemplateReducer):
            def get_test_config_set(self):
                return ({"type": "default"},)

        assert await _service(Reducer, tmp_path).get_test_config_set() == [{"type": "default"}]

    async def test_finish_async_and_errors_propagate(self, tmp_path):
        finished: list[bool] = []

        class Reducer(AbstractTemplateReducer):
            async def finish(self):
                finished.append(True)

        await _service(Reducer, tmp_path).finish()
        assert finished == [True]

        class Failing(AbstractTemplateReducer):
            def finish(self):
                raise RuntimeError("finish failed")

        with pytest.raises(RuntimeError, match="finish failed"):
            await _service(Failing, tmp_path).finish()

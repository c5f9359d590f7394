"""The reducer contract: what a template implements and Morphy consumes.

A template ships a ``template_reducer.py`` module exporting a
``TemplateReducer`` class. Morphy instantiates it with the normalised project
name and the destination directory, asks it for configuration parameters,
feeds the answers back through :meth:`TemplateReducer.set_config`, and then
uses the removal lists, dependency list and content replacers to reduce the
copied template into the final project.

Quick usage (inside a template)::

    from morphy.contract import (
        AbstractTemplateReducer,
        ConfigParameter,
        ContentReplacer,
        Dynamic,
        ParameterType,
    )

    class TemplateReducer(AbstractTemplateReducer):
        def get_config_parameters(self):
            return [
                ConfigParameter(name="advanced", description="Advanced setup?",
                                type=ParameterType.CONFIRM, default=False),
                Dynamic(lambda config: ConfigParameter(
                    name="tabSize", description="Tab size",
                    type=ParameterType.NUMBER, default=4,
                ) if config.get("advanced") else None),
            ]
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, Field, model_validator

from morphy.errors import ReducerContractError


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

class ParameterType(str, Enum):
    """How a parameter is asked and what kind of value it resolves to."""
    TEXT = "text"
    NUMBER = "number"
    CONFIRM = "confirm"
    RADIO = "radio"
    CHECKBOX = "checkbox"


class Choice(BaseModel):
    """One selectable option of a radio or checkbox parameter."""
    value: str = Field(..., description="Value stored in the configuration")
    description: str = Field(default="", description="Label shown to the user")
    checked: bool = Field(default=False, description="Pre-selected in the prompt")

    @property
    def label(self) -> str:
        return self.description or self.value


class ConfigParameter(BaseModel):
    """A single configurable choice."""
    name: str = Field(..., min_length=1, description="Configuration key, unique per run")
    description: str = Field(..., description="Prompt text")
    type: ParameterType = Field(default=ParameterType.TEXT)
    choices: list[Choice] = Field(default_factory=list)
    default: Optional[Any] = Field(default=None)

    @model_validator(mode="after")
    def _choices_required(self) -> "ConfigParameter":
        if self.type in (ParameterType.RADIO, ParameterType.CHECKBOX) and not self.choices:
            raise ValueError(f"Parameter '{self.name}' of type {self.type.value} needs choices")
        return self


Configuration = dict[str, Any]

NodeResult = Union[None, ConfigParameter, Sequence["ConfigParameterNode"]]


@dataclass(frozen=True)
class Dynamic:
    """A lazily expanded node of the parameter tree.

    ``resolve`` receives the configuration accumulated so far and returns
    nothing, a single further parameter, or a sequence of further nodes. It
    may be a coroutine function.
    """

    resolve: Callable[[Configuration], Union[NodeResult, Awaitable[NodeResult]]]


ConfigParameterNode = Union[ConfigParameter, Dynamic]


def as_node(item: Any) -> ConfigParameterNode:
    """Coerce a reducer-supplied item into a parameter-tree node.

    Bare callables become :class:`Dynamic` nodes; anything that is neither a
    parameter nor callable violates the contract.
    """
    if isinstance(item, (ConfigParameter, Dynamic)):
        return item
    if callable(item):
        return Dynamic(item)
    raise ReducerContractError(
        f"Expected a ConfigParameter or a callable in the parameter tree, got {type(item).__name__}"
    )


# ---------------------------------------------------------------------------
# Content replacers
# ---------------------------------------------------------------------------

ReplacerFn = Callable[[str, str], Union[str, Awaitable[str]]]


@dataclass(frozen=True)
class ContentReplacer:
    """Rewrites the content of every file whose relative path matches ``filename``.

    ``filename`` is either an exact relative path (forward slashes) or a
    compiled regular expression searched against the relative path.
    """

    filename: Union[str, re.Pattern[str]]
    replacer: ReplacerFn

    def matches(self, relative_path: str) -> bool:
        if isinstance(self.filename, re.Pattern):
            return self.filename.search(relative_path) is not None
        return self.filename == relative_path


# ---------------------------------------------------------------------------
# Reducer interface
# ---------------------------------------------------------------------------

#: Methods every reducer class must provide.
REDUCER_METHODS: tuple[str, ...] = (
    "get_config_parameters",
    "get_directories_for_remove",
    "get_files_for_remove",
    "get_dependencies_for_remove",
    "get_files_content_replacers",
    "get_config",
    "set_config",
    "get_test_config_set",
    "finish",
)


@runtime_checkable
class TemplateReducer(Protocol):
    """Capability set a template's reducer implements.

    Every method except :meth:`get_config` and :meth:`set_config` may be a
    coroutine function.
    """

    def get_config_parameters(self) -> Sequence[Any]: ...

    def get_directories_for_remove(self) -> Sequence[str]: ...

    def get_files_for_remove(self) -> Sequence[str]: ...

    def get_dependencies_for_remove(self) -> Sequence[str]: ...

    def get_files_content_replacers(self) -> Sequence[ContentReplacer]: ...

    def get_config(self) -> Configuration: ...

    def set_config(self, partial: Configuration) -> None: ...

    def get_test_config_set(self) -> Sequence[Configuration]: ...

    def finish(self) -> None: ...


class AbstractTemplateReducer:
    """Convenience base class for template reducers.

    Stores the configuration and returns empty lists for everything, so a
    template only overrides what it actually customises.
    """

    def __init__(self, app_name: str, directory: str) -> None:
        self.app_name = app_name
        self.directory = directory
        self.config: Configuration = {"name": app_name}

    def get_config_parameters(self) -> Sequence[Any]:
        return []

    def get_directories_for_remove(self) -> Sequence[str]:
        return []

    def get_files_for_remove(self) -> Sequence[str]:
        return []

    def get_dependencies_for_remove(self) -> Sequence[str]:
        return []

    def get_files_content_replacers(self) -> Sequence[ContentReplacer]:
        return []

    def get_config(self) -> Configuration:
        return self.config

    def set_config(self, partial: Configuration) -> None:
        self.config.update(partial)

    def get_test_config_set(self) -> Sequence[Configuration]:
        return []

    def finish(self) -> None:
        return None

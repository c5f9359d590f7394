"""Morphy -- project scaffolding from reducible templates.

A template is an ordinary project tree plus a ``template_reducer.py``
module. Morphy copies the template, asks the reducer's questions, removes
what the answers make unnecessary and rewrites the rest.

Quick usage::

    from morphy import Config, ProjectCreator

    creator = ProjectCreator(Config.from_env())
    project_path = await creator.create("my-app", "./my-template")
"""

from morphy.config import Config
from morphy.contract import (
    AbstractTemplateReducer,
    Choice,
    ConfigParameter,
    ContentReplacer,
    Dynamic,
    ParameterType,
    TemplateReducer,
)
from morphy.engine import ReducerService
from morphy.generator import ProjectCreator
from morphy.harness import TemplateTester

__version__ = "1.0.0"

__all__ = [
    "AbstractTemplateReducer",
    "Choice",
    "Config",
    "ConfigParameter",
    "ContentReplacer",
    "Dynamic",
    "ParameterType",
    "ProjectCreator",
    "ReducerService",
    "TemplateReducer",
    "TemplateTester",
]

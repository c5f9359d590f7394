"""Loading a template's reducer module.

A template carries its reducer as ``template_reducer.py`` (compiled from
source at load time) or, failing that, a precompiled
``template_reducer.pyc``. The module runs in its own module object that is
never registered in ``sys.modules``, so two templates loaded in one process
cannot see each other, and no bytecode is written into the template.
"""

from __future__ import annotations

import importlib.util
from importlib.machinery import SourceFileLoader, SourcelessFileLoader
from pathlib import Path

from morphy.contract import REDUCER_METHODS, TemplateReducer
from morphy.errors import ReducerLoadError

REDUCER_MODULE = "template_reducer"
REDUCER_CLASS = "TemplateReducer"


class _NoBytecodeSourceLoader(SourceFileLoader):
    """Compiles from source without caching bytecode next to it."""

    def set_data(self, path, data, *, _mode=0o666):
        return None


def find_reducer_file(directory: str | Path) -> Path:
    """Return the reducer module file inside *directory*.

    Raises:
        ReducerLoadError: If neither the source nor the compiled form exists.
    """
    root = Path(directory)
    source = root / f"{REDUCER_MODULE}.py"
    if source.is_file():
        return source
    compiled = root / f"{REDUCER_MODULE}.pyc"
    if compiled.is_file():
        return compiled
    raise ReducerLoadError(
        f"File {source} does not exist in template, unable to continue"
    )


def load_reducer(directory: str | Path) -> type[TemplateReducer]:
    """Load the reducer class exported by the template in *directory*.

    Returns:
        The ``TemplateReducer`` class, validated against the reducer contract.

    Raises:
        ReducerLoadError: If the module is missing, does not compile, fails
            while executing, or does not export a conforming class.
    """
    path = find_reducer_file(directory)
    if path.suffix == ".py":
        loader = _NoBytecodeSourceLoader(REDUCER_MODULE, str(path))
    else:
        loader = SourcelessFileLoader(REDUCER_MODULE, str(path))

    spec = importlib.util.spec_from_file_location(REDUCER_MODULE, path, loader=loader)
    if spec is None:
        raise ReducerLoadError(f"Cannot load reducer module from {path}")
    module = importlib.util.module_from_spec(spec)

    try:
        loader.exec_module(module)
    except SyntaxError as exc:
        raise ReducerLoadError(f"Reducer {path} does not compile: {exc}") from exc
    except Exception as exc:
        raise ReducerLoadError(f"Reducer {path} failed to load: {exc}") from exc

    reducer_cls = getattr(module, REDUCER_CLASS, None)
    if not isinstance(reducer_cls, type):
        raise ReducerLoadError(f"Reducer {path} does not export a {REDUCER_CLASS} class")

    missing = [name for name in REDUCER_METHODS if not callable(getattr(reducer_cls, name, None))]
    if missing:
        raise ReducerLoadError(
            f"{REDUCER_CLASS} in {path} is missing: {', '.join(missing)}"
        )
    return reducer_cls

"""Project generation pipeline.

Implements ``morphy create``:

1. CHECK    -- validate the destination and derive the project name.
2. ACQUIRE  -- copy the local template or download the remote one.
3. LOAD     -- load the template's reducer module.
4. CONFIGURE-- resolve the configuration parameters interactively.
5. REDUCE   -- remove unneeded paths, rewrite file contents.
6. INSTALL  -- run the package manager in the new project.
7. FINISH   -- run the reducer's post-generation hook inside the project.

A failure, interrupt or termination signal after the destination has been
created removes it again, so a failed run never leaves a half-built project
behind.
"""

from __future__ import annotations

import contextlib
import shutil
import signal
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import FrameType

from rich.panel import Panel

from morphy.acquire import copy_template, download_template, is_remote
from morphy.answers import AnswerSource, PromptAnswerSource
from morphy.config import Config
from morphy.engine import ReducerService
from morphy.errors import InstallError, InvalidDestinationError, ReducerContractError
from morphy.loader import load_reducer
from morphy.utils import (
    console,
    normalize_project_name,
    print_step,
    print_success,
    print_warning,
    relative_posix,
    run_command,
)

# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


class RunState(str, Enum):
    """Lifecycle of one generation run."""

    CHECKING = "checking"
    COPYING = "copying"
    COPIED = "copied"
    DONE = "done"


#: States in which the destination exists but the run has not succeeded.
CLEANUP_STATES = frozenset({RunState.COPYING, RunState.COPIED})


@dataclass
class RunContext:
    """Everything one run needs to know about where it works.

    Attributes:
        destination: Absolute path of the directory being generated.
        original_cwd: Working directory the run started from.
        state: Current lifecycle state.
    """

    destination: Path
    original_cwd: Path = field(default_factory=Path.cwd)
    state: RunState = RunState.CHECKING


class CleanupGuard:
    """Deletes a run's destination when the guarded block fails midway.

    Cleanup happens on exit from the ``with`` block when an exception of one
    of the *cleanup_on* types is propagating and the run is in a
    :data:`CLEANUP_STATES` state. While the block runs, SIGINT raises
    ``KeyboardInterrupt`` and SIGTERM raises ``SystemExit`` directly, even
    inside a blocking prompt, instead of going through the event loop's
    deferred interrupt handling. When a signal lands while the loop is idle
    the exception leaves the loop first and the run's task is then cancelled,
    so ``asyncio.CancelledError`` has to be among the *cleanup_on* types as
    well. Cleanup is best effort and runs at most once.
    """

    def __init__(
        self,
        context: RunContext,
        cleanup_on: tuple[type[BaseException], ...] = (BaseException,),
    ) -> None:
        self.context = context
        self.cleanup_on = cleanup_on
        self.cleaned = False
        self._previous_handlers: dict[signal.Signals, Callable | int | None] = {}

    def __enter__(self) -> "CleanupGuard":
        if threading.current_thread() is threading.main_thread():
            for signum, handler in _SIGNAL_HANDLERS.items():
                self._previous_handlers[signum] = signal.signal(signum, handler)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        for signum, previous in self._previous_handlers.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous_handlers.clear()
        if exc_type is not None and issubclass(exc_type, self.cleanup_on):
            self.cleanup()
        return False

    def cleanup(self) -> None:
        if self.cleaned or self.context.state not in CLEANUP_STATES:
            return
        self.cleaned = True
        console.print("[dim]> Cleanup...[/dim]")
        shutil.rmtree(self.context.destination, ignore_errors=True)
        if self.context.destination.exists():
            print_warning(f"Unable to remove {self.context.destination} completely")


def _raise_keyboard_interrupt(signum: int, frame: FrameType | None) -> None:
    raise KeyboardInterrupt


def _raise_system_exit(signum: int, frame: FrameType | None) -> None:
    raise SystemExit(128 + signum)


_SIGNAL_HANDLERS = {
    signal.SIGINT: _raise_keyboard_interrupt,
    signal.SIGTERM: _raise_system_exit,
}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_destination(destination: str | None) -> str:
    """Check the destination and return the normalised project name.

    Raises:
        InvalidDestinationError: If the destination is missing, already
            exists, or contains no usable name characters.
    """
    if not destination:
        raise InvalidDestinationError("Missing required argument <destination>")
    if Path(destination).exists():
        raise InvalidDestinationError(f"Directory {destination} already exists")
    name = normalize_project_name(Path(destination).name)
    if not name:
        raise InvalidDestinationError(f"Incorrect project name: {destination}")
    return name


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class ProjectCreator:
    """Drives one ``create`` run from template source to finished project.

    Attributes:
        config: Global Morphy configuration.
        answers: Where configuration answers come from.
    """

    def __init__(self, config: Config, answers: AnswerSource | None = None) -> None:
        self.config = config
        self.answers = answers or PromptAnswerSource()

    async def create(self, destination: str, source: str | None = None) -> Path:
        """Generate a project at *destination* from *source*.

        Returns:
            Absolute path of the generated project.
        """
        source = source or self.config.default_template
        name = validate_destination(destination)
        context = RunContext(destination=Path(destination).resolve())

        console.print(
            Panel(
                f"Project  : {name}\n"
                f"Template : {source}\n"
                f"Output   : {context.destination}",
                title="[bold]Morphy create[/bold]",
                border_style="bright_cyan",
            )
        )

        with CleanupGuard(context):
            await self.acquire(source, context)
            service = self.load_service(context.destination, name)

            print_step("Configuring project")
            await service.resolve_parameters(self.answers)

            await self.reduce(service, context.destination)
            await self.install(context.destination)

            with contextlib.chdir(context.destination):
                await service.finish()
            context.state = RunState.DONE

        print_success(f"Project {name} successfully created in {context.destination}")
        return context.destination

    # -- Steps shared with the test harness ----------------------------------

    async def acquire(self, source: str, context: RunContext, quiet: bool = False) -> None:
        """Bring the template into ``context.destination``, advancing the state."""
        if is_remote(source, self.config.remote_pattern):
            await download_template(
                source,
                context.destination,
                api_url=self.config.github_api_url,
                timeout=self.config.download_timeout,
            )
        else:
            context.state = RunState.COPYING
            copy_template(source, context.destination, self.config.copy_ignore, quiet=quiet)
        context.state = RunState.COPIED

    def load_service(self, directory: Path, name: str) -> ReducerService:
        print_step(f"Loading reducer from [green]{directory}[/green]")
        reducer_cls = load_reducer(directory)
        return ReducerService(
            reducer_cls,
            name,
            directory,
            reducer_package=self.config.reducer_package,
        )

    async def reduce(self, service: ReducerService, root: Path, quiet: bool = False) -> list[str]:
        """Remove unneeded paths, then rewrite every changed file under *root*.

        Removal always completes before any content is rewritten. Files whose
        reduced content equals the original are not touched; files that are
        not valid UTF-8 are skipped.

        Returns:
            Relative paths of the files that were rewritten.
        """
        for relative in await service.get_directories_for_remove():
            path = _inside(root, relative)
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()

        for relative in await service.get_files_for_remove():
            path = _inside(root, relative)
            if path.is_file() or path.is_symlink():
                path.unlink()

        rewritten: list[str] = []
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            relative = relative_posix(path, root)
            try:
                content = path.read_bytes().decode("utf-8")
            except UnicodeDecodeError:
                continue
            reduced = await service.reduce_file(content, relative)
            if reduced == content:
                continue
            if not quiet:
                console.print(f"Writing [green]{relative}[/green]")
            path.write_bytes(reduced.encode("utf-8"))
            if reduced.startswith("#!"):
                path.chmod(0o755)
            rewritten.append(relative)
        return rewritten

    async def install(self, directory: Path) -> None:
        """Install dependencies with inherited standard I/O."""
        if self.config.skip_install:
            print_warning("Skipping package installation")
            return
        command = list(self.config.install_command)
        print_step(f"Installing packages ({' '.join(command)})...")
        try:
            returncode, _, _ = await run_command(
                command,
                cwd=directory,
                timeout=self.config.install_timeout,
                capture=False,
            )
        except FileNotFoundError as exc:
            raise InstallError(command, 127) from exc
        if returncode != 0:
            raise InstallError(command, returncode)


def _inside(root: Path, relative: str) -> Path:
    """Resolve *relative* under *root*, refusing paths that escape it."""
    path = root / relative
    if not path.resolve().is_relative_to(root.resolve()):
        raise ReducerContractError(f"Refusing to remove {relative}: outside the project")
    return path

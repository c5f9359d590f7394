"""Shared utility functions for Morphy.

Provides async command execution, project-name normalisation, awaitable
helpers, duration formatting and the Rich-based console helpers used for all
user-facing output.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import os
import re
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.rule import Rule
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: str | list[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    capture: bool = True,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run an external command, such as the package-manager install.

    The child never outlives the call: on timeout, on cancellation of the
    awaiting task, or on an interrupt it is killed and reaped before the
    exception propagates.

    Args:
        cmd: Argument list, or a string run through the shell.
        cwd: Directory the command runs in (usually the generated project).
        timeout: Seconds allowed before the child is killed.
        capture: Collect stdout/stderr. With ``False`` the child shares the
            terminal, so installer progress stays visible.
        env: Variables added on top of ``os.environ``.

    Returns:
        ``(returncode, stdout, stderr)``; both strings are empty when
        *capture* is ``False``. A timeout yields ``-1`` and a message in
        stderr.
    """
    merged_env = {**os.environ, **env} if env else None
    stream = asyncio.subprocess.PIPE if capture else None
    options: dict[str, Any] = {
        "stdout": stream,
        "stderr": stream,
        "cwd": str(cwd) if cwd else None,
        "env": merged_env,
    }

    if isinstance(cmd, list):
        process = await asyncio.create_subprocess_exec(*cmd, **options)
    else:
        process = await asyncio.create_subprocess_shell(cmd, **options)

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        await _kill(process)
        command = cmd if isinstance(cmd, str) else " ".join(cmd)
        return (-1, "", f"Command timed out after {timeout}s: {command}")
    except BaseException:
        await _kill(process)
        raise

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
    await process.wait()


async def maybe_await(value: Any) -> Any:
    """Return *value*, awaiting it first if it is awaitable.

    Reducer methods may be plain functions or coroutines; every call into a
    reducer goes through here.
    """
    if inspect.isawaitable(value):
        return await value
    return value


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def normalize_project_name(destination: str) -> str:
    """Derive a package name from a destination path.

    Lowercases the input and keeps only ``a-z``, ``-`` and ``_``; every
    other character (digits, separators, dots) is dropped.

    Examples::

        normalize_project_name("MyApp") -> "myapp"
        normalize_project_name("my-app_2") -> "my-app_"
        normalize_project_name("123") -> ""
    """
    return "".join(re.findall(r"[a-z_-]", destination.lower()))


def relative_posix(path: Path, root: Path) -> str:
    """Return *path* relative to *root* using forward slashes."""
    return path.relative_to(root).as_posix()


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Render the wall-clock time of a harness run for its summary table.

    Runs under a minute keep one decimal (``"3.7s"``); longer runs drop the
    fraction and add minutes and hours (``"1m 5s"``, ``"1h 1m 1s"``).
    Negative input renders as ``"0.0s"``.
    """
    if seconds < 0:
        seconds = 0.0
    if seconds < 60:
        return f"{seconds:.1f}s"

    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_case_header(number: int, total: int) -> None:
    """Print a full-width rule announcing a test-harness case."""
    console.print()
    console.print(
        Rule(f"[bold bright_cyan] Testing case {number} of {total} [/bold bright_cyan]", style="bright_cyan")
    )


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_step(message: str) -> None:
    """Print a pipeline step marker."""
    console.print(f"[bold]>[/bold] {message}")


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")

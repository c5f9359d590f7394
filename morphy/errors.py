"""Exception hierarchy for Morphy.

Every failure the generator or the test harness can report derives from
:class:`MorphyError`, so the CLI entry point can tell an expected, already
explained failure apart from a bug.
"""

from __future__ import annotations


class MorphyError(Exception):
    """Base class for all expected Morphy failures."""


class InvalidDestinationError(MorphyError):
    """The destination is missing, already exists, or yields no project name."""


class AcquisitionError(MorphyError):
    """Copying, downloading or extracting the template failed."""


class ReducerLoadError(MorphyError):
    """The template's reducer module is missing or cannot be loaded."""


class ReducerContractError(MorphyError):
    """The reducer returned something the contract does not allow."""


class ReductionError(MorphyError):
    """A file could not be reduced (e.g. a malformed ``package.json``)."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class InstallError(MorphyError):
    """The package manager exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int) -> None:
        self.command = command
        self.returncode = returncode
        super().__init__(
            f"Command '{' '.join(command)}' failed with exit code {returncode}"
        )


class HarnessError(MorphyError):
    """The template's test matrix is empty or the requested case is missing."""


class CaseFailedError(MorphyError):
    """One test-matrix case failed; its working directory was kept."""

    def __init__(self, case_number: int, workdir: str, cause: BaseException) -> None:
        self.case_number = case_number
        self.workdir = workdir
        self.cause = cause
        super().__init__(f"Case {case_number} failed: {cause}")

"""Template test harness.

Implements ``morphy test``: replays the generation pipeline once per entry of
the template's test matrix, answering every parameter from the entry instead
of asking a user. Each case runs in a fresh, timestamp-named working
directory that is deleted when the case passes. The first failing case stops
the run; its working directory is kept as it was, together with a transcript
of the answers that led to the failure.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
import time
from pathlib import Path

from morphy.answers import TestCaseAnswerSource
from morphy.contract import Configuration
from morphy.errors import CaseFailedError, HarnessError
from morphy.generator import CleanupGuard, ProjectCreator, RunContext
from morphy.utils import (
    console,
    format_duration,
    normalize_project_name,
    print_case_header,
    print_error,
    print_success,
    print_summary_table,
)


class TemplateTester(ProjectCreator):
    """Runs a template's test matrix end to end.

    The template is acquired once into a private cache; every case then gets
    its own copy and its own reducer instance, so no state leaks between
    cases.
    """

    async def run(self, source: str | None = None, case_number: int | None = None) -> list[int]:
        """Run every case, or only *case_number* (1-based) when given.

        Returns:
            Numbers of the cases that passed.

        Raises:
            HarnessError: If the matrix is empty or the case does not exist.
            CaseFailedError: When a case fails; its directory is preserved.
        """
        source = source or self.config.default_template
        test_root = self.config.test_root.resolve()
        test_root.mkdir(parents=True, exist_ok=True)
        started = time.monotonic()

        with tempfile.TemporaryDirectory(prefix="morphy-template-") as cache:
            template_dir = Path(cache) / "template"
            await self.acquire(source, RunContext(destination=template_dir), quiet=True)

            matrix: list[Configuration] | None = None
            index = case_number - 1 if case_number else 0
            passed: list[int] = []

            while matrix is None or index < len(matrix):
                context = RunContext(destination=_new_workdir(test_root))
                matrix = await self._run_case(template_dir, context, matrix, index, case_number)
                passed.append(index + 1)
                index += 1
                if case_number:
                    break

        print_summary_table(
            {
                "Template": source,
                "Cases passed": ", ".join(str(number) for number in passed),
                "Duration": format_duration(time.monotonic() - started),
            },
            title="Template test",
        )
        print_success("All tested cases passed")
        return passed

    async def _run_case(
        self,
        template_dir: Path,
        context: RunContext,
        matrix: list[Configuration] | None,
        index: int,
        case_number: int | None,
    ) -> list[Configuration]:
        """Run one case and return the (possibly just loaded) test matrix."""
        answers: TestCaseAnswerSource | None = None

        interrupts = (KeyboardInterrupt, SystemExit, asyncio.CancelledError)
        with CleanupGuard(context, cleanup_on=interrupts) as guard:
            try:
                await self.acquire(str(template_dir), context, quiet=True)
                service = self.load_service(
                    context.destination, normalize_project_name(context.destination.name)
                )
                if matrix is None:
                    matrix = await service.get_test_config_set()
                    _check_matrix(matrix, index, case_number)

                print_case_header(index + 1, len(matrix))
                console.print("> Test input:")
                answers = TestCaseAnswerSource(
                    matrix[index], on_answer=lambda line: console.print(f"  {line}")
                )
                await service.resolve_parameters(answers)
                await self.reduce(service, context.destination, quiet=True)
            except HarnessError:
                guard.cleanup()
                raise
            except Exception as exc:
                self._preserve(context, answers, index + 1, exc)
                raise CaseFailedError(index + 1, str(context.destination), exc) from exc

        shutil.rmtree(context.destination)
        print_success(f"Case {index + 1} passed")
        return matrix

    def _preserve(
        self,
        context: RunContext,
        answers: TestCaseAnswerSource | None,
        case_number: int,
        exc: Exception,
    ) -> None:
        print_error(f"> {exc}")
        if not context.destination.exists():
            return
        console.print(
            f"Template installation which caused the error is saved here: {context.destination}"
        )
        if answers is None:
            return
        transcript_path = context.destination / self.config.transcript_name
        transcript_path.write_text(answers.transcript, encoding="utf-8")
        console.print(f"Test input of case {case_number} (also saved at {transcript_path}):")
        for line in answers.lines:
            console.print(f"  {line}")


def _check_matrix(matrix: list[Configuration], index: int, case_number: int | None) -> None:
    if not matrix:
        raise HarnessError(
            "The result of TemplateReducer.get_test_config_set() is empty, nothing to test"
        )
    if index < 0 or index >= len(matrix):
        raise HarnessError(
            f"There is no case {case_number} in TemplateReducer.get_test_config_set() result "
            f"({len(matrix)} case(s) available)"
        )


def _new_workdir(root: Path) -> Path:
    """Return an unused ``test<milliseconds>`` directory path under *root*."""
    stamp = int(time.time() * 1000)
    while (root / f"test{stamp}").exists():
        stamp += 1
    return root / f"test{stamp}"

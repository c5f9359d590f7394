"""Answer sources for configuration parameters.

The reduction engine never talks to a user directly. It asks an
:class:`AnswerSource` for the value of each concrete parameter: the
generator uses :class:`PromptAnswerSource` (interactive Rich prompts), the
test harness uses :class:`TestCaseAnswerSource` (fixed answers from the
template's test matrix, recorded as a transcript).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol

from rich.console import Console
from rich.prompt import Confirm, FloatPrompt, IntPrompt, Prompt

from morphy.contract import ConfigParameter, ParameterType
from morphy.errors import ReducerContractError
from morphy.utils import console as default_console


class AnswerSource(Protocol):
    """Anything that can produce a value for a concrete parameter."""

    async def ask(self, parameter: ConfigParameter) -> Any: ...


# ---------------------------------------------------------------------------
# Interactive prompts
# ---------------------------------------------------------------------------

class PromptAnswerSource:
    """Asks the user on the terminal, one Rich prompt per parameter."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or default_console

    async def ask(self, parameter: ConfigParameter) -> Any:
        if parameter.type == ParameterType.TEXT:
            return self._ask_text(parameter)
        if parameter.type == ParameterType.NUMBER:
            return self._ask_number(parameter)
        if parameter.type == ParameterType.CONFIRM:
            default = bool(parameter.default) if parameter.default is not None else False
            return Confirm.ask(parameter.description, default=default, console=self.console)
        if parameter.type == ParameterType.RADIO:
            return self._ask_radio(parameter)
        if parameter.type == ParameterType.CHECKBOX:
            return self._ask_checkbox(parameter)
        raise ReducerContractError(f"Unsupported parameter type: {parameter.type!r}")

    def _ask_text(self, parameter: ConfigParameter) -> str:
        if parameter.default is None:
            return Prompt.ask(parameter.description, console=self.console)
        return Prompt.ask(parameter.description, default=str(parameter.default), console=self.console)

    def _ask_number(self, parameter: ConfigParameter) -> int | float:
        default = parameter.default
        integral = default is None or (isinstance(default, int) and not isinstance(default, bool))
        prompt_cls = IntPrompt if integral else FloatPrompt
        if default is None:
            return prompt_cls.ask(parameter.description, console=self.console)
        return prompt_cls.ask(parameter.description, default=default, console=self.console)

    def _ask_radio(self, parameter: ConfigParameter) -> str:
        values = [choice.value for choice in parameter.choices]
        checked = [choice.value for choice in parameter.choices if choice.checked]
        if checked:
            default = checked[0]
        elif parameter.default in values:
            default = parameter.default
        else:
            default = values[0]

        self.console.print(f"[bold]{parameter.description}[/bold]")
        for choice in parameter.choices:
            marker = "*" if choice.value == default else " "
            self.console.print(f"  {marker} [cyan]{choice.value}[/cyan]  {choice.label}")
        return Prompt.ask("Choose", choices=values, default=default, console=self.console)

    def _ask_checkbox(self, parameter: ConfigParameter) -> list[str]:
        self.console.print(f"[bold]{parameter.description}[/bold]")
        for number, choice in enumerate(parameter.choices, start=1):
            mark = "x" if choice.checked else " "
            self.console.print(f"  {number}. [{mark}] {choice.label}")

        default = ",".join(
            str(number) for number, choice in enumerate(parameter.choices, start=1) if choice.checked
        )
        while True:
            raw = Prompt.ask(
                "Select (comma-separated numbers, empty for none)",
                default=default,
                console=self.console,
            )
            selected = _parse_selection(raw, len(parameter.choices))
            if selected is not None:
                return [parameter.choices[index].value for index in selected]
            self.console.print("[prompt.invalid]Please enter numbers from the list above")


def _parse_selection(raw: str, count: int) -> list[int] | None:
    """Parse ``"1, 3"`` into zero-based indexes; ``None`` when invalid."""
    indexes: list[int] = []
    for part in raw.replace(" ", "").split(","):
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= count:
            return None
        index = int(part) - 1
        if index not in indexes:
            indexes.append(index)
    return sorted(indexes)


# ---------------------------------------------------------------------------
# Test-case answers
# ---------------------------------------------------------------------------

class TestCaseAnswerSource:
    """Answers parameters from a fixed test case and keeps a transcript.

    Parameters missing from the test case resolve to ``None``. Every answer
    is recorded as a ``"<description>: <value>"`` line, in resolution order.
    """

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        test_case: Mapping[str, Any],
        on_answer: Callable[[str], None] | None = None,
    ) -> None:
        self.test_case = test_case
        self.on_answer = on_answer
        self.lines: list[str] = []

    async def ask(self, parameter: ConfigParameter) -> Any:
        value = self.test_case.get(parameter.name)
        line = f"{parameter.description}: {format_answer(value)}"
        self.lines.append(line)
        if self.on_answer is not None:
            self.on_answer(line)
        return value

    @property
    def transcript(self) -> str:
        return "".join(f"{line}\n" for line in self.lines)


def format_answer(value: Any) -> str:
    """Render an answer the way it appears in a transcript."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    if value is None:
        return "undefined"
    return str(value)

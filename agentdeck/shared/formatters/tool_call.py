"""Compact one-line formatting for tool calls and tool results.

Each tool kind registers a call formatter producing a ``Verb(argument)``
line and, optionally, a result summariser:

    @tool_formatter(ToolKind.READ_FILE)
    def _format_read(tool_input):
        return FormattedToolCall(verb="Read", argument=truncate_path(tool_input.path))

Long arguments are cut to a fixed character budget.  Paths keep their
suffix (the file name is the interesting part), everything else keeps
its prefix.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from agentdeck.shared.models.conversation import (
    AskUserInput,
    CodeInterpreterInput,
    CodeInterpreterOutput,
    CreateFileInput,
    CreateFileOutput,
    EditFileInput,
    EditFileOutput,
    ExecuteCommandInput,
    ExecuteCommandOutput,
    FindFileInput,
    FindFileOutput,
    GrepInput,
    GrepOutput,
    HandoffInput,
    ListFilesInput,
    ListFilesOutput,
    ReadFileInput,
    ReadFileOutput,
    SubmitReportInput,
    SubmitReportOutput,
    ToolInput,
    ToolKind,
    ToolOutput,
)

TRUNCATE_BUDGET = 50
ELLIPSIS = "..."


# ── Truncation ──


def truncate(text: str, budget: int = TRUNCATE_BUDGET) -> str:
    """Keep the first ``budget - 3`` characters and append an ellipsis.

    Strings within the budget are returned unchanged, so truncating twice
    gives the same result as truncating once.
    """
    if len(text) <= budget:
        return text
    return text[: max(budget - len(ELLIPSIS), 0)] + ELLIPSIS


def truncate_path(text: str, budget: int = TRUNCATE_BUDGET) -> str:
    """Keep the last ``budget - 3`` characters behind a leading ellipsis."""
    if len(text) <= budget:
        return text
    keep = max(budget - len(ELLIPSIS), 0)
    return ELLIPSIS + (text[-keep:] if keep else "")


def _one_line(text: str) -> str:
    return " ".join(text.split())


def _plural(count: int, word: str, plural: str | None = None) -> str:
    if count == 1:
        return f"{count} {word}"
    return f"{count} {plural or word + 's'}"


# ── Intermediate Representation ──


@dataclass(frozen=True)
class FormattedToolCall:
    """A compact tool call line, e.g. ``Read(src/app.py)``."""

    verb: str
    argument: str | None = ""

    @property
    def text(self) -> str:
        # Tools without a parenthesised argument render the verb verbatim
        if self.argument is None:
            return self.verb
        return f"{self.verb}({self.argument})"


# ── Formatter Registry ──

_FORMATTERS: dict[ToolKind, Callable[[Any], FormattedToolCall]] = {}
_SUMMARISERS: dict[ToolKind, Callable[[Any], str]] = {}


def tool_formatter(kind: ToolKind):
    """Decorator to register the call formatter for a tool kind."""

    def decorator(fn: Callable[[Any], FormattedToolCall]):
        _FORMATTERS[kind] = fn
        return fn

    return decorator


def result_summariser(kind: ToolKind):
    """Decorator to register the result summariser for a tool kind."""

    def decorator(fn: Callable[[Any], str]):
        _SUMMARISERS[kind] = fn
        return fn

    return decorator


def format_tool_call(tool_input: ToolInput) -> FormattedToolCall:
    """Dispatch to the registered formatter for the input's kind."""
    formatter = _FORMATTERS.get(tool_input.kind)
    if formatter is None:
        return FormattedToolCall(verb=tool_input.kind.value, argument=None)
    return formatter(tool_input)


def summarise_tool_result(output: ToolOutput) -> str:
    summariser = _SUMMARISERS.get(output.kind)
    if summariser is None:
        return "Done"
    return summariser(output)


# ── Call formatters ──


@tool_formatter(ToolKind.READ_FILE)
def _format_read(tool_input: ReadFileInput) -> FormattedToolCall:
    return FormattedToolCall(
        verb="Read",
        argument=truncate_path(tool_input.path),
    )


@tool_formatter(ToolKind.CREATE_FILE)
def _format_create(tool_input: CreateFileInput) -> FormattedToolCall:
    return FormattedToolCall(
        verb="Create",
        argument=truncate_path(tool_input.path),
    )


@tool_formatter(ToolKind.EDIT_FILE)
def _format_edit(tool_input: EditFileInput) -> FormattedToolCall:
    return FormattedToolCall(
        verb="Edit",
        argument=truncate_path(tool_input.path),
    )


@tool_formatter(ToolKind.EXECUTE_COMMAND)
def _format_execute(tool_input: ExecuteCommandInput) -> FormattedToolCall:
    return FormattedToolCall(
        verb="Execute",
        argument=truncate(_one_line(tool_input.command)),
    )


@tool_formatter(ToolKind.FIND_FILE)
def _format_find(tool_input: FindFileInput) -> FormattedToolCall:
    path = tool_input.path or "."
    exclude = tool_input.exclude_pattern or "none"
    return FormattedToolCall(
        verb="Find",
        argument=(
            f"pattern: {truncate(tool_input.pattern)}, "
            f"path: {truncate_path(path)}, exclude: {truncate(exclude)}"
        ),
    )


@tool_formatter(ToolKind.GREP)
def _format_grep(tool_input: GrepInput) -> FormattedToolCall:
    argument = truncate(_one_line(tool_input.query))
    if tool_input.include_pattern:
        argument += f" in {truncate(tool_input.include_pattern)}"
    return FormattedToolCall(verb="Grep", argument=argument)


@tool_formatter(ToolKind.HANDOFF)
def _format_handoff(tool_input: HandoffInput) -> FormattedToolCall:
    return FormattedToolCall(
        verb=f"Handoff → {tool_input.requested_agent}",
        argument=None,
    )


@tool_formatter(ToolKind.ASK_USER)
def _format_ask_user(tool_input: AskUserInput) -> FormattedToolCall:
    return FormattedToolCall(
        verb="Ask",
        argument=truncate(_one_line(tool_input.question)),
    )


@tool_formatter(ToolKind.LIST_FILES)
def _format_list(tool_input: ListFilesInput) -> FormattedToolCall:
    verb = "List -R" if tool_input.recursive else "List"
    return FormattedToolCall(
        verb=verb,
        argument=truncate_path(tool_input.path or "."),
    )


@tool_formatter(ToolKind.SUBMIT_REPORT)
def _format_report(tool_input: SubmitReportInput) -> FormattedToolCall:
    return FormattedToolCall(
        verb="Report",
        argument=truncate(_one_line(tool_input.summary)),
    )


@tool_formatter(ToolKind.CODE_INTERPRETER)
def _format_interpreter(tool_input: CodeInterpreterInput) -> FormattedToolCall:
    first_line = tool_input.code.strip().splitlines()[0] if tool_input.code.strip() else ""
    return FormattedToolCall(verb="Interpreter", argument=truncate(first_line))


# ── Result summarisers ──


@result_summariser(ToolKind.READ_FILE)
def _summarise_read(output: ReadFileOutput) -> str:
    return f"Read {_plural(len(output.content.splitlines()), 'line')}"


@result_summariser(ToolKind.CREATE_FILE)
def _summarise_create(output: CreateFileOutput) -> str:
    return "Overwrote file" if output.overwritten else "Created file"


@result_summariser(ToolKind.EDIT_FILE)
def _summarise_edit(output: EditFileOutput) -> str:
    return f"+{output.lines_added} -{output.lines_removed} lines"


@result_summariser(ToolKind.EXECUTE_COMMAND)
def _summarise_execute(output: ExecuteCommandOutput) -> str:
    summary = f"Exit code {output.exit_code}"
    if output.exit_code != 0 and output.stderr.strip():
        summary += f": {truncate(output.stderr.strip().splitlines()[0])}"
    return summary


@result_summariser(ToolKind.FIND_FILE)
def _summarise_find(output: FindFileOutput) -> str:
    total = output.total_files or len(output.files)
    summary = f"Found {_plural(total, 'file')}"
    if output.truncated_count:
        summary += f" ({output.truncated_count} more)"
    return summary


@result_summariser(ToolKind.GREP)
def _summarise_grep(output: GrepOutput) -> str:
    total = output.total_matches or len(output.matches)
    return (
        f"{_plural(total, 'match', 'matches')} in "
        f"{_plural(output.searched_files, 'file')}"
    )


@result_summariser(ToolKind.LIST_FILES)
def _summarise_list(output: ListFilesOutput) -> str:
    return f"Listed {_plural(len(output.entries), 'entry', 'entries')}"


@result_summariser(ToolKind.SUBMIT_REPORT)
def _summarise_report(output: SubmitReportOutput) -> str:
    return "Report submitted (completed)" if output.completed else "Report submitted"


@result_summariser(ToolKind.CODE_INTERPRETER)
def _summarise_interpreter(output: CodeInterpreterOutput) -> str:
    lines = output.output.strip().splitlines()
    if not lines:
        return "No output"
    return truncate(lines[0])

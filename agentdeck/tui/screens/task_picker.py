"""Task picker shown by ``agentdeck resume`` when no task id is given."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from rich.table import Table
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.message import Message as TextualMessage
from textual.widgets import Static

from agentdeck.shared.formatters.status import abbreviate_path
from agentdeck.shared.formatters.tool_call import truncate, truncate_path
from agentdeck.shared.models.task import Task
from agentdeck.tui.selection import SelectionTable

HELP_LINE = "Press ↑/↓ or j/k to navigate, Enter to select, Esc to cancel"
EMPTY_LINE = "No tasks found"


def _format_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def task_row(task: Task) -> tuple[str, ...]:
    return (
        task.id[:8],
        _format_time(task.created_at),
        _format_time(task.updated_at),
        truncate_path(abbreviate_path(task.workspace), 30),
        str(task.message_count),
        truncate(" ".join(task.description.split()), 50) or "-",
    )


def build_table(selection: SelectionTable[Task]) -> Table | Text:
    if not selection.rows:
        return Text(EMPTY_LINE, style="dim")
    table = Table(box=None, header_style="bold", pad_edge=False, expand=True)
    for column in ("ID", "Created", "Updated", "Workspace", "Messages", "Summary"):
        table.add_column(column, no_wrap=True)
    for index, task in enumerate(selection.rows):
        style = "bold black on #00afff" if index == selection.index else None
        table.add_row(*task_row(task), style=style)
    return table


class TaskTable(Static, can_focus=True):
    """Focused table that owns the selection and reports when it ends."""

    class Finished(TextualMessage):
        def __init__(self, task: Task | None) -> None:
            super().__init__()
            self.task = task

    def __init__(self, tasks: Sequence[Task], **kwargs) -> None:
        self._selection: SelectionTable[Task] = SelectionTable(tasks)
        super().__init__(build_table(self._selection), **kwargs)

    @property
    def selection(self) -> SelectionTable[Task]:
        return self._selection

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        changed = self._selection.handle_key(event.key)
        if self._selection.done:
            self.post_message(self.Finished(self._selection.selected))
        elif changed:
            self.update(build_table(self._selection))


class TaskPickerApp(App[Task | None]):
    """Pick one task from a list; exits with the task or ``None``."""

    TITLE = "agentdeck"
    CSS = """
    Screen {
        padding: 1 2;
    }
    TaskTable {
        height: 1fr;
    }
    #picker-help {
        height: 1;
        color: $text-muted;
    }
    """

    def __init__(self, tasks: Sequence[Task]) -> None:
        super().__init__()
        self._tasks = list(tasks)

    def compose(self) -> ComposeResult:
        yield TaskTable(self._tasks, id="task-table")
        yield Static(HELP_LINE, id="picker-help")

    def on_mount(self) -> None:
        self.query_one(TaskTable).focus()

    def on_task_table_finished(self, message: TaskTable.Finished) -> None:
        self.exit(message.task)

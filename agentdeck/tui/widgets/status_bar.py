"""Status bar: agent, model, task status and token usage."""

from __future__ import annotations

from rich.text import Text
from textual.reactive import reactive
from textual.timer import Timer
from textual.widget import Widget

from agentdeck.tui.styles import DEFAULT_THEME, Theme

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
SPINNER_FPS = 6


class StatusBar(Widget):
    """Single-line header.  Only the spinner animates; nothing else ticks."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        width: 1fr;
    }
    """

    agent_name: reactive[str] = reactive("")
    model_name: reactive[str] = reactive("")
    status: reactive[str] = reactive("")
    busy: reactive[bool] = reactive(False)
    usage: reactive[str] = reactive("")

    def __init__(self, theme: Theme = DEFAULT_THEME, **kwargs) -> None:
        super().__init__(**kwargs)
        self._theme = theme
        self._frame = 0
        self._spinner_timer: Timer | None = None

    def watch_busy(self, old_value: bool, new_value: bool) -> None:
        if new_value and self._spinner_timer is None:
            self._spinner_timer = self.set_interval(1 / SPINNER_FPS, self._advance_spinner)
        elif not new_value and self._spinner_timer is not None:
            self._spinner_timer.stop()
            self._spinner_timer = None

    def _advance_spinner(self) -> None:
        self._frame = (self._frame + 1) % len(SPINNER_FRAMES)
        self.refresh()

    @property
    def spinner_frame(self) -> str:
        return SPINNER_FRAMES[self._frame]

    def render(self) -> Text:
        theme = self._theme
        left = Text()
        left.append(f"» {self.agent_name}", style=theme.header_agent_style)
        if self.model_name:
            left.append(theme.header_separator, style="dim")
            left.append(self.model_name, style=theme.header_model_style)
        if self.status:
            left.append(theme.header_separator, style="dim")
            if self.busy:
                left.append(f"{self.spinner_frame} ", style=theme.spinner_style)
            left.append(self.status, style=theme.header_status_style)

        right = Text(self.usage, style=theme.header_usage_style)
        gap = self.size.width - left.cell_len - right.cell_len
        if gap < 1:
            left.append(" ")
        else:
            left.append(" " * gap)
        left.append_text(right)
        return left

"""Help overlay listing the session's key bindings."""

from __future__ import annotations

from textual.widgets import Static

from agentdeck.tui.styles import KeyBindings

_ACTION_LABELS = {
    "help": "toggle help",
    "send": "send message",
    "newline": "insert newline",
    "switch_agent": "switch agent",
    "clear_or_quit": "clear input, press twice to quit",
    "suspend": "suspend task execution",
    "delete_back": "delete character",
    "scroll_page_up": "scroll up half a page",
    "scroll_page_down": "scroll down half a page",
    "scroll_line_up": "scroll up one line",
    "scroll_line_down": "scroll down one line",
    "scroll_top": "jump to start",
    "scroll_bottom": "jump to end",
}


def _key_label(key: str) -> str:
    return "+".join(part.capitalize() if len(part) > 1 else part for part in key.split("+"))


def help_markup(keys: KeyBindings) -> str:
    lines = ["[bold]Keyboard shortcuts[/bold]"]
    for action in KeyBindings.action_names():
        bound = getattr(keys, action)
        if not bound:
            continue
        label = " / ".join(f"`{_key_label(k)}`" for k in bound)
        lines.append(f"- {label}: {_ACTION_LABELS.get(action, action)}")
    lines.append("")
    lines.append("[dim]Esc or the help key closes this overlay[/dim]")
    return "\n".join(lines)


class HelpOverlay(Static):
    DEFAULT_CSS = """
    HelpOverlay {
        layer: overlay;
        display: none;
        width: 1fr;
        height: auto;
        margin: 2 4;
        padding: 1 2;
        border: round #00afff;
        background: $surface;
    }
    HelpOverlay.-visible {
        display: block;
    }
    """

    def __init__(self, keys: KeyBindings, **kwargs) -> None:
        super().__init__(help_markup(keys), markup=True, **kwargs)

    def set_visible(self, visible: bool) -> None:
        self.set_class(visible, "-visible")

"""Prompt input box.

The text shown here is owned by the session controller.  The widget only
displays it and forwards every key press, so that editing, sending and
the session shortcuts are all decided in one place.
"""

from __future__ import annotations

from rich.text import Text
from textual import events
from textual.message import Message as TextualMessage
from textual.reactive import reactive
from textual.widget import Widget

PLACEHOLDER = "Type a message... (Enter to send, F1 for help)"


class PromptInput(Widget, can_focus=True):
    DEFAULT_CSS = """
    PromptInput {
        height: 6;
        width: 1fr;
        max-width: 120;
        border: round #585858;
        padding: 0 1;
    }
    PromptInput:focus {
        border: round #00afff;
    }
    """

    text: reactive[str] = reactive("")

    class KeyPressed(TextualMessage):
        """A key press destined for the session controller."""

        def __init__(self, key: str, character: str | None) -> None:
            super().__init__()
            self.key = key
            self.character = character

    def on_key(self, event: events.Key) -> None:
        # Keep focus traversal and app bindings from seeing session keys
        event.stop()
        event.prevent_default()
        self.post_message(self.KeyPressed(event.key, event.character))

    def render(self) -> Text:
        if not self.text:
            return Text(PLACEHOLDER, style="dim italic")
        text = Text(self.text)
        text.append("▏", style="bold")
        return text

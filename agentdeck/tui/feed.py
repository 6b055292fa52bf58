"""Message feed rendering.

``render_feed`` turns the conversation plus viewport geometry into the
slice of lines to display.  It keeps no state between calls: the whole
transcript is rendered every time and then windowed by the scroll offset.
"""
from __future__ import annotations

import io
from collections.abc import Sequence
from dataclasses import dataclass

from rich.console import Console
from rich.text import Text

from agentdeck.shared.formatters.entries import MarkdownRenderer, render_entry
from agentdeck.shared.formatters.markdown import render_markdown
from agentdeck.shared.models.conversation import ConversationEntry
from agentdeck.tui.styles import DEFAULT_THEME, Theme

ENTRY_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class FeedView:
    lines: tuple[Text, ...]
    total_lines: int
    offset: int
    height: int

    @property
    def max_offset(self) -> int:
        return max(0, self.total_lines - self.height)

    @property
    def at_bottom(self) -> bool:
        return self.offset >= self.max_offset

    def as_text(self) -> Text:
        return Text("\n").join(self.lines)


def render_transcript(
    conversation: Sequence[ConversationEntry],
    width: int,
    theme: Theme = DEFAULT_THEME,
    markdown: MarkdownRenderer = render_markdown,
) -> Text:
    """Join every entry's block with a single blank line between them."""
    blocks = [render_entry(entry, theme, width, markdown) for entry in conversation]
    return Text(ENTRY_SEPARATOR).join(blocks)


def wrap_lines(text: Text, width: int) -> list[Text]:
    width = max(width, 1)
    console = Console(width=width, file=io.StringIO(), legacy_windows=False)
    return list(text.wrap(console, width))


def render_feed(
    conversation: Sequence[ConversationEntry],
    width: int,
    height: int,
    scroll_offset: int | None,
    *,
    theme: Theme = DEFAULT_THEME,
    markdown: MarkdownRenderer = render_markdown,
) -> FeedView:
    """Render the visible window of the conversation.

    ``scroll_offset`` is the index of the first visible line; ``None``
    pins the view to the bottom.  Out-of-range offsets are clamped to
    ``[0, total_lines - height]``.
    """
    height = max(height, 1)
    if conversation:
        lines = wrap_lines(render_transcript(conversation, width, theme, markdown), width)
    else:
        lines = []
    max_offset = max(0, len(lines) - height)
    if scroll_offset is None:
        offset = max_offset
    else:
        offset = min(max(scroll_offset, 0), max_offset)
    return FeedView(
        lines=tuple(lines[offset:offset + height]),
        total_lines=len(lines),
        offset=offset,
        height=height,
    )

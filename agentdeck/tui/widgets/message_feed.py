"""Scrollable conversation view."""

from __future__ import annotations

from textual.widgets import Static

from agentdeck.tui.feed import FeedView


class MessageFeed(Static):
    """Shows the window of feed lines chosen by the controller."""

    DEFAULT_CSS = """
    MessageFeed {
        height: 1fr;
        width: 1fr;
        padding: 0 0;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("", **kwargs)
        self._view: FeedView | None = None

    @property
    def view(self) -> FeedView | None:
        return self._view

    def show(self, view: FeedView) -> None:
        self._view = view
        self.update(view.as_text())

"""agentdeck TUI: Textual application for one task session."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from textual import events
from textual.app import App, ComposeResult

from agentdeck.adapters.commands import KeyPress, Resize
from agentdeck.adapters.event_bus import EventBus
from agentdeck.adapters.rpc import RpcClient
from agentdeck.adapters.runtime import CommandRuntime
from agentdeck.shared.models.session import UIMode
from agentdeck.shared.models.task import Agent, Task
from agentdeck.tui.controller import SessionController, Update
from agentdeck.tui.styles import DEFAULT_KEYS, DEFAULT_THEME, KeyBindings, Theme
from agentdeck.tui.widgets.help_overlay import HelpOverlay
from agentdeck.tui.widgets.message_feed import MessageFeed
from agentdeck.tui.widgets.prompt_input import PromptInput
from agentdeck.tui.widgets.status_bar import StatusBar

logger = logging.getLogger(__name__)


class SessionApp(App):
    """Chat with an agent on one task.

    Every input (keys, resizes, server pushes, command outcomes) goes
    through one :class:`EventBus` and is handled by the controller one
    event at a time in :meth:`_consume_events`.
    """

    TITLE = "agentdeck"
    CSS = """
    Screen {
        layers: base overlay;
        padding: 1 2;
    }
    """

    def __init__(
        self,
        task: Task,
        agent: Agent,
        client: RpcClient,
        *,
        reporter=None,
        theme: Theme = DEFAULT_THEME,
        keys: KeyBindings = DEFAULT_KEYS,
        clock: Callable[[], float] = time.monotonic,
        subscribe: bool = True,
    ) -> None:
        super().__init__()
        self._client = client
        self._reporter = reporter
        self._theme = theme
        self._bus = EventBus()
        self._runtime = CommandRuntime(client, self._bus, reporter)
        self._controller = SessionController(task, agent, theme=theme, keys=keys, clock=clock)
        self._subscribe = subscribe
        self._consumer: asyncio.Task | None = None

    @property
    def controller(self) -> SessionController:
        return self._controller

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def runtime(self) -> CommandRuntime:
        return self._runtime

    def compose(self) -> ComposeResult:
        yield StatusBar(self._theme, id="status-bar")
        yield MessageFeed(id="message-feed")
        yield PromptInput(id="prompt-input")
        yield HelpOverlay(self._controller.keys, id="help-overlay")

    def on_mount(self) -> None:
        self.title = self._controller.title
        self.query_one(PromptInput).focus()
        self._consumer = asyncio.create_task(self._consume_events(), name="session-events")
        if self._subscribe:
            self._runtime.start_subscription(self._controller.state.task.id)
        self._bus.publish(Resize(width=self.size.width, height=self.size.height))
        self._apply(self._controller.start())

    def on_resize(self, event: events.Resize) -> None:
        self._bus.publish(Resize(width=event.size.width, height=event.size.height))

    def on_prompt_input_key_pressed(self, message: PromptInput.KeyPressed) -> None:
        self._bus.publish(KeyPress(key=message.key, character=message.character))

    async def _consume_events(self) -> None:
        async for event in self._bus.consume():
            try:
                update = self._controller.handle(event)
                self._apply(update)
            except Exception:
                logger.exception("Failed to handle %s", event.event_type)
                continue
            if update.quit:
                break

    # ── applying updates ──

    def _apply(self, update: Update) -> None:
        for command in update.commands:
            logger.debug("Issuing %s", command)
            self._runtime.execute(command)
        state = self._controller.state
        if update.feed_changed:
            self.query_one(MessageFeed).show(self._controller.render_feed())
        if update.header_changed or update.feed_changed:
            self._refresh_header()
        if update.input_changed:
            self.query_one(PromptInput).text = state.input_buffer
        if update.mode_changed:
            self.query_one(HelpOverlay).set_visible(state.mode is UIMode.HELP)
        if update.quit:
            self._bus.close()
            self.exit()

    def _refresh_header(self) -> None:
        header = self._controller.header()
        bar = self.query_one(StatusBar)
        bar.agent_name = header.agent_name
        bar.model_name = header.model_name
        bar.status = header.status
        bar.busy = header.busy
        bar.usage = header.usage

    async def on_unmount(self) -> None:
        self._bus.close()
        if self._consumer is not None:
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
        await self._runtime.shutdown()
        await self._client.close()
        if self._reporter is not None:
            await asyncio.to_thread(self._reporter.close)

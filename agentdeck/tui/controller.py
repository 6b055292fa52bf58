"""Session controller: the state machine behind a running task session.

The controller owns :class:`SessionState` and is driven one event at a
time through :meth:`SessionController.handle`.  Handling an event never
blocks and never performs I/O: it mutates state and returns an
:class:`Update` describing which commands to run and what to redraw.
Command results come back later as ``CommandOutcome`` events.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from agentdeck.adapters.commands import (
    CommandOutcome,
    FetchModel,
    FetchTask,
    KeyPress,
    ListAgents,
    Resize,
    SendMessage,
    ServerTaskEvent,
    SessionCommand,
    SessionEvent,
    SubscriptionClosed,
    SuspendTask,
    TaskSnapshot,
)
from agentdeck.shared.formatters.entries import MarkdownRenderer
from agentdeck.shared.formatters.markdown import render_markdown
from agentdeck.shared.formatters.status import (
    abbreviate_model_name,
    abbreviate_path,
    context_usage,
    format_usage,
)
from agentdeck.shared.models.conversation import AGENT_ENTRY_TYPES, UserText
from agentdeck.shared.models.session import SessionState, UIMode
from agentdeck.shared.models.task import Agent, ModelInfo, Task, TaskPhase
from agentdeck.shared.services.error_translator import UserFacingError
from agentdeck.tui.feed import FeedView, render_feed
from agentdeck.tui.styles import DEFAULT_KEYS, DEFAULT_THEME, KeyBindings, Theme

logger = logging.getLogger(__name__)

DOUBLE_PRESS_WINDOW = 1.0


@dataclass
class Update:
    """What the driver must do after an event was handled."""

    commands: list[SessionCommand] = field(default_factory=list)
    feed_changed: bool = False
    header_changed: bool = False
    input_changed: bool = False
    mode_changed: bool = False
    quit: bool = False


@dataclass(frozen=True)
class HeaderInfo:
    agent_name: str
    model_name: str
    status: str
    busy: bool
    usage: str


class SessionController:
    def __init__(
        self,
        task: Task,
        agent: Agent,
        *,
        theme: Theme = DEFAULT_THEME,
        keys: KeyBindings = DEFAULT_KEYS,
        clock: Callable[[], float] = time.monotonic,
        markdown: MarkdownRenderer = render_markdown,
        width: int = 80,
        height: int = 24,
    ) -> None:
        self._state = SessionState(task=task, active_agent=agent)
        self._theme = theme
        self._keys = keys
        self._clock = clock
        self._markdown = markdown
        self._last_view: FeedView | None = None
        self._event_handlers: dict[type, Callable[..., Update]] = {
            KeyPress: self._on_key,
            Resize: self._on_resize,
            ServerTaskEvent: self._on_server_task_event,
            CommandOutcome: self._on_outcome,
            SubscriptionClosed: self._on_subscription_closed,
        }
        self._outcome_handlers: dict[type, Callable[[CommandOutcome], Update]] = {
            SendMessage: self._on_send_outcome,
            SuspendTask: self._on_suspend_outcome,
            FetchTask: self._on_fetch_task_outcome,
            FetchModel: self._on_fetch_model_outcome,
            ListAgents: self._on_list_agents_outcome,
        }
        self._apply_geometry(width, height)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def theme(self) -> Theme:
        return self._theme

    @property
    def keys(self) -> KeyBindings:
        return self._keys

    @property
    def title(self) -> str:
        return f"agentdeck ({abbreviate_path(self._state.task.workspace)})"

    def start(self) -> Update:
        """Initial commands: agent roster, active model and task history."""
        state = self._state
        commands: list[SessionCommand] = [ListAgents()]
        if state.active_agent.model_id:
            commands.append(FetchModel(model_id=state.active_agent.model_id))
        commands.append(FetchTask(task_id=state.task.id))
        return Update(commands=commands, feed_changed=True, header_changed=True)

    def handle(self, event: SessionEvent) -> Update:
        handler = self._event_handlers.get(type(event))
        if handler is None:
            logger.debug("Ignoring unknown event %s", event.event_type)
            return Update()
        return handler(event)

    # ── rendering ──

    def render_feed(self) -> FeedView:
        state = self._state
        viewport = state.viewport
        offset = None if state.follow_output else state.scroll_offset
        view = render_feed(
            state.conversation,
            viewport.feed_width,
            viewport.feed_height,
            offset,
            theme=self._theme,
            markdown=self._markdown,
        )
        self._last_view = view
        state.scroll_offset = view.offset
        if view.at_bottom:
            state.follow_output = True
        return view

    def header(self) -> HeaderInfo:
        state = self._state
        busy = state.waiting_for_agent or state.task.phase is TaskPhase.RUNNING
        if busy:
            status = "Thinking"
        elif state.task.phase is TaskPhase.SUSPENDED:
            status = "Suspended"
        else:
            status = ""
        model = state.current_model
        return HeaderInfo(
            agent_name=state.active_agent.name,
            model_name=abbreviate_model_name(model.name, self._theme.model_name_limit) if model else "",
            status=status,
            busy=busy,
            usage=format_usage(state.task.usage, context_usage(state.task.usage, model)),
        )

    # ── keys ──

    def _on_key(self, event: KeyPress) -> Update:
        state = self._state
        action = self._keys.action_for(event.key)
        if action == "clear_or_quit":
            return self._clear_or_quit()

        # Any other key breaks a pending double press
        state.last_clear_press = None

        if state.mode is UIMode.HELP:
            if action == "help" or event.key == "escape":
                state.mode = UIMode.INPUT
                return Update(mode_changed=True)
            return Update()

        if action is None:
            return self._insert_character(event.character)
        return getattr(self, f"_action_{action}")()

    def _clear_or_quit(self) -> Update:
        state = self._state
        now = self._clock()
        if state.last_clear_press is not None and now - state.last_clear_press < DOUBLE_PRESS_WINDOW:
            logger.info("Quit requested")
            return Update(quit=True)
        state.input_buffer = ""
        state.last_clear_press = now
        return Update(input_changed=True)

    def _insert_character(self, character: str | None) -> Update:
        if not character or not character.isprintable():
            return Update()
        self._state.input_buffer += character
        return Update(input_changed=True)

    def _action_help(self) -> Update:
        self._state.mode = UIMode.HELP
        return Update(mode_changed=True)

    def _action_send(self) -> Update:
        state = self._state
        text = state.input_buffer.strip()
        if not text:
            return Update()
        state.input_buffer = ""
        echo = UserText(content=text)
        state.append(echo)
        state.pending_echoes.append(echo)
        state.waiting_for_agent = True
        state.follow_output = True
        return Update(
            commands=[SendMessage(task_id=state.task.id, text=text, echo_key=echo.key)],
            feed_changed=True,
            header_changed=True,
            input_changed=True,
        )

    def _action_newline(self) -> Update:
        self._state.input_buffer += "\n"
        return Update(input_changed=True)

    def _action_delete_back(self) -> Update:
        state = self._state
        if not state.input_buffer:
            return Update()
        state.input_buffer = state.input_buffer[:-1]
        return Update(input_changed=True)

    def _action_switch_agent(self) -> Update:
        state = self._state
        agents = state.agents
        if len(agents) <= 1:
            return Update()
        current = next(
            (i for i, agent in enumerate(agents) if agent.id == state.active_agent.id),
            None,
        )
        next_agent = agents[0] if current is None else agents[(current + 1) % len(agents)]
        state.active_agent = next_agent
        state.current_model = state.model_cache.get(next_agent.model_id)
        logger.info("Switched to agent %s (%s)", next_agent.name, next_agent.id)

        commands: list[SessionCommand] = []
        if next_agent.model_id and next_agent.model_id not in state.model_cache:
            commands.append(FetchModel(model_id=next_agent.model_id))
        return Update(commands=commands, header_changed=True)

    def _action_suspend(self) -> Update:
        # Phase changes only once the server reports it
        return Update(commands=[SuspendTask(task_id=self._state.task.id)])

    def _scroll_to(self, offset: int) -> Update:
        state = self._state
        max_offset = self._last_view.max_offset if self._last_view else 0
        state.scroll_offset = min(max(offset, 0), max_offset)
        state.follow_output = state.scroll_offset >= max_offset
        return Update(feed_changed=True)

    def _scroll_by(self, delta: int) -> Update:
        current = self._last_view.offset if self._last_view else 0
        return self._scroll_to(current + delta)

    def _page(self) -> int:
        return max(1, self._state.viewport.feed_height // 2)

    def _action_scroll_page_up(self) -> Update:
        return self._scroll_by(-self._page())

    def _action_scroll_page_down(self) -> Update:
        return self._scroll_by(self._page())

    def _action_scroll_line_up(self) -> Update:
        return self._scroll_by(-1)

    def _action_scroll_line_down(self) -> Update:
        return self._scroll_by(1)

    def _action_scroll_top(self) -> Update:
        return self._scroll_to(0)

    def _action_scroll_bottom(self) -> Update:
        self._state.follow_output = True
        return Update(feed_changed=True)

    # ── geometry ──

    def _apply_geometry(self, width: int, height: int) -> None:
        theme = self._theme
        viewport = self._state.viewport
        viewport.width = width
        viewport.height = height
        viewport.feed_width = max(
            theme.min_feed_width, width - theme.frame_padding_horizontal,
        )
        viewport.feed_height = max(
            theme.min_feed_height,
            height - theme.header_height - theme.input_height - theme.frame_padding_vertical,
        )

    def _on_resize(self, event: Resize) -> Update:
        self._apply_geometry(event.width, event.height)
        return Update(feed_changed=True, header_changed=True)

    # ── server pushes ──

    def _on_server_task_event(self, event: ServerTaskEvent) -> Update:
        if event.task_id != self._state.task.id:
            logger.debug("Ignoring event for task %s", event.task_id)
            return Update()
        return Update(commands=[FetchTask(task_id=event.task_id)])

    def _on_subscription_closed(self, event: SubscriptionClosed) -> Update:
        if event.task_id != self._state.task.id or event.error is None:
            return Update()
        self._state.waiting_for_agent = False
        return self._append_error(event.error, header_changed=True)

    # ── command outcomes ──

    def _on_outcome(self, outcome: CommandOutcome) -> Update:
        if outcome.cancelled:
            return Update()
        handler = self._outcome_handlers.get(type(outcome.command))
        if handler is None:
            logger.debug("Ignoring outcome for %s", outcome.command.command_type)
            return Update()
        return handler(outcome)

    def _append_error(self, error: UserFacingError, **flags: bool) -> Update:
        self._state.append(error.to_entry())
        self._state.follow_output = True
        return Update(feed_changed=True, **flags)

    def _is_current_task(self, task_id: str) -> bool:
        if task_id == self._state.task.id:
            return True
        logger.debug("Discarding stale outcome for task %s", task_id)
        return False

    def _on_send_outcome(self, outcome: CommandOutcome) -> Update:
        command = outcome.command
        if not self._is_current_task(command.task_id):
            return Update()
        if outcome.ok:
            return Update()
        state = self._state
        state.waiting_for_agent = False
        state.pending_echoes = [e for e in state.pending_echoes if e.key != command.echo_key]
        return self._append_error(outcome.error, header_changed=True)

    def _on_suspend_outcome(self, outcome: CommandOutcome) -> Update:
        if not self._is_current_task(outcome.command.task_id) or outcome.ok:
            return Update()
        return self._append_error(outcome.error)

    def _on_fetch_task_outcome(self, outcome: CommandOutcome) -> Update:
        if not self._is_current_task(outcome.command.task_id):
            return Update()
        if not outcome.ok:
            return self._append_error(outcome.error)
        snapshot: TaskSnapshot = outcome.result
        if snapshot.task.id != self._state.task.id:
            logger.debug("Discarding snapshot for task %s", snapshot.task.id)
            return Update()
        return self._reconcile(snapshot)

    def _on_fetch_model_outcome(self, outcome: CommandOutcome) -> Update:
        if not outcome.ok:
            return self._append_error(outcome.error)
        state = self._state
        model_id = outcome.command.model_id
        info: ModelInfo = outcome.result
        state.model_cache[model_id] = info
        if state.active_agent.model_id != model_id:
            logger.debug("Model %s no longer active, cached only", model_id)
            return Update()
        state.current_model = info
        return Update(header_changed=True)

    def _on_list_agents_outcome(self, outcome: CommandOutcome) -> Update:
        if not outcome.ok:
            return self._append_error(outcome.error)
        self._state.agents = list(outcome.result)
        return Update(header_changed=True)

    # ── reconciliation ──

    def _claim_echo(self, entry: UserText) -> bool:
        """Bind a server user message to a matching local echo."""
        state = self._state
        for index, echo in enumerate(state.pending_echoes):
            if echo.content == entry.content:
                del state.pending_echoes[index]
                state.adopt_key(entry.key)
                return True
        return False

    def _reconcile(self, snapshot: TaskSnapshot) -> Update:
        state = self._state
        state.task = snapshot.task
        appended = 0
        answered = False
        for message in snapshot.messages:
            for entry in message.entries:
                if state.has_key(entry.key):
                    continue
                if isinstance(entry, UserText) and self._claim_echo(entry):
                    continue
                state.append(entry)
                appended += 1
                # Agent output only answers the prompt once every echo is bound.
                if isinstance(entry, AGENT_ENTRY_TYPES) and not state.pending_echoes:
                    answered = True
        if answered:
            state.waiting_for_agent = False
        if appended:
            logger.debug("Appended %d entries from task %s", appended, state.task.id)
        return Update(feed_changed=appended > 0, header_changed=True)

"""Tests for agentdeck.tui.controller: the session state machine."""

from rich.text import Text

from agentdeck.adapters.commands import (
    CommandOutcome,
    FetchModel,
    FetchTask,
    KeyPress,
    ListAgents,
    Resize,
    SendMessage,
    ServerTaskEvent,
    SubscriptionClosed,
    SuspendTask,
    TaskSnapshot,
)
from agentdeck.shared.models.conversation import (
    AssistantText,
    ErrorEntry,
    ReadFileInput,
    ToolCall,
    UserText,
)
from agentdeck.shared.models.session import UIMode
from agentdeck.shared.models.task import (
    Agent,
    Message,
    MessageRole,
    ModelInfo,
    Task,
    TaskPhase,
    TaskUsage,
)
from agentdeck.shared.services.error_translator import ErrorCategory, UserFacingError
from agentdeck.tui.controller import DOUBLE_PRESS_WINDOW, SessionController


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def plain_markdown(text, width, code_theme):
    return Text(text)


TASK = Task(id="task-1", workspace="/srv/project", agent_id="a1")
CODER = Agent(id="a1", name="coder", model_id="m1")
REVIEWER = Agent(id="a2", name="reviewer", model_id="m2")
PLANNER = Agent(id="a3", name="planner", model_id="m1")
FAILURE = UserFacingError(ErrorCategory.GENERIC, "boom")


def make_controller(clock=None, **kwargs):
    return SessionController(
        TASK, CODER, clock=clock or FakeClock(), markdown=plain_markdown, **kwargs,
    )


def press(controller, key, character=None):
    return controller.handle(KeyPress(key=key, character=character))


def type_text(controller, text):
    for ch in text:
        press(controller, ch, ch)


def user_message(msg_id, text, task_id="task-1"):
    return Message(
        id=msg_id, task_id=task_id, role=MessageRole.USER,
        entries=(UserText(text, key=f"{msg_id}/0"),),
    )


def agent_message(msg_id, text, task_id="task-1"):
    return Message(
        id=msg_id, task_id=task_id, role=MessageRole.ASSISTANT,
        entries=(AssistantText(text, key=f"{msg_id}/0"),),
    )


def snapshot_outcome(*messages, task=TASK):
    return CommandOutcome(
        command=FetchTask(task_id="task-1"),
        result=TaskSnapshot(task=task, messages=tuple(messages)),
    )


class TestStart:
    def test_initial_commands(self):
        update = make_controller().start()
        assert update.commands == [
            ListAgents(), FetchModel(model_id="m1"), FetchTask(task_id="task-1"),
        ]

    def test_no_model_fetch_without_model_id(self):
        controller = SessionController(TASK, Agent(id="x", name="x"), markdown=plain_markdown)
        assert controller.start().commands == [ListAgents(), FetchTask(task_id="task-1")]

    def test_title_uses_workspace(self):
        assert make_controller().title == "agentdeck (/srv/project)"


class TestInput:
    def test_typing_appends_characters(self):
        controller = make_controller()
        type_text(controller, "hi")
        assert controller.state.input_buffer == "hi"

    def test_non_printable_ignored(self):
        controller = make_controller()
        update = press(controller, "ctrl+x", None)
        assert controller.state.input_buffer == ""
        assert not update.input_changed

    def test_newline_and_backspace(self):
        controller = make_controller()
        type_text(controller, "ab")
        press(controller, "ctrl+j")
        type_text(controller, "c")
        assert controller.state.input_buffer == "ab\nc"
        press(controller, "backspace")
        press(controller, "backspace")
        assert controller.state.input_buffer == "ab"

    def test_send_appends_echo_and_issues_command(self):
        controller = make_controller()
        type_text(controller, "  hello  ")
        update = press(controller, "enter")
        state = controller.state
        [command] = update.commands
        assert isinstance(command, SendMessage)
        assert (command.task_id, command.text) == ("task-1", "hello")
        assert command.echo_key == state.pending_echoes[0].key
        assert state.input_buffer == ""
        assert state.waiting_for_agent
        assert [e.content for e in state.conversation] == ["hello"]
        assert len(state.pending_echoes) == 1

    def test_send_whitespace_is_noop(self):
        controller = make_controller()
        type_text(controller, "   ")
        update = press(controller, "enter")
        assert update.commands == []
        assert controller.state.conversation == ()
        assert not controller.state.waiting_for_agent

    def test_suspend_issues_command_without_phase_change(self):
        controller = make_controller()
        update = press(controller, "escape")
        assert update.commands == [SuspendTask(task_id="task-1")]
        assert controller.state.task.phase is TaskPhase.AWAITING


class TestClearOrQuit:
    def test_first_press_clears_input(self):
        controller = make_controller()
        type_text(controller, "draft")
        update = press(controller, "ctrl+c")
        assert controller.state.input_buffer == ""
        assert not update.quit

    def test_double_press_within_window_quits(self):
        clock = FakeClock()
        controller = make_controller(clock)
        press(controller, "ctrl+c")
        clock.now += DOUBLE_PRESS_WINDOW - 0.1
        assert press(controller, "ctrl+c").quit

    def test_second_press_after_window_only_clears(self):
        clock = FakeClock()
        controller = make_controller(clock)
        press(controller, "ctrl+c")
        clock.now += DOUBLE_PRESS_WINDOW + 0.1
        assert not press(controller, "ctrl+c").quit
        clock.now += 0.2
        assert press(controller, "ctrl+c").quit

    def test_presses_two_seconds_apart_clear_both_times(self):
        clock = FakeClock()
        controller = make_controller(clock)
        type_text(controller, "one")
        press(controller, "ctrl+c")
        clock.now += 2.0
        controller.state.input_buffer = "two"
        update = press(controller, "ctrl+c")
        assert not update.quit
        assert controller.state.input_buffer == ""

    def test_other_key_resets_window(self):
        clock = FakeClock()
        controller = make_controller(clock)
        press(controller, "ctrl+c")
        press(controller, "a", "a")
        clock.now += 0.1
        assert not press(controller, "ctrl+c").quit

    def test_works_in_help_mode(self):
        controller = make_controller()
        press(controller, "f1")
        press(controller, "ctrl+c")
        assert press(controller, "ctrl+c").quit


class TestHelpMode:
    def test_toggle(self):
        controller = make_controller()
        update = press(controller, "f1")
        assert update.mode_changed
        assert controller.state.mode is UIMode.HELP
        press(controller, "f1")
        assert controller.state.mode is UIMode.INPUT

    def test_escape_closes_without_suspending(self):
        controller = make_controller()
        press(controller, "f1")
        update = press(controller, "escape")
        assert controller.state.mode is UIMode.INPUT
        assert update.commands == []

    def test_other_keys_ignored(self):
        controller = make_controller()
        press(controller, "f1")
        press(controller, "a", "a")
        update = press(controller, "enter")
        assert controller.state.input_buffer == ""
        assert update.commands == []
        assert controller.state.mode is UIMode.HELP


class TestAgentSwitching:
    def with_roster(self, *agents):
        controller = make_controller()
        controller.handle(CommandOutcome(command=ListAgents(), result=tuple(agents)))
        return controller

    def test_single_agent_noop(self):
        controller = self.with_roster(CODER)
        update = press(controller, "tab")
        assert update.commands == []
        assert controller.state.active_agent == CODER

    def test_cycles_and_fetches_uncached_model(self):
        controller = self.with_roster(CODER, REVIEWER, PLANNER)
        update = press(controller, "tab")
        assert controller.state.active_agent == REVIEWER
        assert update.commands == [FetchModel(model_id="m2")]
        assert controller.state.current_model is None

    def test_cached_model_used_immediately(self):
        controller = self.with_roster(CODER, REVIEWER, PLANNER)
        model = ModelInfo("m1", "Model One", 1000)
        controller.handle(CommandOutcome(command=FetchModel(model_id="m1"), result=model))
        press(controller, "tab")
        update = press(controller, "tab")
        assert controller.state.active_agent == PLANNER
        assert update.commands == []
        assert controller.state.current_model == model

    def test_wraps_around(self):
        controller = self.with_roster(CODER, REVIEWER)
        press(controller, "tab")
        press(controller, "tab")
        assert controller.state.active_agent == CODER

    def test_unknown_active_agent_falls_back_to_first(self):
        controller = self.with_roster(REVIEWER, PLANNER)
        press(controller, "tab")
        assert controller.state.active_agent == REVIEWER

    def test_late_model_result_is_cached_but_not_shown(self):
        controller = self.with_roster(CODER, REVIEWER)
        press(controller, "tab")
        model = ModelInfo("m1", "Model One", 1000)
        controller.handle(CommandOutcome(command=FetchModel(model_id="m1"), result=model))
        assert controller.state.model_cache["m1"] == model
        assert controller.state.current_model is None


class TestReconciliation:
    def test_history_appended_in_order(self):
        controller = make_controller()
        controller.handle(snapshot_outcome(user_message("u1", "hi"), agent_message("a1", "hello")))
        assert [e.content for e in controller.state.conversation] == ["hi", "hello"]

    def test_repeated_snapshot_is_idempotent(self):
        controller = make_controller()
        messages = (user_message("u1", "hi"), agent_message("a1", "hello"))
        controller.handle(snapshot_outcome(*messages))
        update = controller.handle(snapshot_outcome(*messages))
        assert len(controller.state.conversation) == 2
        assert not update.feed_changed

    def test_echo_bound_to_server_message(self):
        controller = make_controller()
        type_text(controller, "hi")
        press(controller, "enter")
        controller.handle(snapshot_outcome(user_message("u1", "hi")))
        state = controller.state
        assert [e.content for e in state.conversation] == ["hi"]
        assert state.pending_echoes == []
        # Still waiting: no agent output yet
        assert state.waiting_for_agent

    def test_agent_output_clears_waiting(self):
        controller = make_controller()
        type_text(controller, "hi")
        press(controller, "enter")
        controller.handle(snapshot_outcome(user_message("u1", "hi"), agent_message("a1", "yo")))
        assert not controller.state.waiting_for_agent
        assert [e.content for e in controller.state.conversation] == ["hi", "yo"]

    def test_history_before_echo_keeps_waiting(self):
        controller = make_controller()
        controller.start()
        type_text(controller, "hi")
        press(controller, "enter")
        controller.handle(snapshot_outcome(user_message("u0", "old"), agent_message("a0", "older reply")))
        state = controller.state
        assert state.waiting_for_agent
        assert len(state.pending_echoes) == 1

        controller.handle(snapshot_outcome(
            user_message("u0", "old"), agent_message("a0", "older reply"),
            user_message("u1", "hi"), agent_message("a1", "yo"),
        ))
        assert not state.waiting_for_agent
        assert [e.content for e in state.conversation] == ["hi", "old", "older reply", "yo"]

    def test_prefix_preserved_when_new_entries_arrive(self):
        controller = make_controller()
        controller.handle(snapshot_outcome(user_message("u1", "one")))
        before = controller.state.conversation
        tool = Message(
            id="a1", task_id="task-1", role=MessageRole.ASSISTANT,
            entries=(ToolCall(id="c1", input=ReadFileInput(path="x"), key="a1/0"),),
        )
        controller.handle(snapshot_outcome(user_message("u1", "one"), tool))
        after = controller.state.conversation
        assert after[: len(before)] == before
        assert len(after) == 2

    def test_task_replaced(self):
        controller = make_controller()
        running = Task(id="task-1", phase=TaskPhase.RUNNING, usage=TaskUsage(input_tokens=5))
        controller.handle(snapshot_outcome(task=running))
        assert controller.state.task.phase is TaskPhase.RUNNING
        header = controller.header()
        assert header.busy
        assert header.status == "Thinking"

    def test_stale_snapshot_discarded(self):
        controller = make_controller()
        outcome = CommandOutcome(
            command=FetchTask(task_id="other"),
            result=TaskSnapshot(task=Task(id="other"), messages=(user_message("x", "nope", "other"),)),
        )
        update = controller.handle(outcome)
        assert controller.state.conversation == ()
        assert not update.feed_changed

    def test_fetch_failure_appends_error(self):
        controller = make_controller()
        controller.handle(CommandOutcome(command=FetchTask(task_id="task-1"), error=FAILURE))
        entry = controller.state.conversation[-1]
        assert isinstance(entry, ErrorEntry)
        assert entry.message == "boom"


class TestOutcomes:
    def test_send_failure_appends_error_and_stops_waiting(self):
        controller = make_controller()
        type_text(controller, "hi")
        [command] = press(controller, "enter").commands
        update = controller.handle(CommandOutcome(command=command, error=FAILURE))
        state = controller.state
        assert not state.waiting_for_agent
        assert state.pending_echoes == []
        assert isinstance(state.conversation[-1], ErrorEntry)
        assert update.feed_changed

    def test_failed_repeat_keeps_echo_of_delivered_message(self):
        controller = make_controller()
        type_text(controller, "yes")
        press(controller, "enter")
        type_text(controller, "yes")
        [second] = press(controller, "enter").commands
        controller.handle(CommandOutcome(command=second, error=FAILURE))
        assert len(controller.state.pending_echoes) == 1

        controller.handle(snapshot_outcome(user_message("u1", "yes"), agent_message("a1", "ok")))
        contents = [getattr(e, "content", None) for e in controller.state.conversation]
        assert contents.count("yes") == 2
        assert contents[-1] == "ok"

    def test_stale_send_failure_ignored(self):
        controller = make_controller()
        controller.handle(CommandOutcome(
            command=SendMessage(task_id="other", text="hi"), error=FAILURE,
        ))
        assert controller.state.conversation == ()

    def test_cancelled_outcome_ignored(self):
        controller = make_controller()
        update = controller.handle(CommandOutcome(
            command=FetchTask(task_id="task-1"), cancelled=True,
        ))
        assert controller.state.conversation == ()
        assert update.commands == []

    def test_suspend_failure_appends_error(self):
        controller = make_controller()
        controller.handle(CommandOutcome(command=SuspendTask(task_id="task-1"), error=FAILURE))
        assert isinstance(controller.state.conversation[-1], ErrorEntry)

    def test_model_result_updates_header(self):
        controller = make_controller()
        controller.handle(CommandOutcome(
            command=FetchModel(model_id="m1"), result=ModelInfo("m1", "claude-sonnet-long", 200),
        ))
        header = controller.header()
        assert header.model_name == "claude-sonne..."
        assert header.agent_name == "coder"


class TestServerEvents:
    def test_task_event_triggers_fetch(self):
        update = make_controller().handle(ServerTaskEvent(task_id="task-1"))
        assert update.commands == [FetchTask(task_id="task-1")]

    def test_event_for_other_task_ignored(self):
        assert make_controller().handle(ServerTaskEvent(task_id="other")).commands == []

    def test_subscription_error_reported(self):
        controller = make_controller()
        controller.state.waiting_for_agent = True
        controller.handle(SubscriptionClosed(task_id="task-1", error=FAILURE))
        assert not controller.state.waiting_for_agent
        assert isinstance(controller.state.conversation[-1], ErrorEntry)

    def test_clean_subscription_end_silent(self):
        controller = make_controller()
        controller.handle(SubscriptionClosed(task_id="task-1"))
        assert controller.state.conversation == ()


class TestGeometryAndScrolling:
    def fill(self, controller, n=30):
        messages = [user_message(f"u{i}", f"line {i}") for i in range(n)]
        controller.handle(snapshot_outcome(*messages))

    def test_resize_recomputes_feed_size(self):
        controller = make_controller()
        controller.handle(Resize(width=120, height=40))
        viewport = controller.state.viewport
        assert viewport.feed_width == 116
        assert viewport.feed_height == 40 - 1 - 6 - 2

    def test_tiny_terminal_uses_minimums(self):
        controller = make_controller()
        controller.handle(Resize(width=10, height=5))
        assert controller.state.viewport.feed_width == 20
        assert controller.state.viewport.feed_height == 5

    def test_follow_output_shows_bottom(self):
        controller = make_controller()
        self.fill(controller)
        view = controller.render_feed()
        assert view.at_bottom
        assert view.lines[-1].plain == "> line 29"

    def test_scroll_up_stops_following(self):
        controller = make_controller()
        self.fill(controller)
        bottom = controller.render_feed().offset
        press(controller, "pageup")
        view = controller.render_feed()
        assert view.offset == bottom - controller.state.viewport.feed_height // 2
        assert not controller.state.follow_output

    def test_scroll_top_and_bottom(self):
        controller = make_controller()
        self.fill(controller)
        controller.render_feed()
        press(controller, "ctrl+home")
        assert controller.render_feed().offset == 0
        press(controller, "ctrl+end")
        assert controller.render_feed().at_bottom
        assert controller.state.follow_output

    def test_scroll_clamped(self):
        controller = make_controller()
        self.fill(controller, 2)
        controller.render_feed()
        press(controller, "shift+up")
        assert controller.render_feed().offset == 0

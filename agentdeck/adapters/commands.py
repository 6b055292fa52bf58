"""Commands the session controller issues and events it consumes.

Commands are requests for asynchronous work against the task service.
Each one resolves to exactly one :class:`CommandOutcome` that is fed back
into the session's event stream.  Every command carries the identity it
was issued for so its outcome can be checked against current state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from agentdeck.shared.models.task import Message, Task
from agentdeck.shared.services.error_translator import UserFacingError


@dataclass(frozen=True)
class SessionCommand:
    """Base outbound command."""
    command_type: str = ""


@dataclass(frozen=True)
class SendMessage(SessionCommand):
    command_type: str = "send_message"
    task_id: str = ""
    text: str = ""
    # Key of the local echo shown for this message.
    echo_key: str = ""


@dataclass(frozen=True)
class SuspendTask(SessionCommand):
    command_type: str = "suspend_task"
    task_id: str = ""


@dataclass(frozen=True)
class FetchTask(SessionCommand):
    command_type: str = "fetch_task"
    task_id: str = ""


@dataclass(frozen=True)
class FetchModel(SessionCommand):
    command_type: str = "fetch_model"
    model_id: str = ""


@dataclass(frozen=True)
class ListAgents(SessionCommand):
    command_type: str = "list_agents"


Command = Union[SendMessage, SuspendTask, FetchTask, FetchModel, ListAgents]


@dataclass(frozen=True)
class TaskSnapshot:
    """Result of ``FetchTask``: the task and its full message history."""
    task: Task
    messages: tuple[Message, ...] = ()


@dataclass(frozen=True)
class SessionEvent:
    """Base inbound event."""
    event_type: str = ""


@dataclass(frozen=True)
class KeyPress(SessionEvent):
    event_type: str = "key_press"
    key: str = ""
    character: str | None = None


@dataclass(frozen=True)
class Resize(SessionEvent):
    event_type: str = "resize"
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class ServerTaskEvent(SessionEvent):
    event_type: str = "server_task_event"
    task_id: str = ""


@dataclass(frozen=True)
class CommandOutcome(SessionEvent):
    """Completion of a command.

    Exactly one of ``result`` (success), ``error`` (failure) or
    ``cancelled`` describes how the command ended.  Successful
    ``SendMessage`` and ``SuspendTask`` outcomes have no result.
    """
    event_type: str = "command_outcome"
    command: SessionCommand = field(default_factory=SessionCommand)
    result: Any = None
    error: UserFacingError | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


@dataclass(frozen=True)
class SubscriptionClosed(SessionEvent):
    """The server push stream for a task ended."""
    event_type: str = "subscription_closed"
    task_id: str = ""
    error: UserFacingError | None = None


Event = Union[KeyPress, Resize, ServerTaskEvent, CommandOutcome, SubscriptionClosed]

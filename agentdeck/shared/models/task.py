"""Task, agent and model metadata as reported by the task service."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from agentdeck.shared.models.conversation import ConversationEntry


class TaskPhase(Enum):
    UNSPECIFIED = "unspecified"
    AWAITING = "awaiting"
    RUNNING = "running"
    SUSPENDED = "suspended"


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TaskUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0
    cost: float = 0.0
    tool_uses: int = 0

    @property
    def total_tokens(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_write_tokens
            + self.cache_read_tokens
        )


@dataclass(frozen=True)
class Task:
    id: str
    workspace: str = ""
    phase: TaskPhase = TaskPhase.AWAITING
    usage: TaskUsage = field(default_factory=TaskUsage)
    agent_id: str = ""
    description: str = ""
    message_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Agent:
    id: str
    name: str
    model_id: str = ""
    description: str = ""


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    context_window: int = 0


@dataclass(frozen=True)
class Message:
    """A stored message; ``entries`` are its decoded content parts."""

    id: str
    task_id: str
    role: MessageRole
    entries: tuple[ConversationEntry, ...] = ()
    created_at: datetime | None = None

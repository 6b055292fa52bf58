"""Mutable state of one running task session."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from agentdeck.shared.models.conversation import ConversationEntry, UserText
from agentdeck.shared.models.task import Agent, ModelInfo, Task


class UIMode(Enum):
    INPUT = "input"
    HELP = "help"


@dataclass
class Viewport:
    width: int = 80
    height: int = 24
    feed_width: int = 78
    feed_height: int = 18


@dataclass
class SessionState:
    """Everything the session controller knows.

    Only the controller mutates this.  The conversation is append-only:
    entries are added through :meth:`append` and never replaced,
    reordered or removed.
    """

    task: Task
    active_agent: Agent
    agents: list[Agent] = field(default_factory=list)
    model_cache: dict[str, ModelInfo] = field(default_factory=dict)
    current_model: ModelInfo | None = None
    mode: UIMode = UIMode.INPUT
    waiting_for_agent: bool = False
    viewport: Viewport = field(default_factory=Viewport)
    input_buffer: str = ""
    last_clear_press: float | None = None
    scroll_offset: int = 0
    follow_output: bool = True
    # Local echoes of sent messages not yet confirmed by the server.
    pending_echoes: list[UserText] = field(default_factory=list)
    _entries: list[ConversationEntry] = field(default_factory=list, repr=False)
    _keys: set[str] = field(default_factory=set, repr=False)

    @property
    def conversation(self) -> tuple[ConversationEntry, ...]:
        return tuple(self._entries)

    def append(self, entry: ConversationEntry) -> None:
        self._entries.append(entry)
        self._keys.add(entry.key)

    def has_key(self, key: str) -> bool:
        return key in self._keys

    def adopt_key(self, key: str) -> None:
        """Mark a server key as already shown (bound to a local echo)."""
        self._keys.add(key)

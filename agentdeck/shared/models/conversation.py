"""Conversation entries shown in the message feed.

A conversation is an append-only sequence of entries.  Each entry is one
of ``UserText``, ``AssistantText``, ``ToolCall``, ``ToolResult`` or
``ErrorEntry``.  Tool calls and results carry a typed payload per tool
kind; the payload classes below mirror the backend's tool schemas.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Union


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _gen_key() -> str:
    return f"local/{uuid.uuid4().hex[:8]}"


class ToolKind(Enum):
    CREATE_FILE = "create_file"
    EDIT_FILE = "edit_file"
    EXECUTE_COMMAND = "execute_command"
    FIND_FILE = "find_file"
    GREP = "grep"
    HANDOFF = "handoff"
    ASK_USER = "ask_user"
    LIST_FILES = "list_files"
    READ_FILE = "read_file"
    SUBMIT_REPORT = "submit_report"
    CODE_INTERPRETER = "code_interpreter"


# ── tool inputs ──


@dataclass(frozen=True)
class CreateFileInput:
    kind: ClassVar[ToolKind] = ToolKind.CREATE_FILE
    path: str
    content: str = ""


@dataclass(frozen=True)
class DiffPair:
    old: str
    new: str


@dataclass(frozen=True)
class EditFileInput:
    kind: ClassVar[ToolKind] = ToolKind.EDIT_FILE
    path: str
    diffs: tuple[DiffPair, ...] = ()


@dataclass(frozen=True)
class ExecuteCommandInput:
    kind: ClassVar[ToolKind] = ToolKind.EXECUTE_COMMAND
    command: str


@dataclass(frozen=True)
class FindFileInput:
    kind: ClassVar[ToolKind] = ToolKind.FIND_FILE
    pattern: str
    path: str = ""
    exclude_pattern: str = ""
    max_results: int = 0


@dataclass(frozen=True)
class GrepInput:
    kind: ClassVar[ToolKind] = ToolKind.GREP
    query: str
    path: str = ""
    include_pattern: str = ""
    exclude_pattern: str = ""
    case_sensitive: bool = False
    max_results: int = 0


@dataclass(frozen=True)
class HandoffInput:
    kind: ClassVar[ToolKind] = ToolKind.HANDOFF
    requested_agent: str
    handover_message: str = ""


@dataclass(frozen=True)
class AskUserInput:
    kind: ClassVar[ToolKind] = ToolKind.ASK_USER
    question: str
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class ListFilesInput:
    kind: ClassVar[ToolKind] = ToolKind.LIST_FILES
    path: str
    recursive: bool = False


@dataclass(frozen=True)
class ReadFileInput:
    kind: ClassVar[ToolKind] = ToolKind.READ_FILE
    path: str


@dataclass(frozen=True)
class SubmitReportInput:
    kind: ClassVar[ToolKind] = ToolKind.SUBMIT_REPORT
    summary: str
    completed: bool = False
    deliverables: tuple[str, ...] = ()
    next_steps: str = ""


@dataclass(frozen=True)
class CodeInterpreterInput:
    kind: ClassVar[ToolKind] = ToolKind.CODE_INTERPRETER
    code: str


ToolInput = Union[
    CreateFileInput,
    EditFileInput,
    ExecuteCommandInput,
    FindFileInput,
    GrepInput,
    HandoffInput,
    AskUserInput,
    ListFilesInput,
    ReadFileInput,
    SubmitReportInput,
    CodeInterpreterInput,
]


# ── tool outputs ──


@dataclass(frozen=True)
class CreateFileOutput:
    kind: ClassVar[ToolKind] = ToolKind.CREATE_FILE
    overwritten: bool = False


@dataclass(frozen=True)
class EditFileOutput:
    kind: ClassVar[ToolKind] = ToolKind.EDIT_FILE
    path: str = ""
    patch: str = ""
    lines_added: int = 0
    lines_removed: int = 0


@dataclass(frozen=True)
class ExecuteCommandOutput:
    kind: ClassVar[ToolKind] = ToolKind.EXECUTE_COMMAND
    command: str = ""
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass(frozen=True)
class FindFileOutput:
    kind: ClassVar[ToolKind] = ToolKind.FIND_FILE
    files: tuple[str, ...] = ()
    total_files: int = 0
    truncated_count: int = 0


@dataclass(frozen=True)
class GrepMatch:
    file_path: str
    line_number: int
    line_content: str = ""


@dataclass(frozen=True)
class GrepOutput:
    kind: ClassVar[ToolKind] = ToolKind.GREP
    matches: tuple[GrepMatch, ...] = ()
    total_matches: int = 0
    searched_files: int = 0


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    type: str = "file"
    size: int = 0


@dataclass(frozen=True)
class ListFilesOutput:
    kind: ClassVar[ToolKind] = ToolKind.LIST_FILES
    path: str = ""
    entries: tuple[DirectoryEntry, ...] = ()


@dataclass(frozen=True)
class ReadFileOutput:
    kind: ClassVar[ToolKind] = ToolKind.READ_FILE
    path: str = ""
    content: str = ""


@dataclass(frozen=True)
class SubmitReportOutput:
    kind: ClassVar[ToolKind] = ToolKind.SUBMIT_REPORT
    summary: str = ""
    completed: bool = False
    deliverables: tuple[str, ...] = ()
    next_steps: str = ""


@dataclass(frozen=True)
class CodeInterpreterOutput:
    kind: ClassVar[ToolKind] = ToolKind.CODE_INTERPRETER
    output: str = ""


ToolOutput = Union[
    CreateFileOutput,
    EditFileOutput,
    ExecuteCommandOutput,
    FindFileOutput,
    GrepOutput,
    ListFilesOutput,
    ReadFileOutput,
    SubmitReportOutput,
    CodeInterpreterOutput,
]


# ── entries ──


@dataclass(frozen=True)
class UserText:
    content: str
    key: str = field(default_factory=_gen_key)
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class AssistantText:
    content: str
    key: str = field(default_factory=_gen_key)
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ToolCall:
    id: str
    input: ToolInput
    key: str = field(default_factory=_gen_key)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def kind(self) -> ToolKind:
        return self.input.kind


@dataclass(frozen=True)
class ToolResult:
    id: str
    output: ToolOutput
    key: str = field(default_factory=_gen_key)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def kind(self) -> ToolKind:
        return self.output.kind


@dataclass(frozen=True)
class ErrorEntry:
    message: str
    hints: tuple[str, ...] = ()
    details: str = ""
    key: str = field(default_factory=_gen_key)
    timestamp: datetime = field(default_factory=_utcnow)


ConversationEntry = Union[UserText, AssistantText, ToolCall, ToolResult, ErrorEntry]

# Entries produced by the agent's side of the conversation.
AGENT_ENTRY_TYPES = (AssistantText, ToolCall, ToolResult)

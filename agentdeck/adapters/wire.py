"""Decode task service JSON payloads into domain models.

Payloads follow the proto3 JSON mapping: camelCase field names, 64-bit
integers as strings, enums by name, and oneofs as a single populated key.
Content parts or tool payloads of an unknown kind are skipped; they are
logged and never raise.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from agentdeck.shared.models.conversation import (
    AskUserInput,
    AssistantText,
    CodeInterpreterInput,
    CodeInterpreterOutput,
    ConversationEntry,
    CreateFileInput,
    CreateFileOutput,
    DiffPair,
    DirectoryEntry,
    EditFileInput,
    EditFileOutput,
    ExecuteCommandInput,
    ExecuteCommandOutput,
    FindFileInput,
    FindFileOutput,
    GrepInput,
    GrepMatch,
    GrepOutput,
    HandoffInput,
    ListFilesInput,
    ListFilesOutput,
    ReadFileInput,
    ReadFileOutput,
    SubmitReportInput,
    SubmitReportOutput,
    ToolCall,
    ToolInput,
    ToolOutput,
    ToolResult,
    UserText,
)
from agentdeck.shared.models.task import (
    Agent,
    Message,
    MessageRole,
    ModelInfo,
    Task,
    TaskPhase,
    TaskUsage,
)

logger = logging.getLogger(__name__)

_PHASES = {
    "TASK_PHASE_AWAITING": TaskPhase.AWAITING,
    "TASK_PHASE_RUNNING": TaskPhase.RUNNING,
    "TASK_PHASE_SUSPENDED": TaskPhase.SUSPENDED,
}

_ROLES = {
    "MESSAGE_ROLE_USER": MessageRole.USER,
    "MESSAGE_ROLE_ASSISTANT": MessageRole.ASSISTANT,
}


# ── scalar helpers ──


def _int(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _strings(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(str(v) for v in value)


def parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None


# ── resources ──


def decode_usage(data: dict[str, Any] | None) -> TaskUsage:
    data = data or {}
    return TaskUsage(
        input_tokens=_int(data.get("inputTokens")),
        output_tokens=_int(data.get("outputTokens")),
        cache_write_tokens=_int(data.get("cacheWriteTokens")),
        cache_read_tokens=_int(data.get("cacheReadTokens")),
        cost=_float(data.get("cost")),
        tool_uses=_int(data.get("toolUses")),
    )


def decode_task(data: dict[str, Any]) -> Task:
    metadata = data.get("metadata") or {}
    spec = data.get("spec") or {}
    status = data.get("status") or {}
    return Task(
        id=_str(metadata.get("id")),
        workspace=_str(spec.get("workspace")),
        phase=_PHASES.get(status.get("phase", ""), TaskPhase.UNSPECIFIED),
        usage=decode_usage(status.get("usage")),
        agent_id=_str(spec.get("agentId")),
        description=_str(spec.get("description")),
        message_count=_int(status.get("messageCount")),
        created_at=parse_timestamp(metadata.get("createdAt")),
        updated_at=parse_timestamp(metadata.get("updatedAt")),
    )


def decode_agent(data: dict[str, Any]) -> Agent:
    metadata = data.get("metadata") or {}
    spec = data.get("spec") or {}
    return Agent(
        id=_str(metadata.get("id")),
        name=_str(spec.get("name")),
        model_id=_str(spec.get("modelId")),
        description=_str(spec.get("description")),
    )


def decode_model(data: dict[str, Any]) -> ModelInfo:
    metadata = data.get("metadata") or {}
    spec = data.get("spec") or {}
    return ModelInfo(
        id=_str(metadata.get("id")),
        name=_str(spec.get("name")),
        context_window=_int(spec.get("contextWindow")),
    )


# ── tool payloads ──

_INPUT_DECODERS: dict[str, Callable[[dict[str, Any]], ToolInput]] = {
    "createFile": lambda d: CreateFileInput(
        path=_str(d.get("path")), content=_str(d.get("content")),
    ),
    "editFile": lambda d: EditFileInput(
        path=_str(d.get("path")),
        diffs=tuple(
            DiffPair(old=_str(p.get("old")), new=_str(p.get("new")))
            for p in d.get("diffs") or ()
        ),
    ),
    "executeCommand": lambda d: ExecuteCommandInput(command=_str(d.get("command"))),
    "findFile": lambda d: FindFileInput(
        pattern=_str(d.get("pattern")),
        path=_str(d.get("path")),
        exclude_pattern=_str(d.get("excludePattern")),
        max_results=_int(d.get("maxResults")),
    ),
    "grep": lambda d: GrepInput(
        query=_str(d.get("query")),
        path=_str(d.get("path")),
        include_pattern=_str(d.get("includePattern")),
        exclude_pattern=_str(d.get("excludePattern")),
        case_sensitive=bool(d.get("caseSensitive")),
        max_results=_int(d.get("maxResults")),
    ),
    "handoff": lambda d: HandoffInput(
        requested_agent=_str(d.get("requestedAgent")),
        handover_message=_str(d.get("handoverMessage")),
    ),
    "askUser": lambda d: AskUserInput(
        question=_str(d.get("question")), options=_strings(d.get("options")),
    ),
    "listFiles": lambda d: ListFilesInput(
        path=_str(d.get("path")), recursive=bool(d.get("recursive")),
    ),
    "readFile": lambda d: ReadFileInput(path=_str(d.get("path"))),
    "submitReport": lambda d: SubmitReportInput(
        summary=_str(d.get("summary")),
        completed=bool(d.get("completed")),
        deliverables=_strings(d.get("deliverables")),
        next_steps=_str(d.get("nextSteps")),
    ),
    "codeInterpreter": lambda d: CodeInterpreterInput(code=_str(d.get("code"))),
}


def _decode_edit_output(d: dict[str, Any]) -> EditFileOutput:
    patch_info = d.get("patchInfo") or {}
    return EditFileOutput(
        path=_str(d.get("path")),
        patch=_str(patch_info.get("patch")),
        lines_added=_int(patch_info.get("linesAdded")),
        lines_removed=_int(patch_info.get("linesRemoved")),
    )


_OUTPUT_DECODERS: dict[str, Callable[[dict[str, Any]], ToolOutput]] = {
    "createFile": lambda d: CreateFileOutput(overwritten=bool(d.get("overwritten"))),
    "editFile": _decode_edit_output,
    "executeCommand": lambda d: ExecuteCommandOutput(
        command=_str(d.get("command")),
        stdout=_str(d.get("stdout")),
        stderr=_str(d.get("stderr")),
        exit_code=_int(d.get("exitCode")),
    ),
    "findFile": lambda d: FindFileOutput(
        files=_strings(d.get("files")),
        total_files=_int(d.get("totalFiles")),
        truncated_count=_int(d.get("truncatedCount")),
    ),
    "grep": lambda d: GrepOutput(
        matches=tuple(
            GrepMatch(
                file_path=_str(m.get("filePath")),
                line_number=_int(m.get("lineNumber")),
                line_content=_str(m.get("lineContent")),
            )
            for m in d.get("matches") or ()
        ),
        total_matches=_int(d.get("totalMatches")),
        searched_files=_int(d.get("searchedFiles")),
    ),
    "listFiles": lambda d: ListFilesOutput(
        path=_str(d.get("path")),
        entries=tuple(
            DirectoryEntry(
                name=_str(e.get("name")),
                type=_str(e.get("type")) or "file",
                size=_int(e.get("size")),
            )
            for e in d.get("entries") or ()
        ),
    ),
    "readFile": lambda d: ReadFileOutput(
        path=_str(d.get("path")), content=_str(d.get("content")),
    ),
    "submitReport": lambda d: SubmitReportOutput(
        summary=_str(d.get("summary")),
        completed=bool(d.get("completed")),
        deliverables=_strings(d.get("deliverables")),
        next_steps=_str(d.get("nextSteps")),
    ),
    "codeInterpreter": lambda d: CodeInterpreterOutput(output=_str(d.get("output"))),
}


def _decode_oneof(
    payload: dict[str, Any],
    decoders: dict[str, Callable[[dict[str, Any]], Any]],
) -> Any | None:
    for name, decoder in decoders.items():
        if name in payload:
            return decoder(payload[name] or {})
    return None


# ── messages ──


def decode_part(
    part: dict[str, Any],
    role: MessageRole,
    key: str,
    timestamp: datetime | None,
) -> ConversationEntry | None:
    """Decode one content part, or return ``None`` for unknown variants."""
    extra = {"key": key}
    if timestamp is not None:
        extra["timestamp"] = timestamp

    if "text" in part:
        content = _str((part["text"] or {}).get("content"))
        if role is MessageRole.USER:
            return UserText(content=content, **extra)
        return AssistantText(content=content, **extra)

    if "toolCall" in part:
        call = part["toolCall"] or {}
        tool_input = _decode_oneof(call, _INPUT_DECODERS)
        if tool_input is None:
            logger.debug("Dropping tool call with unknown kind: %s", sorted(call))
            return None
        return ToolCall(id=_str(call.get("id")), input=tool_input, **extra)

    if "toolResult" in part:
        result = part["toolResult"] or {}
        output = _decode_oneof(result, _OUTPUT_DECODERS)
        if output is None:
            logger.debug("Dropping tool result with unknown kind: %s", sorted(result))
            return None
        return ToolResult(id=_str(result.get("id")), output=output, **extra)

    logger.debug("Dropping message part with unknown kind: %s", sorted(part))
    return None


def decode_message(data: dict[str, Any]) -> Message | None:
    metadata = data.get("metadata") or {}
    spec = data.get("spec") or {}
    role = _ROLES.get(metadata.get("role", ""))
    message_id = _str(metadata.get("id"))
    if role is None:
        logger.debug("Dropping message %s with unknown role %r", message_id, metadata.get("role"))
        return None

    created_at = parse_timestamp(metadata.get("createdAt"))
    entries: list[ConversationEntry] = []
    for index, part in enumerate(spec.get("content") or ()):
        entry = decode_part(part, role, f"{message_id}/{index}", created_at)
        if entry is not None:
            entries.append(entry)
    return Message(
        id=message_id,
        task_id=_str(metadata.get("taskId")),
        role=role,
        entries=tuple(entries),
        created_at=created_at,
    )


def encode_text_content(text: str) -> list[dict[str, Any]]:
    return [{"text": {"content": text}}]

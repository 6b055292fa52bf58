"""Render conversation entries as Rich ``Text`` blocks."""
from __future__ import annotations

from typing import Callable, get_args

from rich.text import Text

from agentdeck.shared.formatters.markdown import render_markdown
from agentdeck.shared.formatters.tool_call import format_tool_call, summarise_tool_result
from agentdeck.shared.models.conversation import (
    AssistantText,
    ConversationEntry,
    ErrorEntry,
    ToolCall,
    ToolResult,
    UserText,
)
from agentdeck.tui.styles import Theme

MarkdownRenderer = Callable[[str, int, str], Text]

_RENDERERS: dict[type, Callable[..., Text]] = {}


def entry_renderer(entry_type: type):
    def decorator(fn: Callable[..., Text]):
        _RENDERERS[entry_type] = fn
        return fn

    return decorator


def render_entry(
    entry: ConversationEntry,
    theme: Theme,
    width: int,
    markdown: MarkdownRenderer = render_markdown,
) -> Text:
    renderer = _RENDERERS.get(type(entry))
    if renderer is None:
        raise TypeError(f"No renderer for conversation entry {type(entry).__name__}")
    return renderer(entry, theme, width, markdown)


def _indent_continuation(block: Text, indent: str) -> Text:
    lines = block.split("\n", allow_blank=True)
    return Text("\n" + indent).join(lines)


@entry_renderer(UserText)
def _render_user(entry: UserText, theme: Theme, width: int, markdown: MarkdownRenderer) -> Text:
    text = Text(theme.user_prompt, style=theme.user_prompt_style)
    text.append_text(
        _indent_continuation(Text(entry.content, style=theme.user_text_style), " " * len(theme.user_prompt))
    )
    return text


@entry_renderer(AssistantText)
def _render_assistant(
    entry: AssistantText, theme: Theme, width: int, markdown: MarkdownRenderer,
) -> Text:
    indent = " " * len(theme.assistant_bullet)
    body = markdown(entry.content, max(width - len(indent), 1), theme.code_theme)
    text = Text(theme.assistant_bullet, style=theme.assistant_bullet_style)
    text.append_text(_indent_continuation(body, indent))
    return text


@entry_renderer(ToolCall)
def _render_tool_call(entry: ToolCall, theme: Theme, width: int, markdown: MarkdownRenderer) -> Text:
    text = Text("  ")
    text.append(theme.tool_bullet, style=theme.tool_bullet_style)
    text.append(format_tool_call(entry.input).text, style=theme.tool_call_style)
    return text


@entry_renderer(ToolResult)
def _render_tool_result(
    entry: ToolResult, theme: Theme, width: int, markdown: MarkdownRenderer,
) -> Text:
    # Results render without reference to their call so orphans need no special case
    text = Text("    ")
    text.append(theme.tool_result_prefix, style=theme.tool_result_style)
    text.append(summarise_tool_result(entry.output), style=theme.tool_result_style)
    return text


@entry_renderer(ErrorEntry)
def _render_error(entry: ErrorEntry, theme: Theme, width: int, markdown: MarkdownRenderer) -> Text:
    text = Text(theme.error_prefix + entry.message, style=theme.error_style)
    for hint in entry.hints:
        text.append(f"\n  - {hint}", style=theme.error_hint_style)
    if entry.details:
        text.append(f"\n  {entry.details}", style=theme.error_hint_style)
    return text


_missing = set(get_args(ConversationEntry)) - set(_RENDERERS)
if _missing:
    raise RuntimeError(f"Unrendered conversation entries: {sorted(t.__name__ for t in _missing)}")

"""Pieces of the session header: agent, model, usage and workspace."""
from __future__ import annotations

import os

from agentdeck.shared.models.task import ModelInfo, TaskUsage

CONTEXT_UNKNOWN = -1


def abbreviate_path(path: str, home: str | None = None) -> str:
    """Replace the user's home directory prefix with ``~``."""
    if home is None:
        home = os.path.expanduser("~")
    home = home.rstrip(os.sep)
    if not home or not path:
        return path
    if path == home:
        return "~"
    if path.startswith(home + os.sep):
        return "~" + path[len(home):]
    return path


def abbreviate_model_name(name: str, limit: int = 12) -> str:
    if len(name) <= limit:
        return name
    return name[:limit] + "..."


def context_usage(usage: TaskUsage | None, model: ModelInfo | None) -> int:
    """Percentage of the model's context window consumed by the task.

    Returns ``CONTEXT_UNKNOWN`` when either side is missing or the window
    size is not positive; otherwise the value is clamped to 100.
    """
    if usage is None or model is None or model.context_window <= 0:
        return CONTEXT_UNKNOWN
    percent = int(usage.total_tokens / model.context_window * 100)
    return min(percent, 100)


def format_usage(usage: TaskUsage, context_percent: int = CONTEXT_UNKNOWN) -> str:
    text = f"Tokens: {usage.input_tokens}↑ {usage.output_tokens}↓"
    if usage.cache_write_tokens > 0 or usage.cache_read_tokens > 0:
        text += f" (Cache: {usage.cache_read_tokens}↑ {usage.cache_write_tokens}↓)"
    if context_percent >= 0:
        text += f" | Context: {context_percent}%"
    text += f" | Cost: ${usage.cost:.2f}"
    return text

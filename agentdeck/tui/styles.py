"""Immutable look-and-feel configuration for the session UI.

A single :class:`Theme` and :class:`KeyBindings` are built at startup and
handed to the controller, the feed renderer and the widgets.  Nothing in
here is mutated after construction.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping


@dataclass(frozen=True)
class Theme:
    # Feed
    user_prompt: str = "> "
    user_prompt_style: str = "bold color(252)"
    user_text_style: str = "color(252)"
    assistant_bullet: str = "• "
    assistant_bullet_style: str = "color(252)"
    tool_bullet: str = "• "
    tool_bullet_style: str = "color(39)"
    tool_call_style: str = "color(39)"
    tool_result_prefix: str = "⎿ "
    tool_result_style: str = "color(241)"
    error_prefix: str = "❌ Error: "
    error_style: str = "bold color(9)"
    error_hint_style: str = "color(241)"
    code_theme: str = "monokai"
    # Header
    header_agent_style: str = "bold color(39)"
    header_model_style: str = "color(252)"
    header_status_style: str = "italic color(241)"
    header_usage_style: str = "color(241)"
    header_separator: str = " • "
    spinner_style: str = "color(39)"
    # Layout
    header_height: int = 1
    input_height: int = 6
    frame_padding_vertical: int = 2
    frame_padding_horizontal: int = 4
    min_feed_height: int = 5
    min_feed_width: int = 20
    model_name_limit: int = 12


DEFAULT_THEME = Theme()


@dataclass(frozen=True)
class KeyBindings:
    """Textual key names bound to each controller action."""

    help: tuple[str, ...] = ("f1",)
    send: tuple[str, ...] = ("enter",)
    newline: tuple[str, ...] = ("alt+enter", "ctrl+j")
    switch_agent: tuple[str, ...] = ("tab",)
    clear_or_quit: tuple[str, ...] = ("ctrl+c",)
    suspend: tuple[str, ...] = ("escape",)
    delete_back: tuple[str, ...] = ("backspace",)
    scroll_page_up: tuple[str, ...] = ("pageup",)
    scroll_page_down: tuple[str, ...] = ("pagedown",)
    scroll_line_up: tuple[str, ...] = ("shift+up",)
    scroll_line_down: tuple[str, ...] = ("shift+down",)
    scroll_top: tuple[str, ...] = ("ctrl+home",)
    scroll_bottom: tuple[str, ...] = ("ctrl+end",)
    _lookup: dict[str, str] = field(
        init=False, repr=False, compare=False, default_factory=dict,
    )

    def __post_init__(self) -> None:
        lookup: dict[str, str] = {}
        for f in fields(self):
            if f.name.startswith("_"):
                continue
            for key in getattr(self, f.name):
                lookup.setdefault(key, f.name)
        object.__setattr__(self, "_lookup", lookup)

    def action_for(self, key: str) -> str | None:
        """Return the action bound to ``key``, if any."""
        return self._lookup.get(key)

    @classmethod
    def action_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if not f.name.startswith("_")]

    def with_overrides(self, overrides: Mapping[str, Any]) -> KeyBindings:
        """Return a copy with actions rebound from a ``keys:`` config map.

        Values may be a single key name or a list of key names.
        """
        known = set(self.action_names())
        changes: dict[str, tuple[str, ...]] = {}
        for action, value in overrides.items():
            if action not in known:
                raise ValueError(f"Unknown key binding action: {action!r}")
            if isinstance(value, str):
                changes[action] = (value,)
            else:
                changes[action] = tuple(str(v) for v in value)
        return replace(self, **changes)


DEFAULT_KEYS = KeyBindings()

"""Markdown to styled terminal text."""
from __future__ import annotations

import io
import re

from rich.console import Console
from rich.markdown import Markdown
from rich.text import Text

_SGR = r"\x1b\[[0-9;]*m"
_LEADING = re.compile(rf"^(?:{_SGR}|\s)+")
_TRAILING = re.compile(rf"(?:{_SGR}|\s)+$")
_SGR_ONLY = re.compile(_SGR)


def _keep_escapes(run: str) -> str:
    return "".join(_SGR_ONLY.findall(run))


def trim_ansi_whitespace(rendered: str) -> str:
    """Strip whitespace at both ends, even when mixed with SGR sequences.

    Escape sequences inside the stripped runs are kept so that styles
    opened before the first visible character still apply.
    """
    rendered = _LEADING.sub(lambda m: _keep_escapes(m.group(0)), rendered, count=1)
    return _TRAILING.sub(lambda m: _keep_escapes(m.group(0)), rendered, count=1)


def render_markdown(text: str, width: int, code_theme: str = "monokai") -> Text:
    """Render ``text`` as Markdown at ``width`` columns."""
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        width=max(width, 1),
        force_terminal=True,
        color_system="256",
        legacy_windows=False,
    )
    console.print(Markdown(text, code_theme=code_theme))
    return Text.from_ansi(trim_ansi_whitespace(buffer.getvalue()))

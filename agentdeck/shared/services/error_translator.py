"""Translate low-level failures into user-facing errors.

Structured information (Connect error codes, ``OSError.errno``,
cancellation) is consulted first.  Only when none is available does the
translator fall back to matching on the error text.
"""
from __future__ import annotations

import asyncio
import errno
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from agentdeck.errors import RpcError
from agentdeck.shared.models.conversation import ErrorEntry

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"
    ADDRESS_IN_USE = "address_in_use"
    PERMISSION_DENIED = "permission_denied"
    OPERATION_NOT_PERMITTED = "operation_not_permitted"
    CANCELLED = "cancelled"
    GENERIC = "generic"


@dataclass(frozen=True)
class UserFacingError:
    category: ErrorCategory
    message: str
    hints: tuple[str, ...] = ()
    details: str = ""

    def to_entry(self) -> ErrorEntry:
        return ErrorEntry(message=self.message, hints=self.hints, details=self.details)

    def render(self) -> str:
        """Plain multi-line form used outside the session UI."""
        lines = [self.message]
        if self.hints:
            lines.append("")
            lines.append("Troubleshooting steps:")
            lines.extend(f"  {i}. {hint}" for i, hint in enumerate(self.hints, 1))
        if self.details:
            lines.append("")
            lines.append("Technical details:")
            lines.append(self.details)
        return "\n".join(lines)


class ErrorReporter(Protocol):
    def capture(self, exc: BaseException) -> None: ...


_TEMPLATES: dict[ErrorCategory, tuple[str, tuple[str, ...]]] = {
    ErrorCategory.UNAVAILABLE: (
        "Agent runtime unavailable. Retrying...",
        (
            "Wait a few seconds for the agent runtime to become available",
            "Try again later",
        ),
    ),
    ErrorCategory.NOT_FOUND: (
        "Required file or directory not found",
        (
            "Verify the path exists and is accessible",
            "Check if the parent directory exists",
        ),
    ),
    ErrorCategory.ADDRESS_IN_USE: (
        "The network address is already in use by another process",
        (
            "Choose a different port number",
            "Stop the process using this port",
        ),
    ),
    ErrorCategory.PERMISSION_DENIED: (
        "Permission denied",
        (
            "Check file permissions and ownership",
            "Verify the path exists and is accessible",
        ),
    ),
    ErrorCategory.OPERATION_NOT_PERMITTED: (
        "Operation not permitted - insufficient privileges",
        (
            "Check if you have the necessary permissions",
            "Try running with appropriate privileges if needed",
        ),
    ),
}

# Other Connect codes describe the remote call, not local files, and stay generic.
_CONNECT_CODES: dict[str, ErrorCategory] = {
    "unavailable": ErrorCategory.UNAVAILABLE,
    "canceled": ErrorCategory.CANCELLED,
}

_ERRNO_CODES: dict[int, ErrorCategory] = {
    errno.ENOENT: ErrorCategory.NOT_FOUND,
    errno.EADDRINUSE: ErrorCategory.ADDRESS_IN_USE,
    errno.EACCES: ErrorCategory.PERMISSION_DENIED,
    errno.EPERM: ErrorCategory.OPERATION_NOT_PERMITTED,
    errno.ECONNREFUSED: ErrorCategory.UNAVAILABLE,
}


def _structured_category(exc: BaseException) -> ErrorCategory | None:
    if isinstance(exc, asyncio.CancelledError):
        return ErrorCategory.CANCELLED
    if isinstance(exc, RpcError):
        return _CONNECT_CODES.get(exc.code, ErrorCategory.GENERIC)
    if isinstance(exc, OSError) and exc.errno is not None:
        return _ERRNO_CODES.get(exc.errno)
    return None


def _textual_category(text: str) -> ErrorCategory:
    lowered = text.lower()
    if lowered.startswith("unavailable"):
        return ErrorCategory.UNAVAILABLE
    if "no such file or directory" in lowered:
        return ErrorCategory.NOT_FOUND
    if "address already in use" in lowered:
        return ErrorCategory.ADDRESS_IN_USE
    if "operation not permitted" in lowered:
        return ErrorCategory.OPERATION_NOT_PERMITTED
    if "permission denied" in lowered:
        return ErrorCategory.PERMISSION_DENIED
    return ErrorCategory.GENERIC


def categorize(exc: BaseException) -> ErrorCategory:
    category = _structured_category(exc)
    if category is not None:
        return category
    # aiohttp wraps socket errors; the OSError underneath still has an errno
    cause = exc.__cause__ or getattr(exc, "os_error", None)
    if isinstance(cause, BaseException):
        category = _structured_category(cause)
        if category is not None:
            return category
    return _textual_category(str(exc))


def translate_error(
    exc: BaseException | None,
    reporter: ErrorReporter | None = None,
) -> UserFacingError | None:
    """Map ``exc`` to a :class:`UserFacingError`.

    Returns ``None`` for no error and for cancellation, which is never
    shown to the user.  Every error is handed to ``reporter`` first; a
    failing reporter does not affect the translation.
    """
    if exc is None:
        return None
    if reporter is not None:
        try:
            reporter.capture(exc)
        except Exception:
            logger.debug("Error reporter failed", exc_info=True)

    category = categorize(exc)
    if category is ErrorCategory.CANCELLED:
        return None

    details = str(exc) or type(exc).__name__
    if category is ErrorCategory.GENERIC:
        return UserFacingError(category=category, message=details)
    message, hints = _TEMPLATES[category]
    return UserFacingError(
        category=category,
        message=message,
        hints=hints,
        details="" if category is ErrorCategory.UNAVAILABLE else details,
    )

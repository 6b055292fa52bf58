"""Exception hierarchy for the agentdeck client.

Async command failures never escape the runtime as exceptions; they are
translated into user-facing errors.  These classes describe what can go
wrong underneath.
"""
from __future__ import annotations


class AgentDeckError(Exception):
    """Base exception for all agentdeck errors."""


class RpcError(AgentDeckError):
    """The task service answered with a Connect error payload."""
    def __init__(self, code: str, message: str, http_status: int | None = None):
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(f"{code}: {message}" if message else code)


class ProtocolError(AgentDeckError):
    """A response could not be decoded as a Connect frame or JSON body."""
    def __init__(self, procedure: str, reason: str):
        self.procedure = procedure
        self.reason = reason
        super().__init__(f"Malformed response from {procedure}: {reason}")


class ConfigError(AgentDeckError):
    """The configuration file or an environment override is invalid."""
    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")


class TaskResolutionError(AgentDeckError):
    """A task id given on the command line could not be resolved."""
    def __init__(self, task_ref: str, reason: str):
        self.task_ref = task_ref
        self.reason = reason
        super().__init__(f"Cannot resolve task {task_ref!r}: {reason}")


class AgentResolutionError(AgentDeckError):
    """No agent matches the name or id given on the command line."""
    def __init__(self, agent_ref: str, available: list[str]):
        self.agent_ref = agent_ref
        self.available = available
        names = ", ".join(available) if available else "none"
        super().__init__(f"Agent {agent_ref!r} not found (available: {names})")

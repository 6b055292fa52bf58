"""Adapters package - Bridge between the session controller and the task service.

This package contains the RPC client, the wire codec, the event bus and
the command runtime that connect the TUI to the remote agent service.
"""
from __future__ import annotations

__all__ = [
    "CommandRuntime",
    "EventBus",
    "RpcClient",
]

from agentdeck.adapters.event_bus import EventBus
from agentdeck.adapters.rpc import RpcClient
from agentdeck.adapters.runtime import CommandRuntime

"""Serialized event stream feeding the session controller.

Key presses, resizes, server pushes and command outcomes all arrive here
and are consumed one at a time by a single consumer.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from agentdeck.adapters.commands import SessionEvent

logger = logging.getLogger(__name__)


class EventBus:
    """Async queue between event producers and the controller loop."""

    def __init__(self, maxsize: int = 5000) -> None:
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue(
            maxsize=maxsize
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: SessionEvent) -> None:
        """Enqueue from synchronous code running on the loop thread."""
        if self._closed:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(
                "EventBus queue full, dropping: %s (queue size: %d)",
                event.event_type,
                self._queue.qsize(),
            )

    async def consume(self) -> AsyncIterator[SessionEvent]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                event = await asyncio.wait_for(
                    self._queue.get(), timeout=0.5
                )
            except asyncio.TimeoutError:
                continue
            yield event

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True

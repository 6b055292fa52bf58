"""Executes controller commands against the task service.

Each command runs as its own asyncio task and always ends by publishing
exactly one :class:`CommandOutcome` on the event bus.  Failures are
reported and translated here, once, so the controller only ever sees
user-facing errors.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from agentdeck.adapters.commands import (
    CommandOutcome,
    FetchModel,
    FetchTask,
    ListAgents,
    SendMessage,
    ServerTaskEvent,
    SessionCommand,
    SubscriptionClosed,
    SuspendTask,
    TaskSnapshot,
)
from agentdeck.adapters.event_bus import EventBus
from agentdeck.adapters.rpc import RpcClient
from agentdeck.shared.services.error_translator import translate_error

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class CommandRuntime:
    """Runs commands and the task subscription, feeding results to the bus."""

    def __init__(self, client: RpcClient, bus: EventBus, reporter=None) -> None:
        self._client = client
        self._bus = bus
        self._reporter = reporter
        self._tasks: set[asyncio.Task] = set()
        self._handlers: dict[type, Callable[[Any], Awaitable[Any]]] = {
            SendMessage: self._send_message,
            SuspendTask: self._suspend_task,
            FetchTask: self._fetch_task,
            FetchModel: self._fetch_model,
            ListAgents: self._list_agents,
        }

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def execute(self, command: SessionCommand) -> asyncio.Task:
        """Start ``command`` in the background and return immediately."""
        return self._track(
            asyncio.create_task(self._run(command), name=f"command:{command.command_type}")
        )

    def start_subscription(self, task_id: str) -> asyncio.Task:
        return self._track(
            asyncio.create_task(self._pump_subscription(task_id), name=f"subscribe:{task_id}")
        )

    async def shutdown(self) -> None:
        """Cancel every in-flight command and the subscription."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── execution ──

    async def _run(self, command: SessionCommand) -> None:
        handler = self._handlers.get(type(command))
        started = time.monotonic()
        if handler is None:
            logger.error("No handler for command %s", command.command_type)
            self._bus.publish(CommandOutcome(command=command, cancelled=True))
            return
        try:
            result = await handler(command)
        except asyncio.CancelledError as exc:
            translate_error(exc, self._reporter)
            self._bus.publish(CommandOutcome(command=command, cancelled=True))
            raise
        except Exception as exc:
            logger.warning("Command %s failed: %s", command.command_type, exc)
            error = translate_error(exc, self._reporter)
            if error is None:
                outcome = CommandOutcome(command=command, cancelled=True)
            else:
                outcome = CommandOutcome(command=command, error=error)
        else:
            outcome = CommandOutcome(command=command, result=result)
        self._record_latency(command, time.monotonic() - started, outcome.ok)
        self._bus.publish(outcome)

    def _record_latency(self, command: SessionCommand, elapsed: float, ok: bool) -> None:
        if self._reporter is None:
            return
        try:
            self._reporter.record_metric(
                "command_latency_seconds",
                elapsed,
                {"command": command.command_type, "ok": ok},
            )
        except Exception:
            logger.debug("Failed to record command latency", exc_info=True)

    async def _pump_subscription(self, task_id: str) -> None:
        logger.info("Subscribing to task %s", task_id)
        try:
            async for item in self._client.subscribe(task_id):
                self._bus.publish(ServerTaskEvent(task_id=item.task_id))
        except asyncio.CancelledError:
            logger.debug("Subscription to task %s cancelled", task_id)
            raise
        except Exception as exc:
            logger.warning("Subscription to task %s failed: %s", task_id, exc)
            self._bus.publish(
                SubscriptionClosed(task_id=task_id, error=translate_error(exc, self._reporter))
            )
        else:
            logger.info("Subscription to task %s ended", task_id)
            self._bus.publish(SubscriptionClosed(task_id=task_id))

    # ── handlers ──

    async def _send_message(self, command: SendMessage) -> None:
        await self._client.create_message(command.task_id, command.text)

    async def _suspend_task(self, command: SuspendTask) -> None:
        await self._client.suspend_task(command.task_id)

    async def _fetch_task(self, command: FetchTask) -> TaskSnapshot:
        task, messages = await asyncio.gather(
            self._client.get_task(command.task_id),
            self._client.list_messages(command.task_id),
        )
        ordered = sorted(messages, key=lambda m: m.created_at or _EPOCH)
        return TaskSnapshot(task=task, messages=tuple(ordered))

    async def _fetch_model(self, command: FetchModel):
        return await self._client.get_model(command.model_id)

    async def _list_agents(self, command: ListAgents):
        return tuple(await self._client.list_agents())

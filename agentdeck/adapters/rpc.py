"""Connect-protocol client for the agent task service.

Speaks the Connect JSON protocol over HTTP/1.1 with aiohttp, either on a
Unix domain socket or a TCP address.  Unary procedures are plain JSON
POSTs; ``TaskService/Subscribe`` is a server stream of enveloped JSON
frames.  Transport failures (``aiohttp.ClientError``, ``OSError``,
timeouts) propagate unchanged; Connect error payloads raise
:class:`~agentdeck.errors.RpcError`.
"""
from __future__ import annotations

import asyncio
import json
import logging
import struct
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import aiohttp

from agentdeck.adapters.wire import (
    decode_agent,
    decode_message,
    decode_model,
    decode_task,
    encode_text_content,
)
from agentdeck.errors import ProtocolError, RpcError
from agentdeck.shared.models.task import Agent, Message, ModelInfo, Task

logger = logging.getLogger(__name__)

_PROTOCOL_HEADERS = {"Connect-Protocol-Version": "1"}
_ENVELOPE = struct.Struct(">BI")
_FLAG_COMPRESSED = 0x01
_FLAG_END_STREAM = 0x02

# Connect's mapping for error responses without a JSON body
_HTTP_STATUS_CODES = {
    400: "internal",
    401: "unauthenticated",
    403: "permission_denied",
    404: "unimplemented",
    429: "unavailable",
    502: "unavailable",
    503: "unavailable",
    504: "unavailable",
}


@dataclass(frozen=True)
class Endpoint:
    """Where the task service listens: ``unix`` socket path or ``tcp`` URL."""

    kind: str
    address: str

    @classmethod
    def parse(cls, value: str) -> Endpoint:
        """Parse ``unix:/path/to.sock`` or ``http(s)://host:port``."""
        if value.startswith("unix:"):
            return cls(kind="unix", address=value[len("unix:"):])
        if value.startswith(("http://", "https://")):
            return cls(kind="tcp", address=value)
        raise ValueError(
            f"Unsupported endpoint {value!r} (expected unix:/path or http://host:port)"
        )

    def __str__(self) -> str:
        return f"unix:{self.address}" if self.kind == "unix" else self.address


@dataclass(frozen=True)
class SubscribeItem:
    """One item pushed on a task subscription."""

    task_id: str
    message_id: str | None = None


def _error_from_response(status: int, body: bytes) -> RpcError:
    try:
        payload = json.loads(body) if body else {}
    except ValueError:
        payload = {}
    if isinstance(payload, dict) and payload.get("code"):
        return RpcError(
            str(payload["code"]), str(payload.get("message", "")), http_status=status,
        )
    code = _HTTP_STATUS_CODES.get(status, "unknown")
    return RpcError(code, body.decode("utf-8", "replace").strip(), http_status=status)


def encode_envelope(payload: dict[str, Any], flags: int = 0) -> bytes:
    data = json.dumps(payload).encode("utf-8")
    return _ENVELOPE.pack(flags, len(data)) + data


class RpcClient:
    """Async client for the task, message, model and agent services."""

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        package: str = "agentdeck.v1",
        timeout_seconds: float = 60.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._package = package
        self._timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def base_url(self) -> str:
        if self._endpoint.kind == "unix":
            return "http://localhost/api"
        return self._endpoint.address.rstrip("/") + "/api"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = None
            if self._endpoint.kind == "unix":
                connector = aiohttp.UnixConnector(path=self._endpoint.address)
            self._session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> RpcClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _url(self, procedure: str) -> str:
        service, method = procedure.split("/", 1)
        return f"{self.base_url}/{self._package}.{service}/{method}"

    # ── transport ──

    async def _unary(self, procedure: str, payload: dict[str, Any]) -> dict[str, Any]:
        session = self._get_session()
        logger.debug("RPC %s %s", procedure, payload)
        async with session.post(
            self._url(procedure),
            json=payload,
            headers=_PROTOCOL_HEADERS,
            timeout=aiohttp.ClientTimeout(total=self._timeout_seconds),
        ) as resp:
            body = await resp.read()
            if resp.status != 200:
                error = _error_from_response(resp.status, body)
                logger.debug("RPC %s failed: %s", procedure, error)
                raise error
        if not body:
            return {}
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise ProtocolError(procedure, str(exc)) from exc
        if not isinstance(data, dict):
            raise ProtocolError(procedure, "response is not a JSON object")
        return data

    async def _server_stream(
        self, procedure: str, payload: dict[str, Any],
    ) -> AsyncIterator[dict[str, Any]]:
        session = self._get_session()
        logger.debug("RPC stream %s %s", procedure, payload)
        # Subscriptions stay idle for long periods; only bound the connect phase
        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=self._timeout_seconds, sock_read=None,
        )
        async with session.post(
            self._url(procedure),
            data=encode_envelope(payload),
            headers={**_PROTOCOL_HEADERS, "Content-Type": "application/connect+json"},
            timeout=timeout,
        ) as resp:
            if resp.status != 200:
                raise _error_from_response(resp.status, await resp.read())
            while True:
                try:
                    header = await resp.content.readexactly(_ENVELOPE.size)
                except asyncio.IncompleteReadError as exc:
                    if exc.partial:
                        raise ProtocolError(procedure, "truncated frame header") from exc
                    return
                flags, length = _ENVELOPE.unpack(header)
                try:
                    data = await resp.content.readexactly(length)
                except asyncio.IncompleteReadError as exc:
                    raise ProtocolError(procedure, "truncated frame body") from exc
                if flags & _FLAG_COMPRESSED:
                    raise ProtocolError(procedure, "compressed frames are not supported")
                try:
                    message = json.loads(data) if data else {}
                except ValueError as exc:
                    raise ProtocolError(procedure, str(exc)) from exc
                if flags & _FLAG_END_STREAM:
                    error = message.get("error")
                    if error:
                        raise RpcError(
                            str(error.get("code", "unknown")), str(error.get("message", "")),
                        )
                    return
                yield message

    # ── tasks ──

    async def create_task(self, agent_id: str, workspace: str) -> Task:
        data = await self._unary(
            "TaskService/CreateTask",
            {"agentId": agent_id, "projectDirectory": workspace},
        )
        return decode_task(data.get("task") or {})

    async def get_task(self, task_id: str) -> Task:
        data = await self._unary("TaskService/GetTask", {"id": task_id})
        return decode_task(data.get("task") or {})

    async def list_tasks(
        self,
        *,
        limit: int | None = None,
        has_messages: bool | None = None,
        id_prefix: str | None = None,
        sort_field: str = "SORT_FIELD_CREATED_AT",
    ) -> list[Task]:
        filters: dict[str, Any] = {}
        if has_messages is not None:
            filters["hasMessages"] = has_messages
        if id_prefix:
            filters["taskIdPrefix"] = id_prefix
        payload: dict[str, Any] = {
            "filter": filters,
            "sortField": sort_field,
            "sortOrder": "SORT_ORDER_DESC",
        }
        if limit is not None:
            payload["pageSize"] = limit
        data = await self._unary("TaskService/ListTasks", payload)
        return [decode_task(item) for item in data.get("tasks") or ()]

    async def suspend_task(self, task_id: str) -> None:
        await self._unary("TaskService/SuspendTask", {"id": task_id})

    async def subscribe(self, task_id: str) -> AsyncIterator[SubscribeItem]:
        """Yield an item for every message or task event pushed by the server."""
        async for frame in self._server_stream("TaskService/Subscribe", {"taskId": task_id}):
            if "message" in frame:
                metadata = (frame["message"] or {}).get("metadata") or {}
                yield SubscribeItem(
                    task_id=str(metadata.get("taskId") or task_id),
                    message_id=metadata.get("id"),
                )
            elif "taskEvent" in frame:
                event = frame["taskEvent"] or {}
                yield SubscribeItem(task_id=str(event.get("taskId") or task_id))
            else:
                logger.debug("Ignoring subscription frame: %s", sorted(frame))

    # ── messages ──

    async def create_message(self, task_id: str, text: str) -> None:
        await self._unary(
            "MessageService/CreateMessage",
            {"taskId": task_id, "content": encode_text_content(text)},
        )

    async def list_messages(self, task_id: str) -> list[Message]:
        data = await self._unary(
            "MessageService/ListMessages", {"filter": {"taskId": task_id}},
        )
        messages = []
        for item in data.get("messages") or ():
            message = decode_message(item)
            if message is not None:
                messages.append(message)
        return messages

    # ── models and agents ──

    async def get_model(self, model_id: str) -> ModelInfo:
        data = await self._unary("ModelService/GetModel", {"id": model_id})
        return decode_model(data.get("model") or {})

    async def list_agents(self) -> list[Agent]:
        data = await self._unary("AgentService/ListAgents", {})
        return [decode_agent(item) for item in data.get("agents") or ()]

    async def get_agent(self, agent_id: str) -> Agent:
        data = await self._unary("AgentService/GetAgent", {"id": agent_id})
        return decode_agent(data.get("agent") or {})

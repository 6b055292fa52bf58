"""Tests for agentdeck.adapters.rpc against an in-process Connect server."""

from __future__ import annotations

import json

import pytest
from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

from agentdeck.adapters.rpc import Endpoint, RpcClient, SubscribeItem, encode_envelope
from agentdeck.errors import ProtocolError, RpcError
from agentdeck.shared.models.task import TaskPhase

PREFIX = "/api/agentdeck.v1."

TASK_JSON = {
    "metadata": {"id": "t1", "createdAt": "2026-03-01T10:00:00Z"},
    "spec": {"workspace": "/srv/p", "agentId": "a1"},
    "status": {"phase": "TASK_PHASE_AWAITING"},
}


class FakeTaskService:
    """Just enough of the Connect JSON protocol to exercise the client."""

    def __init__(self):
        self.requests: list[tuple[str, dict, dict]] = []
        self.stream_frames: list[bytes] = []

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(PREFIX + "TaskService/Subscribe", self.subscribe)
        app.router.add_post(PREFIX + "{service}/{method}", self.unary)
        return app

    async def unary(self, request: web.Request) -> web.Response:
        procedure = f"{request.match_info['service']}/{request.match_info['method']}"
        body = await request.json()
        self.requests.append((procedure, body, dict(request.headers)))
        if procedure == "TaskService/GetTask":
            if body["id"] == "missing":
                return web.json_response(
                    {"code": "not_found", "message": "task missing not found"}, status=404,
                )
            return web.json_response({"task": TASK_JSON})
        if procedure == "TaskService/CreateTask":
            return web.json_response({"task": TASK_JSON})
        if procedure == "TaskService/ListTasks":
            return web.json_response({"tasks": [TASK_JSON, TASK_JSON]})
        if procedure == "MessageService/ListMessages":
            return web.json_response({"messages": [
                {
                    "metadata": {"id": "m1", "taskId": "t1", "role": "MESSAGE_ROLE_USER"},
                    "spec": {"content": [{"text": {"content": "hi"}}]},
                },
                {"metadata": {"id": "m2", "role": "MESSAGE_ROLE_UNKNOWN"}},
            ]})
        if procedure == "AgentService/ListAgents":
            return web.json_response({"agents": [
                {"metadata": {"id": "a1"}, "spec": {"name": "coder", "modelId": "m1"}},
            ]})
        if procedure == "ModelService/GetModel":
            return web.Response(body=b"not json", content_type="application/json")
        if procedure == "TaskService/SuspendTask":
            return web.Response(status=503, text="overloaded")
        return web.json_response({})

    async def subscribe(self, request: web.Request) -> web.StreamResponse:
        raw = await request.read()
        self.requests.append(("TaskService/Subscribe", json.loads(raw[5:]), dict(request.headers)))
        resp = web.StreamResponse(headers={"Content-Type": "application/connect+json"})
        await resp.prepare(request)
        for frame in self.stream_frames:
            await resp.write(frame)
        await resp.write_eof()
        return resp


class TestRpcClient(AioHTTPTestCase):
    async def get_application(self):
        self.service = FakeTaskService()
        return self.service.app()

    async def asyncSetUp(self):
        await super().asyncSetUp()
        base = str(self.server.make_url("")).rstrip("/")
        self.rpc = RpcClient(Endpoint(kind="tcp", address=base), timeout_seconds=5)

    async def asyncTearDown(self):
        await self.rpc.close()
        await super().asyncTearDown()

    async def test_get_task_posts_connect_json(self):
        task = await self.rpc.get_task("t1")
        assert task.id == "t1"
        assert task.phase is TaskPhase.AWAITING
        procedure, body, headers = self.service.requests[-1]
        assert procedure == "TaskService/GetTask"
        assert body == {"id": "t1"}
        assert headers["Connect-Protocol-Version"] == "1"

    async def test_connect_error_payload(self):
        with pytest.raises(RpcError) as info:
            await self.rpc.get_task("missing")
        assert info.value.code == "not_found"
        assert info.value.http_status == 404

    async def test_http_status_without_payload(self):
        with pytest.raises(RpcError) as info:
            await self.rpc.suspend_task("t1")
        assert info.value.code == "unavailable"
        assert "overloaded" in info.value.message

    async def test_malformed_body(self):
        with pytest.raises(ProtocolError):
            await self.rpc.get_model("m1")

    async def test_create_task_payload(self):
        await self.rpc.create_task("a1", "/srv/p")
        _, body, _ = self.service.requests[-1]
        assert body == {"agentId": "a1", "projectDirectory": "/srv/p"}

    async def test_list_tasks_filters(self):
        tasks = await self.rpc.list_tasks(limit=5, has_messages=True, id_prefix="abcdefgh")
        assert len(tasks) == 2
        _, body, _ = self.service.requests[-1]
        assert body["filter"] == {"hasMessages": True, "taskIdPrefix": "abcdefgh"}
        assert body["pageSize"] == 5
        assert body["sortOrder"] == "SORT_ORDER_DESC"

    async def test_list_messages_skips_unknown_roles(self):
        messages = await self.rpc.list_messages("t1")
        assert [m.id for m in messages] == ["m1"]
        assert messages[0].entries[0].content == "hi"

    async def test_create_message(self):
        await self.rpc.create_message("t1", "hello")
        _, body, _ = self.service.requests[-1]
        assert body == {"taskId": "t1", "content": [{"text": {"content": "hello"}}]}

    async def test_list_agents(self):
        agents = await self.rpc.list_agents()
        assert agents[0].name == "coder"

    async def test_subscribe_yields_items_until_end_of_stream(self):
        self.service.stream_frames = [
            encode_envelope({"message": {"metadata": {"id": "m9", "taskId": "t1"}}}),
            encode_envelope({"heartbeat": {}}),
            encode_envelope({"taskEvent": {"taskId": "t1"}}),
            encode_envelope({}, flags=0x02),
        ]
        items = [item async for item in self.rpc.subscribe("t1")]
        assert items == [SubscribeItem("t1", "m9"), SubscribeItem("t1")]
        _, body, _ = self.service.requests[-1]
        assert body == {"taskId": "t1"}

    async def test_subscribe_end_of_stream_error(self):
        self.service.stream_frames = [
            encode_envelope({"error": {"code": "unavailable", "message": "shutting down"}}, flags=0x02),
        ]
        with pytest.raises(RpcError) as info:
            async for _ in self.rpc.subscribe("t1"):
                pass
        assert info.value.code == "unavailable"

    async def test_subscribe_truncated_frame(self):
        self.service.stream_frames = [encode_envelope({"taskEvent": {}})[:8]]
        with pytest.raises(ProtocolError):
            async for _ in self.rpc.subscribe("t1"):
                pass


class TestEndpoint:
    def test_parse_unix(self):
        endpoint = Endpoint.parse("unix:/tmp/agentd.sock")
        assert endpoint == Endpoint("unix", "/tmp/agentd.sock")
        assert str(endpoint) == "unix:/tmp/agentd.sock"
        assert RpcClient(endpoint).base_url == "http://localhost/api"

    def test_parse_http(self):
        endpoint = Endpoint.parse("http://127.0.0.1:7000/")
        assert endpoint.kind == "tcp"
        assert RpcClient(endpoint).base_url == "http://127.0.0.1:7000/api"

    def test_parse_rejects_other_schemes(self):
        with pytest.raises(ValueError):
            Endpoint.parse("ftp://host")

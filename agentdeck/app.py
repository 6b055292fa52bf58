"""Command-line entry point: ``agentdeck new`` and ``agentdeck resume``."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.text import Text

from agentdeck import __version__
from agentdeck.adapters.rpc import Endpoint, RpcClient
from agentdeck.config import AppConfig
from agentdeck.errors import AgentDeckError, AgentResolutionError, TaskResolutionError
from agentdeck.shared.models.task import Agent, Task
from agentdeck.shared.services.error_translator import translate_error
from agentdeck.telemetry import LoggingReporter, TelemetryCollector, TelemetryReporter

logger = logging.getLogger(__name__)

MIN_TASK_PREFIX = 8


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "pid": record.process,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(config: AppConfig) -> Path:
    """Log to a rotating file; the terminal belongs to the UI."""
    log_file = config.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level, logging.INFO))
    root.handlers.clear()
    if config.log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
        )
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    for noisy in ("asyncio", "aiohttp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return log_file


def make_reporter(config: AppConfig):
    if not config.telemetry_enabled:
        return LoggingReporter()
    try:
        return TelemetryReporter(TelemetryCollector(config.telemetry_db_path))
    except Exception:
        logger.warning("Telemetry disabled: cannot open %s", config.telemetry_db_path, exc_info=True)
        return LoggingReporter()


def make_client(config: AppConfig) -> RpcClient:
    return RpcClient(
        config.endpoint,
        package=config.rpc_package,
        timeout_seconds=config.request_timeout_seconds,
    )


# ── resolution ──


def _is_full_task_id(ref: str) -> bool:
    try:
        return str(uuid.UUID(ref)) == ref.lower()
    except ValueError:
        return False


async def resolve_task(client: RpcClient, ref: str) -> Task:
    """Resolve a full task id or an id prefix of at least 8 characters."""
    if _is_full_task_id(ref):
        return await client.get_task(ref)
    if len(ref) < MIN_TASK_PREFIX:
        raise TaskResolutionError(
            ref, f"task id prefix must be at least {MIN_TASK_PREFIX} characters",
        )
    matches = await client.list_tasks(id_prefix=ref)
    if not matches:
        raise TaskResolutionError(ref, "no task with this id prefix")
    if len(matches) > 1:
        raise TaskResolutionError(
            ref, f"prefix matches {len(matches)} tasks, use more characters",
        )
    return matches[0]


async def resolve_agent(client: RpcClient, ref: str | None) -> Agent:
    """Find an agent by id or name; without a reference use the first one."""
    agents = await client.list_agents()
    if not agents:
        raise AgentResolutionError(ref or "<default>", [])
    if not ref:
        return agents[0]
    for agent in agents:
        if agent.id == ref or agent.name.lower() == ref.lower():
            return agent
    raise AgentResolutionError(ref, [a.name for a in agents])


async def _prepare_new(config: AppConfig, agent_ref: str | None, workspace: str) -> tuple[Task, Agent]:
    async with make_client(config) as client:
        agent = await resolve_agent(client, agent_ref or config.default_agent)
        task = await client.create_task(agent.id, workspace)
    logger.info("Created task %s with agent %s in %s", task.id, agent.name, workspace)
    return task, agent


async def _recent_tasks(config: AppConfig, limit: int) -> list[Task]:
    async with make_client(config) as client:
        return await client.list_tasks(limit=limit, has_messages=True)


async def _prepare_resume(config: AppConfig, task_ref: str | None, last: bool) -> tuple[Task, Agent]:
    async with make_client(config) as client:
        if task_ref:
            task = await resolve_task(client, task_ref)
        elif last:
            tasks = await client.list_tasks(
                limit=1, has_messages=True, sort_field="SORT_FIELD_UPDATED_AT",
            )
            if not tasks:
                raise TaskResolutionError("--last", "no tasks with messages")
            task = tasks[0]
        else:
            raise TaskResolutionError("<none>", "no task given")
        agent = await client.get_agent(task.agent_id)
    logger.info("Resuming task %s with agent %s", task.id, agent.name)
    return task, agent


# ── commands ──


def _run_session(config: AppConfig, task: Task, agent: Agent) -> None:
    from agentdeck.tui.app import SessionApp

    app = SessionApp(
        task,
        agent,
        make_client(config),
        reporter=make_reporter(config),
        keys=config.keys,
    )
    app.run()


def cmd_new(config: AppConfig, args: argparse.Namespace) -> None:
    workspace = os.path.abspath(os.path.expanduser(args.workspace or os.getcwd()))
    if not os.path.isdir(workspace):
        raise AgentDeckError(f"Workspace {workspace} is not a directory")
    task, agent = asyncio.run(_prepare_new(config, args.agent, workspace))
    _run_session(config, task, agent)


def cmd_resume(config: AppConfig, args: argparse.Namespace) -> None:
    task_ref = args.task_id
    if not task_ref and not args.last:
        from agentdeck.tui.screens.task_picker import TaskPickerApp

        limit = args.limit or config.recent_task_limit
        tasks = asyncio.run(_recent_tasks(config, limit))
        picked = TaskPickerApp(tasks).run()
        if picked is None:
            print("No task selected.")
            return
        task_ref = picked.id
    task, agent = asyncio.run(_prepare_resume(config, task_ref, args.last))
    _run_session(config, task, agent)


def print_error(console: Console, message: str) -> None:
    console.print(Text.assemble(("Error: ", "bold red"), message))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentdeck",
        description="agentdeck - chat with remote agents from the terminal",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", metavar="PATH",
        help="Path to config.yaml (default: ~/.agentdeck/config.yaml)",
    )
    parser.add_argument(
        "--endpoint", metavar="URL",
        help="Task service endpoint, unix:/path/to.sock or http://host:port",
    )
    parser.add_argument(
        "--log-level", type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level written to the log file",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Start a new task and open a session")
    new.add_argument("--agent", metavar="NAME_OR_ID", help="Agent to start the task with")
    new.add_argument(
        "--workspace", metavar="PATH",
        help="Directory the agent works in (default: current directory)",
    )
    new.set_defaults(handler=cmd_new)

    resume = sub.add_parser("resume", help="Resume an existing task")
    resume.add_argument(
        "task_id", nargs="?",
        help=f"Full task id or a prefix of at least {MIN_TASK_PREFIX} characters",
    )
    resume.add_argument("--last", action="store_true", help="Resume the most recently updated task")
    resume.add_argument(
        "--limit", type=int, default=None,
        help="Number of recent tasks shown in the picker",
    )
    resume.set_defaults(handler=cmd_resume)
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console(stderr=True)

    try:
        config = AppConfig.load(args.config)
        if args.endpoint:
            config.endpoint = Endpoint.parse(args.endpoint)
        if args.log_level:
            config.log_level = args.log_level
    except (AgentDeckError, ValueError) as exc:
        print_error(console, str(exc))
        sys.exit(2)

    log_file = setup_logging(config)
    logger.info(
        "Starting agentdeck %s command=%s endpoint=%s log=%s",
        __version__, args.command, config.endpoint, log_file,
    )
    config.log_summary()

    try:
        args.handler(config, args)
    except KeyboardInterrupt:
        sys.exit(130)
    except (TaskResolutionError, AgentResolutionError) as exc:
        logger.error("%s", exc)
        print_error(console, str(exc))
        sys.exit(1)
    except Exception as exc:
        logger.exception("Command %s failed", args.command)
        error = translate_error(exc)
        if error is None:
            sys.exit(130)
        print_error(console, error.render())
        sys.exit(1)


if __name__ == "__main__":
    main()

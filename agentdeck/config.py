"""agentdeck configuration.

Settings are read from ``~/.agentdeck/config.yaml`` (or the path in
``AGENTDECK_CONFIG``) and then overridden by ``AGENTDECK_*`` environment
variables.  Example::

    endpoint:
      kind: unix                      # or tcp
      address: ~/.agentdeck/agentd.sock
    rpc:
      package: agentdeck.v1
      timeout_seconds: 60
    log:
      level: INFO
      file: ~/.agentdeck/logs/agentdeck.log
      format: text                    # or json
    cmd:
      new:
        agent: coder
      resume:
        recent_task_limit: 10
    telemetry:
      enabled: true
    keys:
      help: f1
      newline: [alt+enter, ctrl+j]
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from agentdeck.adapters.rpc import Endpoint
from agentdeck.errors import ConfigError
from agentdeck.tui.styles import DEFAULT_KEYS, KeyBindings

logger = logging.getLogger(__name__)

HOME_DIR = Path.home() / ".agentdeck"
DEFAULT_CONFIG_PATH = HOME_DIR / "config.yaml"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_LOG_FORMATS = {"text", "json"}
_FALSEY = {"0", "false", "no", "off"}


def _default_endpoint() -> Endpoint:
    return Endpoint(kind="unix", address=str(HOME_DIR / "agentd.sock"))


@dataclass
class AppConfig:
    endpoint: Endpoint = field(default_factory=_default_endpoint)
    rpc_package: str = "agentdeck.v1"
    request_timeout_seconds: float = 60.0
    log_level: str = "INFO"
    log_file: Path = field(default_factory=lambda: HOME_DIR / "logs" / "agentdeck.log")
    log_format: str = "text"
    default_agent: str | None = None
    recent_task_limit: int = 10
    telemetry_enabled: bool = True
    telemetry_db_path: Path = field(default_factory=lambda: HOME_DIR / "telemetry.db")
    keys: KeyBindings = DEFAULT_KEYS
    source: Path | None = None
    env_overrides: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: str | Path | None = None) -> AppConfig:
        """Load from YAML (if present) and apply environment overrides."""
        if path is None:
            path = os.getenv("AGENTDECK_CONFIG") or DEFAULT_CONFIG_PATH
        config_path = Path(path).expanduser()
        raw: dict[str, Any] = {}
        if config_path.exists():
            try:
                raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(str(config_path), f"YAML parse error: {exc}") from exc
            if not isinstance(raw, dict):
                raise ConfigError(str(config_path), "top level must be a mapping")

        config = cls.from_dict(raw, source=config_path if raw else None)
        config.apply_env()
        return config

    @classmethod
    def from_dict(cls, raw: dict[str, Any], source: Path | None = None) -> AppConfig:
        label = str(source) if source else "<config>"
        config = cls(source=source)

        endpoint = _section(raw, "endpoint", label)
        if endpoint:
            kind = str(endpoint.get("kind", "unix"))
            address = endpoint.get("address")
            if kind not in ("unix", "tcp"):
                raise ConfigError(label, f"endpoint.kind must be 'unix' or 'tcp', got {kind!r}")
            if address:
                address = str(address)
                if kind == "unix":
                    address = os.path.expanduser(address)
                config.endpoint = Endpoint(kind=kind, address=address)
            elif kind == "tcp":
                raise ConfigError(label, "endpoint.address is required for tcp endpoints")

        rpc = _section(raw, "rpc", label)
        config.rpc_package = str(rpc.get("package", config.rpc_package))
        config.request_timeout_seconds = _positive_float(
            rpc.get("timeout_seconds", config.request_timeout_seconds),
            "rpc.timeout_seconds", label,
        )

        log = _section(raw, "log", label)
        config.log_level = _log_level(log.get("level", config.log_level), label)
        if log.get("file"):
            config.log_file = Path(str(log["file"])).expanduser()
        log_format = str(log.get("format", config.log_format)).lower()
        if log_format not in _LOG_FORMATS:
            raise ConfigError(label, f"log.format must be one of {sorted(_LOG_FORMATS)}")
        config.log_format = log_format

        cmd = _section(raw, "cmd", label)
        new = _section(cmd, "new", label)
        if new.get("agent"):
            config.default_agent = str(new["agent"])
        resume = _section(cmd, "resume", label)
        if "recent_task_limit" in resume:
            limit = resume["recent_task_limit"]
            if not isinstance(limit, int) or limit <= 0:
                raise ConfigError(label, "cmd.resume.recent_task_limit must be a positive integer")
            config.recent_task_limit = limit

        telemetry = _section(raw, "telemetry", label)
        if "enabled" in telemetry:
            config.telemetry_enabled = _flag(telemetry["enabled"])
        if telemetry.get("db_path"):
            config.telemetry_db_path = Path(str(telemetry["db_path"])).expanduser()

        keys = _section(raw, "keys", label)
        if keys:
            try:
                config.keys = DEFAULT_KEYS.with_overrides(keys)
            except ValueError as exc:
                raise ConfigError(label, str(exc)) from exc
        return config

    def apply_env(self) -> None:
        """Apply ``AGENTDECK_*`` environment overrides in place."""
        self.env_overrides = {
            k: v for k, v in os.environ.items() if k.startswith("AGENTDECK_")
        }
        endpoint = os.getenv("AGENTDECK_ENDPOINT")
        if endpoint:
            try:
                self.endpoint = Endpoint.parse(endpoint)
            except ValueError as exc:
                raise ConfigError("AGENTDECK_ENDPOINT", str(exc)) from exc
        level = os.getenv("AGENTDECK_LOG_LEVEL")
        if level:
            self.log_level = _log_level(level, "AGENTDECK_LOG_LEVEL")
        telemetry = os.getenv("AGENTDECK_TELEMETRY")
        if telemetry:
            self.telemetry_enabled = _flag(telemetry)

    def log_summary(self) -> None:
        """Log where settings came from. Call once logging is configured."""
        if self.source:
            logger.info("Loaded config from %s", self.source)
        else:
            logger.debug("No config file, using defaults")
        if self.env_overrides:
            logger.info(
                "AppConfig: AGENTDECK_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(self.env_overrides.items())),
            )


def _section(raw: dict[str, Any], name: str, label: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(label, f"'{name}' must be a mapping")
    return value


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in _FALSEY


def _positive_float(value: Any, name: str, label: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ConfigError(label, f"{name} must be a number") from None
    if result <= 0:
        raise ConfigError(label, f"{name} must be positive")
    return result


def _log_level(value: Any, label: str) -> str:
    level = str(value).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(label, f"unknown log level {value!r}")
    return level

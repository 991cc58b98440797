"""
Configuration Dataclasses

Type-safe configuration for the agent, loaded once at startup from a
YAML file. The camelCase keys of the legacy config.json are kept, and
since JSON is a subset of YAML an existing config.json loads unchanged.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

DEFAULT_CONFIG_PATH = "config.yaml"

REQUIRED_KEYS = (
    "interval",
    "serverHost",
    "serverPort",
    "minerHost",
    "minerPort",
    "deviceName",
    "serverPassword",
)


@dataclass(frozen=True)
class AgentConfig:
    """Agent configuration"""
    # Poll loop
    interval: int
    miner_host: str
    miner_port: int
    device_name: str

    # Collector
    server_host: str
    server_port: int
    server_password: str

    # Spool and delivery
    spool_dir: str = "./stats"
    query_timeout: float = 10.0
    max_response_bytes: int = 1024 * 1024
    upload_timeout: float = 30.0
    sweep_interval: float = 60.0
    sweep_debounce: float = 0.5
    retry_backoff_base: float = 1.0
    retry_backoff_cap: float = 300.0
    shutdown_grace_period: float = 10.0

    # Health endpoint (None = disabled)
    health_port: int | None = None

    @property
    def collector_url(self) -> str:
        return f"http://{self.server_host}:{self.server_port}"

    @property
    def miner_address(self) -> str:
        return f"{self.miner_host}:{self.miner_port}"


def _as_int(data: dict, key: str, minimum: int = 0) -> int:
    try:
        value = int(data[key])
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {data[key]!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def _as_float(data: dict, key: str, default: float) -> float:
    if data.get(key) is None:
        return default
    try:
        value = float(data[key])
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {data[key]!r}")
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


def _device_name(data: dict) -> str:
    """deviceName becomes part of every spool file name."""
    name = str(data["deviceName"]).strip()
    if not name:
        raise ConfigError("deviceName must not be empty")
    # Dotted names are hidden from the spool listing as temp files
    if name.startswith("."):
        raise ConfigError(f"deviceName must not start with '.', got {name!r}")
    if "/" in name or os.sep in name or (os.altsep and os.altsep in name):
        raise ConfigError(f"deviceName must not contain a path separator, got {name!r}")
    return name


def load_agent_config(data: dict[str, Any]) -> AgentConfig:
    """Build AgentConfig from a dictionary (e.g., parsed config.yaml)"""
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a mapping")

    missing = [key for key in REQUIRED_KEYS if data.get(key) in (None, "")]
    if missing:
        raise ConfigError(f"missing required keys: {', '.join(missing)}")

    password = os.environ.get("RIGSTAT_SERVER_PASSWORD") or str(data["serverPassword"])

    health_port = None
    if data.get("healthPort"):
        health_port = _as_int(data, "healthPort", minimum=1)

    max_response_bytes = 1024 * 1024
    if data.get("maxResponseBytes") is not None:
        max_response_bytes = _as_int(data, "maxResponseBytes", minimum=1)

    return AgentConfig(
        interval=_as_int(data, "interval", minimum=1),
        miner_host=str(data["minerHost"]),
        miner_port=_as_int(data, "minerPort", minimum=1),
        device_name=_device_name(data),
        server_host=str(data["serverHost"]),
        server_port=_as_int(data, "serverPort", minimum=1),
        server_password=password,
        spool_dir=str(data.get("spoolDir") or "./stats"),
        query_timeout=_as_float(data, "queryTimeout", 10.0),
        max_response_bytes=max_response_bytes,
        upload_timeout=_as_float(data, "uploadTimeout", 30.0),
        sweep_interval=_as_float(data, "sweepInterval", 60.0),
        sweep_debounce=_as_float(data, "sweepDebounce", 0.5),
        retry_backoff_base=_as_float(data, "retryBackoffBase", 1.0),
        retry_backoff_cap=_as_float(data, "retryBackoffCap", 300.0),
        shutdown_grace_period=_as_float(data, "shutdownGracePeriod", 10.0),
        health_port=health_port,
    )


def read_config_file(config_path: str | Path = DEFAULT_CONFIG_PATH) -> AgentConfig:
    """
    Load configuration from a YAML (or JSON) file.

    Raises:
        ConfigError: file missing, unparsable or invalid
    """
    path = Path(config_path)
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"configuration file not found: {path}")
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}")

    return load_agent_config(data or {})

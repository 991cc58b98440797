"""
Common Utilities

Shared modules used across all services:
- config.py - Configuration dataclass and loader
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- scheduler.py - Interval scheduler for periodic loops
"""

from .config import (
    AgentConfig,
    DEFAULT_CONFIG_PATH,
    load_agent_config,
    read_config_file,
)
from .exceptions import (
    RigstatError,
    ConfigError,
    TransportError,
    ParseError,
    SpoolError,
    WriteError,
    DeleteError,
    UploadError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    configure_from_env,
)
from .scheduler import ScheduledLoop

__all__ = [
    # Config
    "AgentConfig",
    "DEFAULT_CONFIG_PATH",
    "load_agent_config",
    "read_config_file",
    # Exceptions
    "RigstatError",
    "ConfigError",
    "TransportError",
    "ParseError",
    "SpoolError",
    "WriteError",
    "DeleteError",
    "UploadError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "configure_from_env",
    # Scheduling
    "ScheduledLoop",
]

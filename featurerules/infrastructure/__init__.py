"""featurerules Infrastructure Layer.

Services shared by the engine and the CLI:
- ConfigManager: Hierarchical configuration (defaults, file, env, CLI)
- Logger: Structured logging system
"""

from .config_manager import (
    ConfigError,
    ConfigManager,
    ConfigSource,
    get_config_manager,
    set_global_config,
)
from .logger import Logger, LogLevel, get_logger, set_global_logger

__all__ = [
    # Logger exports
    "Logger",
    "LogLevel",
    "get_logger",
    "set_global_logger",
    # ConfigManager exports
    "ConfigError",
    "ConfigManager",
    "ConfigSource",
    "get_config_manager",
    "set_global_config",
]

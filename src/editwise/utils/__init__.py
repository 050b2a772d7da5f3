"""Utility helpers shared across editwise."""

from .logging import (
    LogTargetHandler,
    attach_log_target,
    detach_log_target,
    get_log_path,
    get_logger,
    setup_logging,
    to_log_level,
)

__all__ = [
    "LogTargetHandler",
    "attach_log_target",
    "detach_log_target",
    "get_log_path",
    "get_logger",
    "setup_logging",
    "to_log_level",
]

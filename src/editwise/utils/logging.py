"""Logging helpers for editwise hosts."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

from ..services.capabilities import LogLevel, LogTarget

__all__ = [
    "LogTargetHandler",
    "attach_log_target",
    "detach_log_target",
    "get_log_path",
    "get_logger",
    "setup_logging",
    "to_log_level",
]

_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_PACKAGE_LOGGER = "editwise"
_CONFIGURED = False
_LOG_PATH: Path | None = None


class LogTargetHandler(logging.Handler):
    """Forwards records to a host :class:`LogTarget`."""

    def __init__(self, target: LogTarget, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.target = target

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self.target.log_it(to_log_level(record.levelno), record.name, message)
        except Exception:
            self.handleError(record)


def to_log_level(levelno: int) -> LogLevel:
    """Map a :mod:`logging` level number onto the host's :class:`LogLevel`."""

    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARNING
    if levelno >= logging.INFO:
        return LogLevel.INFO
    if levelno >= logging.DEBUG:
        return LogLevel.DEBUG
    return LogLevel.TRACE


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    log_target: LogTarget | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path | None:
    """Configure root logging; returns the log file path when one is written.

    A rotating file handler is added only when ``log_dir`` is given or
    ``EDITWISE_LOG_DIR`` is set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force:
        return _LOG_PATH

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    log_path: Path | None = None
    target_dir = _resolve_log_dir(log_dir)
    if target_dir is not None:
        target_dir.mkdir(parents=True, exist_ok=True)
        log_path = target_dir / "editwise.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if log_target is not None:
        target_handler = LogTargetHandler(log_target, level)
        target_handler.setFormatter(logging.Formatter("%(message)s"))
        handlers.append(target_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _tune_external_loggers(level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def attach_log_target(target: LogTarget, level: int = logging.DEBUG) -> LogTargetHandler:
    """Route ``editwise.*`` records to ``target`` without touching the root logger."""

    logger = logging.getLogger(_PACKAGE_LOGGER)
    handler = LogTargetHandler(target, level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > level:
        logger.setLevel(level)
    return handler


def detach_log_target(handler: LogTargetHandler) -> None:
    logging.getLogger(_PACKAGE_LOGGER).removeHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path | None:
    chosen = log_dir or os.environ.get("EDITWISE_LOG_DIR")
    return Path(chosen).expanduser() if chosen else None


def _tune_external_loggers(root_level: int) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

"""loguru setup for claude-sesh.

All diagnostics go to stderr; stdout carries only command output (tables,
exported markdown, lines piped into fzf). The default level is WARNING so a
normal run prints nothing extra. Environment knobs:

- ``CLAUDESESH_LOG_LEVEL``: loguru level name.
- ``CLAUDESESH_LOG_COLOR``: force colour on or off.
- ``CLAUDESESH_LOG_PARSE``: show per-line transcript parse debugging.
"""

from __future__ import annotations

import logging
import os
import sys

from loguru import logger

_LINE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level:<8}</level> | <level>{message}</level>\n"
)
_PARSE_LOGGER_PREFIX = "claudesesh.transcripts"
_QUIET_LEVELS = frozenset({"TRACE", "DEBUG"})


def _env_flag(name: str, default: bool) -> bool:
    """Read an on/off environment variable."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _log_filter(record: dict) -> bool:
    """Drop transcript-parser debug lines unless ``CLAUDESESH_LOG_PARSE`` is set."""
    if not str(record.get("name") or "").startswith(_PARSE_LOGGER_PREFIX):
        return True
    level_name = getattr(record.get("level"), "name", "")
    if level_name not in _QUIET_LEVELS:
        return True
    return _env_flag("CLAUDESESH_LOG_PARSE", default=False)


class _InterceptHandler(logging.Handler):
    """Route stdlib ``logging`` records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str | None = None) -> None:
    """(Re)install the stderr sink and capture stdlib logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or os.getenv("CLAUDESESH_LOG_LEVEL", "WARNING"),
        format=_LINE_FORMAT,
        filter=_log_filter,
        colorize=_env_flag("CLAUDESESH_LOG_COLOR", default=sys.stderr.isatty()),
        backtrace=False,
        diagnose=False,
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0)
    for name in list(logging.root.manager.loggerDict):
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = []
        stdlib_logger.propagate = True


configure_logging()

__all__ = ["logger", "configure_logging"]


if __name__ == "__main__":
    configure_logging(level="INFO")
    logger.info("logging configured at {}", "INFO")

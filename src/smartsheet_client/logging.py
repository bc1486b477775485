"""Logging configuration.

The library logs through loguru under the ``smartsheet_client`` name and is
silent until an application opts in with :func:`setup_logging` (or calls
``logger.enable("smartsheet_client")`` on its own sinks).
"""

import json
import logging
import sys
import traceback
from typing import Any

from loguru import logger

PACKAGE = "smartsheet_client"

# Keys that must never reach a log sink.
_REDACTED_KEYS = {"access_token", "refresh_token", "client_secret", "authorization"}


def _json_serializer(record: dict[str, Any]) -> str:
    """Serialize a log record to a single JSON line.

    Fields from ``extra`` are included at the top level, except those that
    look like credentials.
    """
    log_entry: dict[str, Any] = {
        "severity": record["level"].name,
        "message": record["message"],
        "time": record["time"].isoformat(),
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    for key, value in record["extra"].items():
        if key.lower() in _REDACTED_KEYS:
            continue
        try:
            json.dumps(value)
            log_entry[key] = value
        except (TypeError, ValueError):
            log_entry[key] = str(value)

    if record["exception"] is not None:
        exc_type, exc_value, exc_tb = record["exception"]
        if exc_type is not None:
            log_entry["exception"] = {
                "type": exc_type.__name__,
                "value": str(exc_value),
                "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

    return json.dumps(log_entry)


def _json_sink(message: Any) -> None:
    sys.stderr.write(_json_serializer(message.record) + "\n")
    sys.stderr.flush()


def setup_logging(json_logs: bool = False, log_level: str = "INFO") -> None:
    """Enable library logging and configure loguru sinks.

    Args:
        json_logs: Emit one JSON object per line instead of colored text.
        log_level: Minimum level to log.
    """
    logger.remove()
    logger.enable(PACKAGE)

    if json_logs:
        logger.add(
            _json_sink,
            level=log_level,
            format="{message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=log_level,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>"
            ),
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    _intercept_standard_logging(log_level)


def _intercept_standard_logging(log_level: str) -> None:
    """Route httpx and httpcore stdlib logging through loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                level: str | int = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

            frame, depth = logging.currentframe(), 2
            while frame and frame.f_code.co_filename == logging.__file__:
                frame = frame.f_back
                depth += 1

            logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

    for name in ["httpx", "httpcore"]:
        logging.getLogger(name).setLevel(log_level)
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False

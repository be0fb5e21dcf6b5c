"""Logging configuration for the Ordering domain.

Standard library handlers carry the output; structlog renders it. Production
and staging emit JSON lines, every other environment a plain console view.
Workflow entry points bind the running command into the context, so every
line logged while a command is processed carries its name.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

# File name -> minimum level written to it
_LOG_FILES = {
    "orderflow.log": None,
    "orderflow_error.log": logging.ERROR,
}


def _environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def _rotating_handlers(log_dir: Path, level: str) -> list[logging.Handler]:
    log_dir.mkdir(parents=True, exist_ok=True)
    handlers = []
    for filename, file_level in _LOG_FILES.items():
        handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / filename,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        handler.setLevel(file_level or level)
        handlers.append(handler)
    return handlers


def configure_logging() -> None:
    """Configure stdlib handlers and the structlog pipeline.

    ``LOG_LEVEL`` overrides the per-environment default. Rotating files are
    written only when ``LOG_DIR`` is set.
    """
    env = _environment()
    level = os.getenv("LOG_LEVEL", _LEVELS_BY_ENV.get(env, "INFO"))

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_dir = os.getenv("LOG_DIR")
    if log_dir:
        handlers += _rotating_handlers(Path(log_dir), level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = handlers
    logging.getLogger("protean").setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if env in ("production", "staging")
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    """Bind ``kwargs`` into every line logged until ``clear_context``."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

"""Logging configuration using structlog."""

import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

from takesync.config.settings import Settings


class OperationTimer:
    """Context manager that logs the start, end and duration of an operation."""

    def __init__(self, operation_name: str, logger: Any = None, **context: Any) -> None:
        """Initialize timer.

        Args:
            operation_name: Name of the operation being timed.
            logger: Optional logger to use.
            **context: Additional context to log.
        """
        self.operation_name = operation_name
        self.logger = logger or structlog.get_logger()
        self.context = context
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "OperationTimer":
        self.start_time = time.monotonic()
        self.logger.info(
            f"Starting {self.operation_name}",
            operation=self.operation_name,
            **self.context,
        )
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.monotonic()
        duration = round(self.end_time - self.start_time, 3)

        if exc_type is not None:
            self.logger.error(
                f"Failed {self.operation_name}",
                operation=self.operation_name,
                duration_seconds=duration,
                error=str(exc_val),
                **self.context,
            )
        else:
            self.logger.info(
                f"Completed {self.operation_name}",
                operation=self.operation_name,
                duration_seconds=duration,
                **self.context,
            )

    @property
    def duration(self) -> float:
        """Get duration in seconds."""
        if self.end_time:
            return self.end_time - self.start_time
        return time.monotonic() - self.start_time


def configure_logging(settings: Settings) -> None:
    """Configure structlog and standard logging.

    Args:
        settings: Application settings containing logging configuration.
    """
    log_level = getattr(logging, settings.log_level)

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    handlers.append(console_handler)

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_path,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    # Keep httpx request lines out of INFO output
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if sys.stdout.isatty():
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name (typically __name__).

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)

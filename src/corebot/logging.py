"""Structured logging framework based on structlog."""

from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import structlog

from corebot.config import LoggingSettings

# .NET / Serilog level names accepted in configuration
_LEVEL_ALIASES: dict[str, str] = {
    "TRACE": "DEBUG",
    "VERBOSE": "DEBUG",
    "INFORMATION": "INFO",
    "WARN": "WARNING",
    "FATAL": "CRITICAL",
}

# Library loggers that flood the output at INFO
_NOISY_LOGGERS = ("discord.http", "discord.gateway")


def resolve_level(name: str) -> int:
    """Translate a configured level name into a stdlib logging level."""
    key = name.strip().upper()
    key = _LEVEL_ALIASES.get(key, key)
    return getattr(logging, key, logging.INFO)


def setup_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structured logging for the application.

    Console output is colored (or JSON when ``json_format`` is set). File
    output is always JSON lines, rotated at midnight and kept for
    ``retained_file_count_limit`` days.

    Args:
        settings: Logging section of the bot configuration.
    """
    settings = settings or LoggingSettings()
    level = resolve_level(settings.minimum_level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    if settings.enable_console_logging:
        if settings.json_format:
            console_renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        else:
            console_renderer = structlog.dev.ConsoleRenderer(colors=True)
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared_processors,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    console_renderer,
                ],
            )
        )
        handlers.append(console)

    if settings.enable_file_logging:
        log_file = Path(settings.log_file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=str(log_file),
            when="midnight",
            interval=1,
            backupCount=settings.retained_file_count_limit,
            encoding="utf-8",
            utc=True,
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared_processors,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def shutdown_logging() -> None:
    """Flush and close every root handler."""
    logging.shutdown()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name, typically the module name.

    Returns:
        A bound structlog logger instance.
    """
    return structlog.get_logger(name)

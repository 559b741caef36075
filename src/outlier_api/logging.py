from __future__ import annotations

import logging
import sys

import structlog

from outlier_api.config import LogFormat, LoggingConfig

ROOT_LOGGER_NAME = "outlier"


def _build_handler(config: LoggingConfig) -> logging.Handler:
    path = config.output_path
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, encoding="utf-8")
    stream = sys.stderr if config.output == "stderr" else sys.stdout
    return logging.StreamHandler(stream)


def _renderer(log_format: LogFormat) -> structlog.typing.Processor:
    if log_format is LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    if log_format is LogFormat.PRETTY:
        return structlog.dev.ConsoleRenderer(
            colors=False, exception_formatter=structlog.dev.plain_traceback
        )
    return structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"])


def configure_logging(config: LoggingConfig) -> logging.Handler:
    """Route structlog through a single stdlib handler and return that handler.

    The caller owns the handler and must pass it to ``teardown_logging``.
    """
    handler = _build_handler(config)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers = [handler]
    root.setLevel(config.level.as_logging_level())
    root.propagate = False

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if config.format is not LogFormat.PRETTY:
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(config.format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return handler


def teardown_logging(handler: logging.Handler) -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    handler.flush()
    if handler in root.handlers:
        root.removeHandler(handler)
    handler.close()
    structlog.reset_defaults()


def get_logger(name: str = "outlier.api"):
    return structlog.get_logger(name)

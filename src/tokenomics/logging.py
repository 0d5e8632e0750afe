"""Structured logging for the indexer.

Every line carries the service name and version. Lines emitted while an
indexing run is in flight also carry the target date and force flag, bound
through structlog.contextvars by bind_run_context().
"""

import logging

import structlog

from tokenomics import __version__

SERVICE_NAME = "tokenomics-indexer"

# Libraries whose INFO output is per-request noise in run logs
_QUIET_LOGGERS = ("aiohttp", "aiosqlite", "uvicorn.access")


def _add_service(
    logger: object, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: Root level name; unknown names fall back to INFO.
        log_format: "json" for shipped deployment logs, anything else renders
            human-readable console output.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_run_context(index_date: str, force: bool) -> None:
    """Attach the run's target date and force flag to every following log line."""
    structlog.contextvars.bind_contextvars(index_date=index_date, force=force)


def clear_run_context() -> None:
    structlog.contextvars.unbind_contextvars("index_date", "force")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)

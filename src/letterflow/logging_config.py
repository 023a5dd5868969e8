"""Structured logging configuration using structlog."""

import logging
import sys

import structlog

SERVICE_NAME = "letterflow-api"

# Third-party loggers capped at the given level regardless of log_level
_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "botocore": logging.WARNING,
    "boto3": logging.WARNING,
    "httpx": logging.WARNING,
    # pypdf warns about every tolerated syntax quirk in uploaded documents
    "pypdf": logging.ERROR,
    "PIL": logging.INFO,
}


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(log_level: str = "info", json_output: bool = False) -> None:
    """Route stdlib and structlog records through one structlog formatter on stdout.

    Args:
        log_level: Root level name (debug/info/warning/error).
        json_output: JSON lines for production; coloured console output otherwise.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name, floor in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(floor, level))


def bind_request_context(trace_id: str, user_id: str | None = None) -> None:
    """Bind the request's trace id (and caller, once authenticated) to the log context."""
    ctx = {"trace_id": trace_id}
    if user_id:
        ctx["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**ctx)


def bind_letter_context(letter_id: str) -> None:
    """Tag every following record in this context with the letter being worked on."""
    structlog.contextvars.bind_contextvars(letter_id=letter_id)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()

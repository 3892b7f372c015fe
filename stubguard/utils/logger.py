"""Structured logging for StubGuard.

One JSON (or console) line per event, rendered by structlog. While an exchange
is in flight its ULID sits in ``exchange_id_var`` and is stamped onto every
event, so the auth, validation and fixture lines of one exchange can be
grepped together with the ``X-StubGuard-Exchange-ID`` the client received.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional

import structlog
from structlog.types import EventDict, Processor

exchange_id_var: ContextVar[Optional[str]] = ContextVar("exchange_id", default=None)


def add_exchange_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp the in-flight exchange id; startup and admin events carry none."""
    exchange_id = exchange_id_var.get()
    if exchange_id:
        event_dict["exchange_id"] = exchange_id
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the process.

    Args:
        log_level: DEBUG shows per-exchange ``stub_matched`` lines; INFO keeps
            startup, passes and rewrites.
        json_output: JSON lines for CI logs, console renderer otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_exchange_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "stubguard") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_exchange_id(exchange_id: str) -> None:
    """Mark the start of an exchange in the current task's context."""
    exchange_id_var.set(exchange_id)


def clear_exchange_id() -> None:
    """Mark the end of an exchange; later events carry no exchange id."""
    exchange_id_var.set(None)


# main.py reconfigures from DEBUG / LOG_LEVEL / JSON_LOGS.
configure_logging()

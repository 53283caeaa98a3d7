"""GPIO Bridge — Structured logging.

structlog is layered over stdlib :mod:`logging`, so events from this package
and records from the ``pigpio`` client end up in the same handlers.  Each
entry carries an ISO timestamp, the level and the logger name; while a bridge
is used as a context manager the ``backend`` and ``session_id`` it is bound to
are added as well.

Events are snake_case nouns with a past participle (``session_connected``,
``handle_closed``, ``controller_fault``); values go in keyword arguments,
never in the event string.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from gpio_bridge.config import LoggingConfig

_ctx_backend: ContextVar[str | None] = ContextVar("backend", default=None)
_ctx_session_id: ContextVar[int | None] = ContextVar("session_id", default=None)

# Third-party loggers held at WARNING whatever the configured level.
QUIET_LOGGERS = ("pigpio",)

_configured = False


def bind_session_context(backend: str | None = None, session_id: int | None = None) -> None:
    """Tag subsequent events in this thread with *backend* and *session_id*."""
    if backend is not None:
        _ctx_backend.set(backend)
    if session_id is not None:
        _ctx_session_id.set(session_id)


def clear_session_context() -> None:
    _ctx_backend.set(None)
    _ctx_session_id.set(None)


def _add_session_context(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    # Explicit keyword arguments win over the bound context.
    if (backend := _ctx_backend.get()) is not None:
        event_dict.setdefault("backend", backend)
    if (session_id := _ctx_session_id.get()) is not None:
        event_dict.setdefault("session_id", session_id)
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _add_session_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderer(format: str) -> Processor:
    if format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | Path | None = None,
) -> None:
    """Route structlog through stdlib logging and install the root handlers.

    Args:
        level:    debug, info, warning, error or critical.
        format:   ``"console"`` (coloured when stderr is a TTY) or ``"json"``.
        log_file: Also append records to this file.
    """
    global _configured

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(format),
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(level.upper())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def configure_from_settings(config: LoggingConfig, force: bool = False) -> bool:
    """Apply ``settings.logging`` unless logging was already configured.

    Returns True when handlers were (re)installed.
    """
    if _configured and not force:
        return False
    configure_logging(config.level, config.format, config.file)
    return True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Usage::

    log = get_logger(__name__)
    log.info("handle_opened", kind="spi", handle=0)
    """
    return structlog.get_logger(name)

"""One structlog event stream for the web app and the in-process SMTP listener."""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(
    *,
    json: bool = True,
    level: str = "INFO",
    service: str = "shortmail",
) -> None:
    """Route structlog events and stdlib records through one root handler.

    Parameters
    ----------
    json:
        Emit one JSON object per line (``SHORTMAIL_LOG_JSON``); otherwise use
        structlog's console renderer for local runs.
    level:
        Root level name from ``SHORTMAIL_LOG_LEVEL``, any case.
    service:
        Bound into every event as ``service`` to tell shortmail lines apart
        in aggregated logs.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json:
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

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    # uvicorn and aiosmtpd install their own handlers; route them through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "mail.log"):
        lib_logger = logging.getLogger(name)
        lib_logger.handlers.clear()
        lib_logger.propagate = True

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service)

"""structlog setup for the lending bot.

Every record passes through the stdlib root handler so library loggers
(ccxt, aiosqlite, uvicorn) share one format with our own events. Pair
runners bind ``exchange`` and ``symbol`` into contextvars, which tags every
event emitted during that pair's ticks.
"""

import logging
import os

import structlog

# Libraries that log every request or statement at DEBUG
_NOISY_LOGGERS = ("ccxt", "aiosqlite", "uvicorn.access")


def setup_logging(log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one rendered handler.

    ``LOG_FORMAT=json`` selects one JSON object per line; anything else
    (default ``console``) selects the coloured dev renderer. Timestamps
    are ISO-8601 UTC.
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_pair(exchange: str, symbol: str) -> None:
    """Tag all later events in the current task with the pair identity."""
    structlog.contextvars.bind_contextvars(exchange=exchange, symbol=symbol)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

"""
Logging setup for the forecasting engine.

The CLI calls ``configure_logging`` once; library modules only call
``get_logger(__name__)`` and never configure anything themselves.
"""
import logging
import sys

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(level: str = "WARNING", format_json: bool = False) -> None:
    """
    Route structlog events through stdlib logging on stderr.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        format_json: Render JSON lines instead of plain console output
    """
    # stdout carries the forecast summary
    logging.basicConfig(level=getattr(logging, level.upper()), stream=sys.stderr, format="%(message)s")

    renderer = structlog.processors.JSONRenderer() if format_json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
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


def get_logger(name: str) -> FilteringBoundLogger:
    return structlog.get_logger(name)

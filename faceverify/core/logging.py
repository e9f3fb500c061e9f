"""Logging configuration for the face verification engine."""
import logging
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import ProcessorFormatter

from faceverify.core.config import Settings, settings

# Dependency loggers that are too chatty at INFO
NOISY_LOGGERS = ("botocore", "aiobotocore", "sqlalchemy.engine", "urllib3")


def setup_logging(config: Optional[Settings] = None) -> None:
    """Configure structlog on top of the standard library root logger.

    Development gets colored console output; every other environment gets
    one JSON object per line. Records emitted through plain ``logging`` by
    dependencies go through the same renderer.

    Args:
        config: Settings to read ``ENVIRONMENT`` and ``LOG_LEVEL`` from,
            defaults to the process settings
    """
    config = config or settings
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    pre_chain: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        timestamper,
    ]

    if config.ENVIRONMENT == "development":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=pre_chain + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "Logging configured",
        environment=config.ENVIRONMENT,
        level=config.LOG_LEVEL,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance compatible with standard logging.

    Args:
        name: Name for the logger, typically __name__

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name)

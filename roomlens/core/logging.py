"""
Logging configuration for the API.

Both structlog loggers and plain stdlib loggers end up in the same handlers and
are rendered by the same structlog renderer: JSON lines when LOG_FORMAT=json,
colored console output otherwise. Request and session ids bound by the request
middleware are merged into every structlog event.

Usage:
    # In request-scoped service code the contextual logger prefixes [request_id][sess:...]:
    from roomlens.middleware.logging_middleware import get_logger
    logger = get_logger(__name__)

    # Everywhere else:
    import logging
    logger = logging.getLogger(__name__)
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import structlog

from roomlens.core.config import Settings, settings as default_settings

NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error", "httpx", "httpcore", "openai", "google_genai", "aiohttp.access")
LOG_DIR = Path("logs")
MAX_LOG_BYTES = 10 * 1024 * 1024


def _pre_chain() -> List[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty(), exception_formatter=structlog.dev.plain_traceback)


def _formatter(settings: Settings) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            _renderer(settings),
        ],
    )


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structlog and the root logger. Safe to call more than once."""
    settings = settings or default_settings
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_pre_chain(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = _formatter(settings)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.environment == "production":
        LOG_DIR.mkdir(exist_ok=True)
        file_handler = RotatingFileHandler(LOG_DIR / "api.log", maxBytes=MAX_LOG_BYTES, backupCount=5)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured",
        level=settings.log_level,
        format=settings.log_format,
        environment=settings.environment,
    )

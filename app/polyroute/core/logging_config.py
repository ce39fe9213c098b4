"""Logging configuration for the Polyroute service.

Keep configuration generation separate from execution:

    - `get_logging_config`: Build a standard library logging configuration
      dictionary from application settings.
    - `configure_structlog_wrapper`: Install structlog's logger factory and
      processor chain.
    - `add_service_context`: Stamp service name, version and environment on
      every entry.
    - Context helpers from `structlog.contextvars` for binding request-scoped
      metadata (request ids, routing ids) to every log line.
"""

from typing import Any

import structlog
from structlog.types import Processor

from app.config import Settings


# =============================================================================
# CONFIGURATION GENERATORS
# =============================================================================


def get_common_processors() -> list[Processor]:
    """Return the processor chain shared by the JSON and console renderers.

    Returns:
        list[Processor]: Ordered list of structlog processors.
    """
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def add_service_context(settings: Settings) -> Processor:
    """Build a processor adding ``service``, ``version`` and ``environment``.

    Values already present on the event are left untouched.
    """
    fields = {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }

    def _processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return _processor


def select_renderer(settings: Settings) -> Processor:
    """Pick the final renderer for the deployment environment.

    Production and staging emit JSON for log aggregation; development gets
    colored console output.
    """
    if settings.ENVIRONMENT.lower() in ("production", "staging"):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def get_logging_config(settings: Settings) -> dict[str, Any]:
    """Generate a logging configuration dictionary for `logging.config.dictConfig`.

    Note:
        This is a pure function that does not modify global state.

    Args:
        settings: Application settings containing LOG_LEVEL, ENVIRONMENT and
            LOGGING_NOISY_MODULES.

    Returns:
        dict[str, Any]: Configuration dictionary compatible with dictConfig.
    """
    log_level = settings.LOG_LEVEL.upper()

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "structlog.stdlib.ProcessorFormatter",
                "processor": select_renderer(settings),
                "foreign_pre_chain": [
                    *get_common_processors(),
                    add_service_context(settings),
                ],
            },
        },
        "handlers": {
            "console": {
                "level": log_level,
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": True,
            },
            **{
                lib: {"level": "WARNING", "propagate": False}
                for lib in settings.LOGGING_NOISY_MODULES
            },
        },
    }


def configure_structlog_wrapper(settings: Settings) -> None:
    """Install the structlog processor chain for application loggers.

    Args:
        settings: Application settings; provide the service identity fields.
    """
    structlog_processors = [
        structlog.stdlib.filter_by_level,
        *get_common_processors(),
        add_service_context(settings),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=structlog_processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# =============================================================================
# LOGGER RETRIEVAL
# =============================================================================


def get_logger(name: str | None = None) -> Any:
    """Retrieve a structlog logger, optionally named after its module."""
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


# =============================================================================
# CONTEXT VARIABLE EXPORTS
# =============================================================================

bind_contextvars = structlog.contextvars.bind_contextvars
unbind_contextvars = structlog.contextvars.unbind_contextvars
clear_contextvars = structlog.contextvars.clear_contextvars
bound_contextvars = structlog.contextvars.bound_contextvars

"""
Logging Configuration
====================

structlog on top of the standard logging tree. Request and job identifiers
are carried in context variables, so every line logged while serving a
request or processing an export job is tagged with them.
"""

import logging
import logging.config
import sys
from typing import Any, Dict, Iterator, List, TYPE_CHECKING
from contextlib import contextmanager

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from .settings import get_settings

if TYPE_CHECKING:
    from .settings import Settings

LOG_FILE_BYTES = 10 * 1024 * 1024

# Third-party loggers that are only interesting when something goes wrong.
QUIET_LOGGERS = ("playwright", "aiohttp", "asyncio", "PIL")


def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag production events with the service name and environment."""
    settings = get_settings()
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def build_processors(settings: "Settings") -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.environment == "production":
        processors.append(add_service_info)
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.environment == "development"))
    return processors


def setup_logging() -> None:
    """Configure structlog and the standard logging handlers."""
    settings = get_settings()

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(get_logging_config(settings))


def get_logging_config(settings: "Settings") -> Dict[str, Any]:
    """
    Logging tree for the service.

    Everything goes to stdout. Outside of tests the service also writes a
    rotating application log, an error log and an export log that holds
    the batch and job records of `adrender.core.export`.
    """
    log_dir = settings.storage_path / "logs"
    write_files = settings.environment != "testing"

    def rotating(filename: str, level: str) -> Dict[str, Any]:
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "json" if settings.environment == "production" else "detailed",
            "filename": str(log_dir / filename),
            "maxBytes": LOG_FILE_BYTES,
            "backupCount": 5,
            "delay": True,
        }

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.log_level,
            "formatter": "json" if settings.environment == "production" else "plain",
            "stream": sys.stdout,
        },
    }
    if write_files:
        handlers["app_file"] = rotating("adrender.log", settings.log_level)
        handlers["error_file"] = rotating("error.log", "ERROR")
        handlers["export_file"] = rotating("export.log", "INFO")

    root_handlers = ["console", "app_file", "error_file"] if write_files else ["console"]

    loggers: Dict[str, Any] = {
        "": {"level": settings.log_level, "handlers": root_handlers},
        "adrender.core.export": {
            "level": settings.log_level,
            "handlers": ["export_file"] if write_files else [],
            "propagate": True,
        },
        "uvicorn.access": {
            "level": "INFO" if settings.debug else "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING", "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            # structlog renders the event, the handler only prints it
            "plain": {"format": "%(message)s"},
            "detailed": {
                "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **fields: Any) -> None:
    """Start a fresh logging context for one HTTP request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **fields)


@contextmanager
def job_context(job_id: str) -> Iterator[None]:
    """Tag everything logged inside the block with the export job id."""
    with structlog.contextvars.bound_contextvars(job_id=job_id):
        yield


def ensure_log_directories() -> None:
    """Ensure log directories exist."""
    settings = get_settings()
    log_dir = settings.storage_path / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)


# Initialize logging on import
ensure_log_directories()
setup_logging()

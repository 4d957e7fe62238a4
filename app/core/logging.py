import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from app.core.config import Settings, settings as default_settings
from app.core.sanitizer import redact_pii


@dataclass(frozen=True)
class LogEvent:
    """One structured log entry: level, human message, event name, fields."""

    level: int
    message: str
    event: str
    fields: Dict[str, Any] = field(default_factory=dict)
    exc_info: bool = False


def log_event(logger: logging.Logger, event: LogEvent) -> None:
    """Emit ``event`` through a stdlib logger with its fields as extras."""
    logger.log(
        event.level,
        event.message,
        exc_info=event.exc_info,
        extra={"event_type": event.event, **event.fields},
    )


def _redact_structlog(_, __, event_dict):
    for key, value in list(event_dict.items()):
        if isinstance(value, str):
            event_dict[key] = redact_pii(value)
    return event_dict


def _shared_processors():
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_structlog,
    ]


def setup_logging(app_settings: Optional[Settings] = None) -> logging.Logger:
    """Configure JSON logging with PII redaction for the whole process.

    Output goes to stdout and, when ``LOG_TO_FILE`` is set, to
    ``combined.log`` and ``error.log`` under ``LOG_DIR``. Rotation of those
    files is left to the host (logrotate, container runtime).
    """
    cfg = app_settings or default_settings
    log_level = getattr(logging, cfg.LOG_LEVEL, logging.INFO)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=_shared_processors(),
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers = [console_handler]

    if cfg.LOG_TO_FILE:
        log_dir = Path(cfg.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        combined_handler = logging.FileHandler(log_dir / "combined.log")
        combined_handler.setFormatter(formatter)

        error_handler = logging.FileHandler(log_dir / "error.log")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)

        handlers.extend([combined_handler, error_handler])

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(log_level)
    for handler in handlers:
        root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured level=%s file_output=%s",
        cfg.LOG_LEVEL,
        cfg.LOG_TO_FILE,
        extra={"event_type": "logging_configured", "pii_redaction": True},
    )
    return logger

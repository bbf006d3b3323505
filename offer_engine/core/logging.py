import logging
import re
import sys
from typing import Any

import structlog

SERVICE_NAME = "offer-engine"
REDACTED = "***"

_SENSITIVE_KEYS = frozenset({"authorization", "internal_api_token", "password", "token", "x_internal_token"})
_URL_CREDENTIALS_RE = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://[^:/@\s]*:)[^@\s]+@")
_NOISY_LOGGERS = ("sqlalchemy.engine", "asyncpg", "celery.worker.strategy")


def _scrub_url_credentials(value: str) -> str:
    return _URL_CREDENTIALS_RE.sub(lambda match: f"{match.group('scheme')}{REDACTED}@", value)


def redact_sensitive(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # DSNs and broker URLs end up in exception text from health checks and jobs.
    for key, value in event_dict.items():
        if key.lower() in _SENSITIVE_KEYS and value is not None:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and "://" in value:
            event_dict[key] = _scrub_url_credentials(value)
    return event_dict


def add_service_name(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_service_name,
            timestamper,
            structlog.processors.format_exc_info,
            redact_sensitive,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

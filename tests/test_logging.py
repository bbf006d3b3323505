from __future__ import annotations

import logging

import structlog

from offer_engine.core import logging as logging_config


def test_redact_sensitive_masks_secret_keys() -> None:
    event = logging_config.redact_sensitive(
        None,
        "warning",
        {"event": "internal_offers_auth_failed", "token": "abc", "Authorization": "Bearer x", "client_ip": "10.0.0.1"},
    )

    assert event == {
        "event": "internal_offers_auth_failed",
        "token": "***",
        "Authorization": "***",
        "client_ip": "10.0.0.1",
    }


def test_redact_sensitive_scrubs_credentials_inside_urls() -> None:
    event = logging_config.redact_sensitive(
        None,
        "warning",
        {
            "event": "health_check_failed",
            "error": "cannot connect to postgresql+asyncpg://offers:s3cret@db:5432/offer_engine",
            "broker": "redis://localhost:6379/0",
        },
    )

    assert event["error"] == "cannot connect to postgresql+asyncpg://offers:***@db:5432/offer_engine"
    assert event["broker"] == "redis://localhost:6379/0"


def test_add_service_name_keeps_explicit_value() -> None:
    assert logging_config.add_service_name(None, "info", {"event": "x"})["service"] == "offer-engine"
    assert logging_config.add_service_name(None, "info", {"event": "x", "service": "worker"})["service"] == "worker"


def test_configure_logging_quiets_noisy_libraries() -> None:
    try:
        logging_config.configure_logging("debug")

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        processors = structlog.get_config()["processors"]
        assert logging_config.redact_sensitive in processors
        assert processors[-1].__class__ is structlog.processors.JSONRenderer
    finally:
        logging_config.configure_logging("INFO")

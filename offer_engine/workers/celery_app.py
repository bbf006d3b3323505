from celery import Celery

from offer_engine.core.config import get_settings
from offer_engine.core.logging import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

celery_app = Celery(
    "offer_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "offer_engine.workers.tasks.offers_jobs",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    worker_hijack_root_logger=False,
)


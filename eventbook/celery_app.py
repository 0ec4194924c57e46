from __future__ import annotations

import logging
from typing import Any

from celery import Celery, Task
from celery.signals import setup_logging

from eventbook.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

celery_app = Celery(
    "eventbook",
    broker=settings.scalability.CELERY_BROKER_URL,
    backend=settings.scalability.CELERY_RESULT_BACKEND,
    include=["eventbook.tasks"],
)

celery_app.conf.update(
    task_serializer=settings.scalability.CELERY_TASK_SERIALIZER,
    result_serializer=settings.scalability.CELERY_RESULT_SERIALIZER,
    accept_content=settings.scalability.CELERY_ACCEPT_CONTENT,
    timezone=settings.scalability.CELERY_TIMEZONE,
    enable_utc=True,
    task_default_queue="default",
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_track_started=True,
    task_reject_on_worker_lost=True,
    broker_connection_retry_on_startup=True,
    result_expires=3600,
    task_soft_time_limit=120,
    task_time_limit=300,
    beat_schedule={
        "reconcile-seat-inventory": {
            "task": "eventbook.tasks.reconcile_seat_inventory",
            "schedule": float(settings.scalability.INVENTORY_RECONCILE_INTERVAL),
        },
    },
)


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging for Celery workers."""
    from logging.config import dictConfig

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": "pythonjsonlogger.json.JsonFormatter",
                    "format": "%(asctime)s %(levelname)s %(processName)s %(name)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "level": settings.monitoring.LOG_LEVEL,
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
            },
            "root": {"level": settings.monitoring.LOG_LEVEL, "handlers": ["console"]},
            "loggers": {
                "celery": {"level": "INFO", "handlers": ["console"], "propagate": False},
            },
        }
    )


class CallbackTask(Task):
    """Base task class with structured logging for lifecycle events."""

    abstract = True

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        einfo: Any,
    ) -> None:
        logger.error(
            f"Task {self.name} [{task_id}] failed: {exc}",
            extra={"task_id": task_id, "task_name": self.name},
        )

    def on_success(
        self,
        retval: Any,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        logger.info(
            f"Task {self.name} [{task_id}] succeeded",
            extra={"task_id": task_id, "task_name": self.name, "retval": retval},
        )


celery_app.Task = CallbackTask

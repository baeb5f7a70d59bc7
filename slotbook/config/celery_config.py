"""Celery application factory"""
from celery import Celery

from slotbook.config.settings import get_settings

settings = get_settings()


def create_celery_app() -> Celery:
    """Create the Celery app used for booking notifications"""
    app = Celery(
        "slotbook",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=[
            "slotbook.tasks.email_tasks",
            "slotbook.tasks.calendar_tasks",
        ],
    )

    app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_acks_late=True,
        task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    )

    return app


celery_app = create_celery_app()

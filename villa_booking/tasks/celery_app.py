from celery import Celery

from villa_booking.core.config import settings

celery_app = Celery(
    "villa_booking",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["villa_booking.tasks.notifications"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.booking_timezone,
    enable_utc=True,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    broker_connection_timeout=2,
)

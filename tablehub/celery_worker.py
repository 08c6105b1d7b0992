"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.
Used when NOTIFICATION_BACKEND=celery.
"""

from celery import Celery

from tablehub.core.config import get_settings, setup_logging

settings = get_settings()
setup_logging()

# Create Celery app
celery_app = Celery(
    'tablehub_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['tablehub.tasks']  # Module containing our tasks
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # At-most-once: acknowledge on receipt, never requeue
    task_acks_late=False,
    task_reject_on_worker_lost=False,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()

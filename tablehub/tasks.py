"""
Celery Tasks
Background delivery of notification emails.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone

from tablehub.celery_worker import celery_app
from tablehub.services.notifications import get_notification_service

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=0)
def send_notification(self, kind: str, payload: dict) -> dict:
    """
    Render and send one notification email.
    Runs in the Celery worker; failures are logged and not retried.

    Args:
        kind: Template kind (order_confirmation, order_ready, ...)
        payload: Template variables plus the recipient under "to"

    Returns:
        dict: Result of the delivery
    """
    task_id = self.request.id
    logger.info(f"📧 Task {task_id}: sending {kind} to {payload.get('to')}")
    start_time = time.time()

    service = get_notification_service()
    result = asyncio.run(service.send_notification(kind, payload))

    elapsed = round(time.time() - start_time, 3)
    if result.success:
        logger.info(f"✅ Task {task_id}: {kind} delivered in {elapsed}s")
    else:
        logger.warning(f"⚠️ Task {task_id}: {kind} failed - {result.error_message}")

    return {
        'success': result.success,
        'kind': kind,
        'provider': service.provider_name,
        'message_id': result.message_id,
        'error': result.error_message,
        'task_id': task_id,
        'processing_time_seconds': elapsed,
    }


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }

"""
Celery Tasks
Background delivery of confirmation emails.
"""

import asyncio
import logging
import time
from typing import Optional

from app.celery_worker import celery_app
from app.services.notifications import get_notification_service

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Provider refused the message; the task is retried."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(EmailDeliveryError,),
    retry_backoff=True
)
def send_email(
    self,
    to_email: str,
    subject: str,
    body_html: str,
    body_text: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    """
    Send one email through the configured provider.

    Args:
        to_email: Recipient address
        subject: Subject line
        body_html: HTML body
        body_text: Plain-text alternative
        reply_to: Optional Reply-To address

    Returns:
        dict: Delivery result
    """
    task_id = self.request.id
    start_time = time.time()

    service = get_notification_service()
    result = asyncio.run(service.send_email(
        to_email=to_email,
        subject=subject,
        body_html=body_html,
        body_text=body_text,
        reply_to=reply_to,
    ))
    elapsed = round(time.time() - start_time, 3)

    if not result.success:
        logger.warning(
            f"Task {task_id}: email to {to_email} failed after {elapsed}s - {result.error_message}"
        )
        raise EmailDeliveryError(result.error_message or "Email delivery failed")

    logger.info(f"Task {task_id}: email '{subject}' sent to {to_email} in {elapsed}s")
    return {
        'success': True,
        'message_id': result.message_id,
        'provider': result.provider,
        'task_id': task_id,
        'processing_time_seconds': elapsed,
    }

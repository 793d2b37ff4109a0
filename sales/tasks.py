"""
Celery tasks for async sale notifications.
"""
import logging
from celery import shared_task

from sales.services.webhook_dispatcher import dispatch

logger = logging.getLogger(__name__)


@shared_task(bind=True, ignore_result=True)
def dispatch_sale_webhook(self, sale_id: str):
    """
    Deliver the sale.approved webhook for an approved sale.

    Retries and backoff happen inside ``dispatch`` so one task run maps to
    one WebhookLog row; the task itself is never retried by Celery.

    Args:
        sale_id: ID of the approved Sale
    """
    logger.info(f"Dispatching webhook for sale {sale_id} (task {self.request.id})")
    outcome = dispatch(sale_id)
    logger.info(f"Webhook for sale {sale_id} finished: {outcome.status} after {outcome.attempts} attempts")
    return outcome.status

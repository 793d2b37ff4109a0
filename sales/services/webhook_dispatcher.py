"""
Webhook dispatcher for approved sales.

Delivery is best effort: up to WEBHOOK_MAX_ATTEMPTS posts with linear
backoff, every sequence recorded in a WebhookLog row that exists before
the first network call.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from django.conf import settings
from django.utils import timezone

from sales.models import Sale, WebhookLog
from sales.services.webhook_client import send_webhook
from sales.services.webhook_payload import build_payload, serialize_payload, sign_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryOutcome:
    status: str
    attempts: int
    response_status: Optional[int] = None
    error_message: Optional[str] = None
    log_id: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == WebhookLog.Status.SUCCESS


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt ``attempt`` (1s, 2s, ...)."""
    return attempt * settings.WEBHOOK_BACKOFF_SECONDS


def dispatch(sale_id) -> DeliveryOutcome:
    """
    Deliver the ``sale.approved`` notification for a sale.

    Workflow:
    1. Load sale and partner
    2. Build, serialize and sign the payload
    3. Create WebhookLog (pending, attempts=1)
    4. POST up to WEBHOOK_MAX_ATTEMPTS times; any 2xx stops the loop
    5. Record final status, last response code, truncated body and error

    Never changes the sale itself.
    """
    sale = Sale.objects.select_related('partner').filter(pk=sale_id).first()
    if sale is None:
        logger.error(f"Webhook dispatch: sale {sale_id} not found")
        return DeliveryOutcome(status=WebhookLog.Status.FAILED, attempts=0, error_message='Sale not found')

    body = serialize_payload(build_payload(sale))
    signature = sign_payload(body, settings.WEBHOOK_SECRET)

    log = WebhookLog.objects.create(
        sale=sale,
        status=WebhookLog.Status.PENDING,
        attempts=1,
        last_attempt_at=timezone.now(),
    )

    max_attempts = settings.WEBHOOK_MAX_ATTEMPTS
    success = False
    response_status = None
    response_body = ''
    error_message = ''
    attempt = 0

    for attempt in range(1, max_attempts + 1):
        try:
            if attempt > 1:
                WebhookLog.objects.filter(pk=log.pk).update(attempts=attempt, last_attempt_at=timezone.now())

            response = send_webhook(body, signature)
            response_status = response.status_code
            response_body = response.text or ''

            if 200 <= response_status < 300:
                success = True
                logger.info(f"Sale {sale.id}: webhook delivered on attempt {attempt}")
                break

            logger.warning(
                f"Sale {sale.id}: webhook attempt {attempt}/{max_attempts} "
                f"failed with status {response_status}"
            )

        except httpx.HTTPError as e:
            error_message = str(e) or e.__class__.__name__
            logger.warning(
                f"Sale {sale.id}: webhook attempt {attempt}/{max_attempts} error: {error_message}"
            )
        except Exception as e:
            # e.g. httpx.InvalidURL, which is not an HTTPError
            error_message = str(e) or e.__class__.__name__
            logger.error(
                f"Sale {sale.id}: webhook attempt {attempt}/{max_attempts} "
                f"unexpected error: {error_message}",
                exc_info=True
            )

        if attempt < max_attempts:
            time.sleep(backoff_delay(attempt))

    final_status = WebhookLog.Status.SUCCESS if success else WebhookLog.Status.FAILED
    WebhookLog.objects.filter(pk=log.pk).update(
        status=final_status,
        attempts=attempt,
        response_status=response_status,
        response_body=response_body[:settings.WEBHOOK_RESPONSE_BODY_LIMIT],
        error_message=error_message or None,
    )

    if not success:
        logger.error(f"Sale {sale.id}: webhook FAILED after {attempt} attempts")

    return DeliveryOutcome(
        status=final_status,
        attempts=attempt,
        response_status=response_status,
        error_message=error_message or None,
        log_id=str(log.pk),
    )

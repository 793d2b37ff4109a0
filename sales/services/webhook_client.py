"""
HTTP client for delivering sale notifications to the configured webhook.
"""
import logging
import json
import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


def _format_response(response: httpx.Response) -> str:
    """Return a readable response string (pretty JSON if possible)."""
    try:
        data = response.json()
        return json.dumps(data, indent=2, ensure_ascii=False)
    except (ValueError, TypeError):
        return response.text


def send_webhook(body: bytes, signature: str) -> httpx.Response:
    """
    Posts a signed payload to WEBHOOK_URL.

    Args:
        body: Serialized JSON payload, exactly as signed
        signature: ``sha256=<hex>`` HMAC of ``body``

    Returns:
        HTTP response from the webhook receiver

    Raises:
        httpx.HTTPError: On network/timeout errors
    """
    url = settings.WEBHOOK_URL

    headers = {
        'Content-Type': 'application/json',
        'X-Signature': signature,
        'X-Webhook-Event': settings.WEBHOOK_EVENT,
    }

    logger.info(f"Sending webhook to: {url}")
    logger.debug(f"Payload: {body!r}")

    try:
        response = httpx.post(
            url,
            content=body,
            headers=headers,
            timeout=settings.WEBHOOK_TIMEOUT
        )

        logger.info(f"Webhook response: {response.status_code}")
        logger.debug("Webhook response body:\n%s", _format_response(response))

        return response

    except httpx.TimeoutException as e:
        logger.error(f"Timeout sending webhook: {e}")
        raise
    except httpx.ConnectError as e:
        logger.error(f"Connection error sending webhook: {e}")
        raise
    except httpx.HTTPError as e:
        logger.error(f"HTTP error sending webhook: {e}")
        raise

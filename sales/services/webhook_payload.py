"""
Builds and signs the ``sale.approved`` notification payload.

The signature covers the exact bytes that are sent, so the body is
serialized once and the same bytes are posted.
"""
import hashlib
import hmac
import json
import logging
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.utils import timezone

from sales.models import Sale

logger = logging.getLogger(__name__)


def partner_snapshot(sale: Sale) -> Optional[dict]:
    """Partner block of the payload, or None if the partner was removed."""
    partner = sale.partner
    if partner is None:
        return None
    return {
        'id': partner.partner_code,
        'name': partner.name,
        'mobile': partner.mobile,
    }


def build_payload(sale: Sale, timestamp: Optional[datetime] = None) -> dict:
    """
    Map a sale to the webhook wire format.

    Args:
        sale: Approved sale with its partner loaded
        timestamp: Event time; defaults to now (UTC)

    Returns:
        JSON-serializable payload dictionary
    """
    timestamp = timestamp or timezone.now()
    payload = {
        'event': settings.WEBHOOK_EVENT,
        'sale_id': sale.id,
        'timestamp': timestamp.isoformat(),
        'partner': partner_snapshot(sale),
        'buyer': {
            'name': sale.buyer_name,
            'mobile': sale.buyer_mobile,
        },
        'amount': sale.amount,
        'transaction_id_last4': sale.transaction_id_last4,
        'tickets': sale.tickets_data,
        'screenshot_url': sale.screenshot_path,
    }
    logger.debug(f"Built webhook payload for sale {sale.id}: {payload}")
    return payload


def serialize_payload(payload: dict) -> bytes:
    """Compact JSON encoding used for both signing and sending."""
    return json.dumps(payload, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def sign_payload(body: bytes, secret: str) -> str:
    """Return ``sha256=<hex>`` HMAC of ``body`` keyed with ``secret``."""
    digest = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of an ``X-Signature`` header value."""
    return hmac.compare_digest(sign_payload(body, secret), signature or '')

"""
Audit trail for sale and inventory actions.
"""
import logging
from typing import Optional

from sales.models import AuditLog, Profile

logger = logging.getLogger(__name__)

SALE_SUBMITTED = 'sale.submitted'
SALE_APPROVED = 'sale.approved'
SALE_REJECTED = 'sale.rejected'
SALE_EDITED = 'sale.edited'
TIER_UPDATED = 'tier.updated'
WEBHOOK_REPLAYED = 'webhook.replayed'


def record(action: str, entity_type: str, entity_id, actor: Optional[Profile] = None,
           details: Optional[dict] = None) -> AuditLog:
    """Append an audit entry; call inside the transaction that made the change."""
    entry = AuditLog.objects.create(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
    )
    logger.debug(f"Audit {action} {entity_type}:{entity_id} by {actor.id if actor else 'anonymous'}")
    return entry

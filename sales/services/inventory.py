"""
Inventory store for ticket tiers.

``remaining_qty`` is only ever reduced through ``conditional_decrement``,
a single guarded UPDATE so concurrent approvals cannot oversell a tier.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from django.db import connection, transaction
from django.db.models import F
from django.utils import timezone

from sales.exceptions import InventoryError, TierInUse
from sales.models import Sale, TicketTier
from sales.services import audit, results

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecrementResult:
    """
    Outcome of a conditional decrement.

    ``remaining`` is the new quantity on success and the actual quantity
    on ``insufficient_inventory``; it is None when the tier is missing.
    """

    code: str
    tier_id: str
    requested: int
    remaining: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.code == results.OK


def parse_tier_id(value) -> Optional[uuid.UUID]:
    """Return the tier id as a UUID, or None when it cannot be one."""
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def conditional_decrement(tier_id, quantity: int) -> DecrementResult:
    """
    Atomically take ``quantity`` units from a tier if enough remain.

    Issues ``UPDATE ... SET remaining_qty = remaining_qty - q
    WHERE id = ? AND remaining_qty >= q`` and uses the affected row count
    to tell success from failure. A zero count is disambiguated with a
    follow-up read that never mutates.

    Raises:
        ValueError: quantity is not a positive integer
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError(f"Decrement quantity must be a positive integer, got {quantity!r}")

    tier_uuid = parse_tier_id(tier_id)
    if tier_uuid is None:
        logger.warning(f"Tier {tier_id} not found during decrement")
        return DecrementResult(results.TIER_NOT_FOUND, str(tier_id), quantity)

    updated = TicketTier.objects.filter(
        pk=tier_uuid,
        remaining_qty__gte=quantity,
    ).update(
        remaining_qty=F('remaining_qty') - quantity,
        updated_at=timezone.now(),
    )

    if updated == 1:
        remaining = TicketTier.objects.filter(pk=tier_uuid).values_list('remaining_qty', flat=True).first()
        logger.debug(f"Tier {tier_id}: took {quantity}, {remaining} remaining")
        return DecrementResult(results.OK, str(tier_id), quantity, remaining)

    remaining = TicketTier.objects.filter(pk=tier_uuid).values_list('remaining_qty', flat=True).first()
    if remaining is None:
        logger.warning(f"Tier {tier_id} not found during decrement")
        return DecrementResult(results.TIER_NOT_FOUND, str(tier_id), quantity)

    logger.info(f"Tier {tier_id}: requested {quantity}, only {remaining} remaining")
    return DecrementResult(results.INSUFFICIENT_INVENTORY, str(tier_id), quantity, remaining)


def get_tier(tier_id) -> Optional[TicketTier]:
    tier_uuid = parse_tier_id(tier_id)
    if tier_uuid is None:
        return None
    return TicketTier.objects.filter(pk=tier_uuid).first()


def list_tiers():
    return list(TicketTier.objects.all())


def create_tier(name: str, price: int, quantity: int) -> TicketTier:
    """Create a tier with ``initial_qty == remaining_qty == quantity``."""
    if price <= 0:
        raise InventoryError("Tier price must be positive")
    if quantity < 0:
        raise InventoryError("Tier quantity cannot be negative")

    tier = TicketTier.objects.create(
        name=name.strip(),
        price=price,
        remaining_qty=quantity,
        initial_qty=quantity,
    )
    logger.info(f"Created tier {tier.id} '{tier.name}' at {price} x {quantity}")
    return tier


def _lock_tier(tier_uuid) -> Optional[TicketTier]:
    """Row-locked read; call inside an atomic block."""
    return TicketTier.objects.select_for_update().filter(pk=tier_uuid).first()


@transaction.atomic
def update_tier(tier_id, price: Optional[int] = None, remaining_qty: Optional[int] = None,
                initial_qty: Optional[int] = None, actor=None) -> TicketTier:
    """
    Admin direct edit of price and quantities.

    The tier row is locked for the edit and only the supplied fields are
    written, so a concurrent decrement is never overwritten by a price
    change. A result outside ``0 <= remaining_qty <= initial_qty`` is
    refused. The audit entry commits with the edit.

    Raises:
        TicketTier.DoesNotExist: unknown tier
        InventoryError: the write would break the quantity bounds
    """
    tier_uuid = parse_tier_id(tier_id)
    tier = _lock_tier(tier_uuid) if tier_uuid is not None else None
    if tier is None:
        raise TicketTier.DoesNotExist(f"Tier {tier_id} not found")

    changed = {}
    if price is not None:
        if price <= 0:
            raise InventoryError("Tier price must be positive")
        changed['price'] = price
    if initial_qty is not None:
        changed['initial_qty'] = initial_qty
    if remaining_qty is not None:
        changed['remaining_qty'] = remaining_qty

    for field, value in changed.items():
        setattr(tier, field, value)

    if tier.remaining_qty < 0 or tier.initial_qty < 0:
        raise InventoryError("Tier quantities cannot be negative")
    if tier.remaining_qty > tier.initial_qty:
        raise InventoryError(
            f"remaining_qty ({tier.remaining_qty}) cannot exceed initial_qty ({tier.initial_qty})"
        )

    tier.save(update_fields=[*changed, 'updated_at'])
    audit.record(audit.TIER_UPDATED, 'tier', tier.id, actor=actor, details=changed)
    logger.info(
        f"Tier {tier.id} updated: {changed}, "
        f"remaining={tier.remaining_qty}/{tier.initial_qty}"
    )
    return tier


def is_tier_referenced(tier_id) -> bool:
    """True when any sale's line items point at the tier."""
    tier_id = str(tier_id)
    if connection.features.supports_json_field_contains:
        return Sale.objects.filter(tickets_data__contains=[{'tier_id': tier_id}]).exists()

    # No JSON containment lookup on this backend (SQLite)
    for tickets in Sale.objects.values_list('tickets_data', flat=True).iterator():
        if any(str(item.get('tier_id')) == tier_id for item in tickets or []):
            return True
    return False


def delete_tier(tier_id) -> None:
    """
    Raises:
        TierInUse: a sale still references the tier
    """
    if is_tier_referenced(tier_id):
        raise TierInUse(f"Tier {tier_id} is referenced by existing sales")
    tier_uuid = parse_tier_id(tier_id)
    if tier_uuid is not None:
        TicketTier.objects.filter(pk=tier_uuid).delete()
    logger.info(f"Deleted tier {tier_id}")

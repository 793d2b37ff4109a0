"""
Sale record store.

Status changes go through ``transition_status``, a conditional UPDATE
guarded by ``status = 'pending'``; the affected row count tells the
caller whether it won the race.
"""
import logging
from typing import Iterable, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from sales.exceptions import SaleStoreError
from sales.models import Profile, Sale

logger = logging.getLogger(__name__)

# Attempts at drawing a free SALE###### token before giving up
SALE_ID_ATTEMPTS = 5

# Fields a partner may change while the sale is still pending
EDITABLE_FIELDS = frozenset({
    'buyer_name',
    'buyer_mobile',
    'transaction_id_last4',
    'screenshot_path',
    'tickets_data',
    'amount',
})


def line_items_total(line_items: Iterable[dict]) -> int:
    """Sum of ``price * qty`` across line items."""
    return sum(int(item['price']) * int(item['qty']) for item in line_items)


def create_sale(
    partner: Optional[Profile],
    buyer_name: str,
    buyer_mobile: str,
    transaction_id_last4: str,
    screenshot_path: Optional[str],
    line_items: List[dict],
    amount: int,
) -> Sale:
    """
    Insert a new pending sale.

    Raises:
        SaleStoreError: no line items, or amount differs from the line item total
    """
    if not line_items:
        raise SaleStoreError("A sale needs at least one line item")

    expected = line_items_total(line_items)
    if amount != expected:
        raise SaleStoreError(f"Amount {amount} does not match line item total {expected}")

    for attempt in range(1, SALE_ID_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                sale = Sale.objects.create(
                    partner=partner,
                    status=Sale.Status.PENDING,
                    buyer_name=buyer_name,
                    buyer_mobile=buyer_mobile,
                    transaction_id_last4=transaction_id_last4,
                    screenshot_path=screenshot_path,
                    tickets_data=line_items,
                    amount=amount,
                )
        except IntegrityError:
            logger.warning(f"Sale id collision on attempt {attempt}, drawing a new id")
            if attempt == SALE_ID_ATTEMPTS:
                raise
            continue

        logger.info(f"Sale {sale.id} created for partner {partner.id if partner else None}")
        return sale


def get_sale(sale_id) -> Optional[Sale]:
    return Sale.objects.select_related('partner').filter(pk=sale_id).first()


def list_sales_for_partner(partner_id) -> List[Sale]:
    """Partner's own sales, newest submission first."""
    return list(Sale.objects.filter(partner_id=partner_id).order_by('-submitted_at'))


def list_sales(status: Optional[str] = None) -> List[Sale]:
    """All sales, optionally filtered by status, newest submission first."""
    queryset = Sale.objects.select_related('partner').order_by('-submitted_at')
    if status:
        queryset = queryset.filter(status=status)
    return list(queryset)


def transition_status(sale_id, to_status: str, *, rejection_reason: Optional[str] = None,
                      approved_at=None) -> bool:
    """
    Move a pending sale to a terminal status.

    Returns:
        True if this call performed the transition, False if the sale
        was missing or no longer pending.
    """
    updates = {'status': to_status, 'updated_at': timezone.now()}
    if to_status == Sale.Status.APPROVED:
        updates['approved_at'] = approved_at or timezone.now()
    elif to_status == Sale.Status.REJECTED:
        updates['rejection_reason'] = rejection_reason

    updated = Sale.objects.filter(pk=sale_id, status=Sale.Status.PENDING).update(**updates)
    if not updated:
        logger.info(f"Sale {sale_id}: conditional transition to {to_status} matched no pending row")
    return updated == 1


def update_pending_sale(sale_id, partner_id, **fields) -> bool:
    """
    Apply a partner's edit while the sale is still pending.

    Returns:
        True if the row was updated, False if it is not pending or not owned
        by ``partner_id``.

    Raises:
        SaleStoreError: a field outside EDITABLE_FIELDS was supplied
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise SaleStoreError(f"Fields not editable: {sorted(unknown)}")

    fields['updated_at'] = timezone.now()
    updated = Sale.objects.filter(
        pk=sale_id,
        partner_id=partner_id,
        status=Sale.Status.PENDING,
    ).update(**fields)
    return updated == 1

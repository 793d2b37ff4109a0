"""
Creation and partner self-edit of pending sales.

Public referral submissions arrive without credentials, so the partner
is always re-resolved server side from the referral code. Line item
names and prices are snapshotted from the tier table; the client's
amount must match the recomputed total.
"""
import logging
from typing import List, Optional, Tuple

from django.db import transaction

from sales.models import Profile, Sale
from sales.services import audit, inventory, lifecycle, results, sale_store
from sales.services.actors import resolve_actor
from sales.services.normalization import normalize_submission
from sales.services.results import ApprovalResult, SubmissionResult
from sales.services.validation import (
    message_for,
    validate_buyer_details,
    validate_public_submission,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = 'Failed to submit sale. Please try again.'


def resolve_partner(partner_code: str) -> Tuple[Optional[Profile], Optional[str]]:
    """
    Resolve a referral code to a partner profile.

    Returns:
        (profile, None) for an active partner, otherwise (None, rejection_code)
    """
    code = (partner_code or '').strip().upper()
    partner = Profile.objects.filter(partner_code=code, role=Profile.Role.PARTNER).first()
    if partner is None:
        logger.info(f"Referral code '{code}' does not match a partner")
        return None, results.PARTNER_NOT_FOUND
    if not partner.is_active:
        logger.info(f"Referral code '{code}' belongs to inactive partner {partner.id}")
        return None, results.PARTNER_INACTIVE
    return partner, None


def snapshot_line_items(line_items: List[dict]) -> Tuple[Optional[List[dict]], Optional[str]]:
    """
    Replace client-supplied tier names and prices with the current tier values.

    Returns:
        (snapshots, None) or (None, TIER_NOT_FOUND)
    """
    snapshots = []
    for item in line_items:
        tier = inventory.get_tier(item['tier_id'])
        if tier is None:
            logger.info(f"Submission references unknown tier {item['tier_id']}")
            return None, results.TIER_NOT_FOUND
        snapshots.append({
            'tier_id': str(tier.id),
            'tier_name': tier.name,
            'price': tier.price,
            'qty': item['qty'],
        })
    return snapshots, None


def _priced_submission(data: dict) -> Tuple[Optional[List[dict]], Optional[SubmissionResult]]:
    snapshots, code = snapshot_line_items(data['tickets_data'])
    if code:
        return None, SubmissionResult.failure(code, message_for(code), 'tickets_data')

    expected = sale_store.line_items_total(snapshots)
    if data['amount'] != expected:
        logger.info(f"Submitted amount {data['amount']} does not match ticket total {expected}")
        return None, SubmissionResult.failure(
            results.AMOUNT_MISMATCH,
            f"{message_for(results.AMOUNT_MISMATCH)} Expected {expected}.",
            'amount',
        )
    return snapshots, None


def _create(partner: Profile, data: dict, snapshots: List[dict], actor: Optional[Profile]) -> Sale:
    with transaction.atomic():
        sale = sale_store.create_sale(
            partner=partner,
            buyer_name=data['buyer_name'],
            buyer_mobile=data['buyer_mobile'],
            transaction_id_last4=data['transaction_id_last4'],
            screenshot_path=data.get('screenshot_path'),
            line_items=snapshots,
            amount=data['amount'],
        )
        audit.record(
            audit.SALE_SUBMITTED,
            'sale',
            sale.id,
            actor=actor,
            details={'partner_code': partner.partner_code, 'amount': sale.amount},
        )
    return sale


def submit_public_sale(partner_code, buyer_name, buyer_mobile, reference_last4,
                       screenshot_path, line_items, amount) -> SubmissionResult:
    """
    Create a pending sale from the public referral form.

    Validation, partner resolution and pricing all happen before any write.
    """
    data = normalize_submission({
        'partner_code': partner_code,
        'buyer_name': buyer_name,
        'buyer_mobile': buyer_mobile,
        'transaction_id_last4': reference_last4,
        'screenshot_path': screenshot_path,
        'tickets_data': line_items,
        'amount': amount,
    })

    is_valid, code, field = validate_public_submission(data)
    if not is_valid:
        logger.info(f"Public submission rejected: {code} on {field}")
        return SubmissionResult.failure(code, message_for(code), field)

    try:
        partner, code = resolve_partner(data['partner_code'])
        if code == results.PARTNER_NOT_FOUND:
            return SubmissionResult.failure(code, 'Invalid referral link. Partner not found.', 'partner_code')
        if code == results.PARTNER_INACTIVE:
            return SubmissionResult.failure(code, 'This referral link is no longer active.', 'partner_code')

        snapshots, failure = _priced_submission(data)
        if failure:
            return failure

        sale = _create(partner, data, snapshots, actor=None)
    except Exception:
        logger.error(f"Unexpected error creating public sale for '{data.get('partner_code')}'", exc_info=True)
        return SubmissionResult.failure(results.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)

    logger.info(f"Public sale {sale.id} submitted via referral code {partner.partner_code}")
    return SubmissionResult.created(sale.id)


def submit_partner_sale(actor_id, buyer_name, buyer_mobile, reference_last4,
                        screenshot_path, line_items, amount) -> SubmissionResult:
    """Self-service submission by an authenticated partner on their own behalf."""
    actor = resolve_actor(actor_id)
    if actor is None or not actor.is_partner:
        logger.warning(f"Actor {actor_id} is not an active partner, submission refused")
        return SubmissionResult.failure(results.UNAUTHORIZED, 'Only active partners can submit sales.')

    data = normalize_submission({
        'buyer_name': buyer_name,
        'buyer_mobile': buyer_mobile,
        'transaction_id_last4': reference_last4,
        'screenshot_path': screenshot_path,
        'tickets_data': line_items,
        'amount': amount,
    })

    is_valid, code, field = validate_buyer_details(data)
    if not is_valid:
        return SubmissionResult.failure(code, message_for(code), field)

    try:
        snapshots, failure = _priced_submission(data)
        if failure:
            return failure
        sale = _create(actor, data, snapshots, actor=actor)
    except Exception:
        logger.error(f"Unexpected error creating sale for partner {actor.id}", exc_info=True)
        return SubmissionResult.failure(results.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)

    return SubmissionResult.created(sale.id)


def edit_pending_sale(sale_id, actor_id, changes: dict) -> ApprovalResult:
    """
    Partner edit of their own pending sale.

    Unchanged fields keep their stored values; the merged record is
    validated and re-priced as a new submission would be.
    """
    actor = resolve_actor(actor_id)
    if actor is None or not actor.is_partner:
        return ApprovalResult.failure(results.UNAUTHORIZED, 'Only active partners can edit sales.')

    sale = sale_store.get_sale(sale_id)
    if sale is None or sale.partner_id != actor.id:
        # Other partners' sales are reported as missing
        return ApprovalResult.failure(results.SALE_NOT_FOUND, f"Sale {sale_id} not found.")

    if not lifecycle.can_transition(sale.status, lifecycle.SELF_EDIT):
        return ApprovalResult.failure(
            results.ALREADY_PROCESSED,
            f"Sale {sale.id} is already {sale.status} and can no longer be edited.",
            status=sale.status,
        )

    unknown = set(changes) - sale_store.EDITABLE_FIELDS
    if unknown:
        field = sorted(unknown)[0]
        return ApprovalResult.failure(results.NOT_EDITABLE, f"Field '{field}' cannot be edited.", field=field)

    merged = {
        'buyer_name': sale.buyer_name,
        'buyer_mobile': sale.buyer_mobile,
        'transaction_id_last4': sale.transaction_id_last4,
        'screenshot_path': sale.screenshot_path,
        'tickets_data': [{'tier_id': i['tier_id'], 'qty': i['qty']} for i in sale.tickets_data],
        'amount': sale.amount,
    }
    merged.update(changes)
    data = normalize_submission(merged)

    is_valid, code, field = validate_buyer_details(data)
    if not is_valid:
        return ApprovalResult.failure(code, message_for(code), field=field)

    try:
        if 'tickets_data' in changes:
            snapshots, failure = _priced_submission(data)
            if failure:
                return ApprovalResult.failure(failure.code, failure.message, field=failure.field)
        else:
            snapshots = sale.tickets_data
            if data['amount'] != sale.amount:
                return ApprovalResult.failure(
                    results.AMOUNT_MISMATCH, message_for(results.AMOUNT_MISMATCH), field='amount'
                )

        with transaction.atomic():
            updated = sale_store.update_pending_sale(
                sale.id,
                actor.id,
                buyer_name=data['buyer_name'],
                buyer_mobile=data['buyer_mobile'],
                transaction_id_last4=data['transaction_id_last4'],
                screenshot_path=data.get('screenshot_path'),
                tickets_data=snapshots,
                amount=data['amount'],
            )
            if not updated:
                transaction.set_rollback(True)
                logger.info(f"Sale {sale.id} left pending before partner edit was applied")
                return ApprovalResult.failure(
                    results.ALREADY_PROCESSED,
                    f"Sale {sale.id} was processed before the edit was saved.",
                )
            audit.record(audit.SALE_EDITED, 'sale', sale.id, actor=actor, details={'fields': sorted(changes)})
    except Exception:
        logger.error(f"Unexpected error editing sale {sale_id}", exc_info=True)
        return ApprovalResult.failure(results.INTERNAL_ERROR, 'Failed to update sale. Please try again.')

    logger.info(f"Sale {sale.id} edited by partner {actor.id}: {sorted(changes)}")
    return ApprovalResult.success(sale_store.get_sale(sale.id))

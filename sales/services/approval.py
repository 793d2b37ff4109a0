"""
Approval orchestrator.

Approve and reject are the only ways a sale leaves ``pending``. On
approval every line item decrement and the status change run in one
database transaction: a shortfall on any tier, or losing the race to
another admin, rolls back all of it. The notification webhook is queued
only after that transaction commits and can never undo an approval.
"""
import logging

from django.db import transaction
from django.utils import timezone

from sales.models import Sale
from sales.services import audit, inventory, lifecycle, results, sale_store
from sales.services.actors import resolve_actor
from sales.services.results import ApprovalResult
from sales.tasks import dispatch_sale_webhook

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = 'The request could not be completed. Please try again.'


def enqueue_webhook(sale_id) -> None:
    """Queue webhook delivery; a broker failure is logged, never raised."""
    try:
        dispatch_sale_webhook.delay(sale_id)
        logger.info(f"Sale {sale_id}: webhook dispatch enqueued")
    except Exception:
        logger.error(f"Sale {sale_id}: failed to enqueue webhook dispatch", exc_info=True)


def _check_admin(actor_id, action: str):
    actor = resolve_actor(actor_id)
    if actor is None or not actor.is_admin:
        logger.warning(f"Actor {actor_id} is not an active admin, {action} refused")
        return None, ApprovalResult.failure(
            results.UNAUTHORIZED,
            f"Only admins can {action} sales.",
        )
    return actor, None


def _load_pending(sale_id, event: str):
    sale = sale_store.get_sale(sale_id)
    if sale is None:
        logger.info(f"Sale {sale_id} not found")
        return None, ApprovalResult.failure(results.SALE_NOT_FOUND, f"Sale {sale_id} not found.")

    if not lifecycle.can_transition(sale.status, event):
        logger.info(f"Sale {sale.id} already {sale.status}, '{event}' ignored")
        return None, ApprovalResult.failure(
            results.ALREADY_PROCESSED,
            f"Sale {sale.id} has already been {sale.status}.",
            status=sale.status,
        )
    return sale, None


def decrement_plan(line_items) -> list:
    """
    One ``{tier_id, tier_name, qty}`` entry per tier, sorted by tier id.

    Concurrent approvals then lock tier rows in the same order.
    """
    merged = {}
    for item in line_items:
        tier_id = str(item['tier_id'])
        entry = merged.setdefault(tier_id, {'tier_id': tier_id, 'tier_name': item.get('tier_name'), 'qty': 0})
        entry['qty'] += int(item['qty'])
    return [merged[tier_id] for tier_id in sorted(merged)]


def _shortfall(outcome: inventory.DecrementResult, item: dict) -> ApprovalResult:
    tier_name = item.get('tier_name') or outcome.tier_id
    if outcome.code == results.TIER_NOT_FOUND:
        message = f"Ticket tier '{tier_name}' no longer exists."
    else:
        message = (
            f"Insufficient inventory for {tier_name}: "
            f"{outcome.requested} requested, only {outcome.remaining} remaining."
        )
    return ApprovalResult.failure(
        outcome.code,
        message,
        tier_id=outcome.tier_id,
        tier_name=tier_name,
        requested=outcome.requested,
        remaining=outcome.remaining,
    )


def _approve(sale_id, actor_id) -> ApprovalResult:
    actor, failure = _check_admin(actor_id, 'approve')
    if failure:
        return failure

    sale, failure = _load_pending(sale_id, lifecycle.APPROVE)
    if failure:
        return failure

    target = lifecycle.validate_transition(sale, lifecycle.APPROVE)

    with transaction.atomic():
        for item in decrement_plan(sale.tickets_data):
            outcome = inventory.conditional_decrement(item['tier_id'], item['qty'])
            if not outcome.ok:
                transaction.set_rollback(True)
                logger.warning(
                    f"Sale {sale.id} approval aborted on tier {outcome.tier_id}: "
                    f"{outcome.code} (requested {outcome.requested}, remaining {outcome.remaining})"
                )
                return _shortfall(outcome, item)

        approved_at = timezone.now()
        if not sale_store.transition_status(sale.id, target, approved_at=approved_at):
            # Another admin processed the sale after we read it
            transaction.set_rollback(True)
            current = Sale.objects.filter(pk=sale.id).values_list('status', flat=True).first()
            logger.info(f"Sale {sale.id} lost approval race, now {current}; decrements rolled back")
            return ApprovalResult.failure(
                results.ALREADY_PROCESSED,
                f"Sale {sale.id} has already been {current}.",
                status=current,
            )

        audit.record(
            audit.SALE_APPROVED,
            'sale',
            sale.id,
            actor=actor,
            details={'tickets': sale.tickets_data, 'amount': sale.amount},
        )
        sale_id = sale.id
        transaction.on_commit(lambda: enqueue_webhook(sale_id))

    logger.info(f"Sale {sale.id} APPROVED by {actor.id}")
    return ApprovalResult.success(sale_store.get_sale(sale.id), 'Sale approved.')


def approve_sale(sale_id, actor_id) -> ApprovalResult:
    """
    Approve a pending sale.

    Workflow:
    1. Actor must be an active admin
    2. Sale must exist and still be pending
    3. Decrement every line item's tier (all-or-nothing)
    4. Conditionally move the sale to approved and stamp approved_at
    5. After commit, queue the webhook task

    Args:
        sale_id: Sale token, e.g. SALE042917
        actor_id: Profile id of the acting admin

    Returns:
        ApprovalResult with the finalized sale on success
    """
    try:
        return _approve(sale_id, actor_id)
    except Exception:
        logger.error(f"Unexpected error approving sale {sale_id} by {actor_id}", exc_info=True)
        return ApprovalResult.failure(results.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)


def _reject(sale_id, actor_id, reason) -> ApprovalResult:
    actor, failure = _check_admin(actor_id, 'reject')
    if failure:
        return failure

    reason = (reason or '').strip()
    if not reason:
        return ApprovalResult.failure(results.REASON_REQUIRED, 'A rejection reason is required.', field='reason')

    sale, failure = _load_pending(sale_id, lifecycle.REJECT)
    if failure:
        return failure

    target = lifecycle.validate_transition(sale, lifecycle.REJECT)

    with transaction.atomic():
        if not sale_store.transition_status(sale.id, target, rejection_reason=reason):
            current = Sale.objects.filter(pk=sale.id).values_list('status', flat=True).first()
            logger.info(f"Sale {sale.id} lost rejection race, now {current}")
            return ApprovalResult.failure(
                results.ALREADY_PROCESSED,
                f"Sale {sale.id} has already been {current}.",
                status=current,
            )
        audit.record(audit.SALE_REJECTED, 'sale', sale.id, actor=actor, details={'reason': reason})

    logger.info(f"Sale {sale.id} REJECTED by {actor.id}: {reason}")
    return ApprovalResult.success(sale_store.get_sale(sale.id), 'Sale rejected.')


def reject_sale(sale_id, actor_id, reason) -> ApprovalResult:
    """
    Reject a pending sale with a reason. No inventory or webhook effects.
    """
    try:
        return _reject(sale_id, actor_id, reason)
    except Exception:
        logger.error(f"Unexpected error rejecting sale {sale_id} by {actor_id}", exc_info=True)
        return ApprovalResult.failure(results.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)


def replay_webhook(sale_id, actor_id) -> ApprovalResult:
    """Queue another webhook delivery for an approved sale."""
    try:
        actor, failure = _check_admin(actor_id, 'replay webhooks for')
        if failure:
            return failure

        sale = sale_store.get_sale(sale_id)
        if sale is None:
            return ApprovalResult.failure(results.SALE_NOT_FOUND, f"Sale {sale_id} not found.")
        if sale.status != Sale.Status.APPROVED:
            return ApprovalResult.failure(
                results.NOT_REPLAYABLE,
                f"Sale {sale.id} is {sale.status}; only approved sales send webhooks.",
                status=sale.status,
            )

        with transaction.atomic():
            audit.record(audit.WEBHOOK_REPLAYED, 'sale', sale.id, actor=actor)
            transaction.on_commit(lambda: enqueue_webhook(sale.id))
    except Exception:
        logger.error(f"Unexpected error replaying webhook for sale {sale_id}", exc_info=True)
        return ApprovalResult.failure(results.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)

    logger.info(f"Sale {sale.id}: webhook replay requested by {actor.id}")
    return ApprovalResult.success(sale, 'Webhook delivery queued.')

"""
Validation service for sale submissions.
"""
import re
import logging
from typing import Tuple, Optional

from django.conf import settings

from sales.services import results

logger = logging.getLogger(__name__)

# Format patterns (configurable in settings)
MOBILE_PATTERN = re.compile(getattr(settings, 'MOBILE_PATTERN', r'^\d{10}$'), re.ASCII)
REFERENCE_PATTERN = re.compile(getattr(settings, 'REFERENCE_PATTERN', r'^\d{4}$'), re.ASCII)

MESSAGES = {
    results.MISSING_REQUIRED_FIELD: 'This field is required.',
    results.INVALID_MOBILE: 'Invalid mobile number. Enter 10 digits.',
    results.INVALID_REFERENCE: 'Invalid transaction reference. Enter the last 4 digits.',
    results.EMPTY_TICKETS: 'Select at least one ticket.',
    results.INVALID_TICKET_ITEM: 'Each ticket needs a tier and a positive whole quantity.',
    results.AMOUNT_MISMATCH: 'Amount does not match the selected tickets.',
    results.TIER_NOT_FOUND: 'Selected ticket tier does not exist.',
}

BUYER_REQUIRED_FIELDS = ['buyer_name', 'buyer_mobile', 'transaction_id_last4', 'tickets_data', 'amount']

ValidationOutcome = Tuple[bool, Optional[str], Optional[str]]


def is_valid_mobile(value) -> bool:
    # fullmatch so a trailing newline cannot slip past '$'
    return isinstance(value, str) and MOBILE_PATTERN.fullmatch(value) is not None


def is_valid_reference(value) -> bool:
    return isinstance(value, str) and REFERENCE_PATTERN.fullmatch(value) is not None


def is_positive_int(value) -> bool:
    # bool is a subclass of int
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict)) and not value:
        return True
    return False


def validate_line_items(line_items) -> ValidationOutcome:
    """
    Checks the ticket selection shape: a non-empty list of
    ``{tier_id, qty}`` items with positive integer quantities.
    """
    if not isinstance(line_items, list) or not line_items:
        logger.debug("Validation failed: empty ticket selection")
        return False, results.EMPTY_TICKETS, 'tickets_data'

    for index, item in enumerate(line_items):
        if not isinstance(item, dict) or _is_blank(item.get('tier_id')):
            logger.debug(f"Validation failed: ticket item {index} has no tier_id")
            return False, results.INVALID_TICKET_ITEM, 'tickets_data'
        if not is_positive_int(item.get('qty')):
            logger.debug(f"Validation failed: ticket item {index} qty is {item.get('qty')!r}")
            return False, results.INVALID_TICKET_ITEM, 'tickets_data'

    return True, None, None


def validate_buyer_details(payload: dict) -> ValidationOutcome:
    """
    Validates buyer, payment-proof and ticket fields.

    Business Rules:
    1. Required fields: buyer_name, buyer_mobile, transaction_id_last4, tickets_data, amount
    2. buyer_mobile must be exactly 10 digits
    3. transaction_id_last4 must be exactly 4 digits
    4. tickets_data must be a non-empty list of {tier_id, qty > 0}
    5. amount must be a non-negative integer

    Args:
        payload: Normalized submission dictionary

    Returns:
        Tuple of (is_valid, rejection_code, field)
    """
    if not payload:
        logger.debug("Validation failed: empty payload")
        return False, results.MISSING_REQUIRED_FIELD, None

    for field in BUYER_REQUIRED_FIELDS:
        if field == 'tickets_data':
            continue
        if _is_blank(payload.get(field)):
            logger.debug(f"Validation failed: missing or empty required field '{field}'")
            return False, results.MISSING_REQUIRED_FIELD, field

    if not is_valid_mobile(payload['buyer_mobile']):
        logger.debug(f"Validation failed: buyer_mobile '{payload['buyer_mobile']}' is not 10 digits")
        return False, results.INVALID_MOBILE, 'buyer_mobile'

    if not is_valid_reference(payload['transaction_id_last4']):
        logger.debug(
            f"Validation failed: transaction_id_last4 '{payload['transaction_id_last4']}' is not 4 digits"
        )
        return False, results.INVALID_REFERENCE, 'transaction_id_last4'

    is_valid, code, field = validate_line_items(payload.get('tickets_data'))
    if not is_valid:
        return is_valid, code, field

    amount = payload['amount']
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        logger.debug(f"Validation failed: amount {amount!r} is not a whole number")
        return False, results.MISSING_REQUIRED_FIELD, 'amount'

    logger.debug("Validation passed")
    return True, None, None


def validate_public_submission(payload: dict) -> ValidationOutcome:
    """
    Validates a public referral submission: a partner code plus the
    buyer details checked by ``validate_buyer_details``.
    """
    if not payload or _is_blank(payload.get('partner_code')):
        logger.debug("Validation failed: missing partner_code")
        return False, results.MISSING_REQUIRED_FIELD, 'partner_code'

    return validate_buyer_details(payload)


def message_for(code: Optional[str]) -> str:
    return MESSAGES.get(code, 'Invalid submission.')

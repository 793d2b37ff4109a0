"""
Result objects returned by the sale workflow services.
"""
from dataclasses import dataclass, field
from typing import Optional

from sales.models import Sale

# Outcome codes
OK = 'ok'
MISSING_REQUIRED_FIELD = 'missing_required_field'
INVALID_MOBILE = 'invalid_mobile'
INVALID_REFERENCE = 'invalid_reference'
EMPTY_TICKETS = 'empty_tickets'
INVALID_TICKET_ITEM = 'invalid_ticket_item'
AMOUNT_MISMATCH = 'amount_mismatch'
TIER_NOT_FOUND = 'tier_not_found'
UNAUTHORIZED = 'unauthorized'
SALE_NOT_FOUND = 'sale_not_found'
ALREADY_PROCESSED = 'already_processed'
PARTNER_NOT_FOUND = 'partner_not_found'
PARTNER_INACTIVE = 'partner_inactive'
INSUFFICIENT_INVENTORY = 'insufficient_inventory'
REASON_REQUIRED = 'reason_required'
NOT_REPLAYABLE = 'not_replayable'
NOT_EDITABLE = 'not_editable'
INTERNAL_ERROR = 'internal_error'

VALIDATION_CODES = frozenset({
    MISSING_REQUIRED_FIELD,
    INVALID_MOBILE,
    INVALID_REFERENCE,
    EMPTY_TICKETS,
    INVALID_TICKET_ITEM,
    AMOUNT_MISMATCH,
    TIER_NOT_FOUND,
    REASON_REQUIRED,
    NOT_EDITABLE,
})


@dataclass
class ApprovalResult:
    """Outcome of approve, reject, edit or replay on an existing sale."""

    ok: bool
    code: str
    message: str = ''
    sale: Optional[Sale] = None
    details: dict = field(default_factory=dict)

    @classmethod
    def success(cls, sale: Sale, message: str = '') -> 'ApprovalResult':
        return cls(ok=True, code=OK, message=message, sale=sale)

    @classmethod
    def failure(cls, code: str, message: str, **details) -> 'ApprovalResult':
        return cls(ok=False, code=code, message=message, details=details)


@dataclass
class SubmissionResult:
    """Outcome of creating a pending sale."""

    ok: bool
    code: str
    message: str = ''
    field: Optional[str] = None
    sale_id: Optional[str] = None

    @classmethod
    def created(cls, sale_id: str) -> 'SubmissionResult':
        return cls(ok=True, code=OK, sale_id=sale_id)

    @classmethod
    def failure(cls, code: str, message: str, field: Optional[str] = None) -> 'SubmissionResult':
        return cls(ok=False, code=code, message=message, field=field)

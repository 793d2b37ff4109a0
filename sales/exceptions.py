"""
Domain exceptions for the sales app.

Expected outcomes of the approval workflow (shortfall, lost races, bad
input) are reported through result objects; these exceptions cover
programming errors and direct store misuse.
"""


class SalesError(Exception):
    """Base class for sales domain errors."""
    pass


class InvalidStateTransition(SalesError):
    """Raised when an event is applied to a sale in a state that forbids it."""
    pass


class InventoryError(SalesError):
    """Raised when a tier write would break 0 <= remaining_qty <= initial_qty."""
    pass


class TierInUse(InventoryError):
    """Raised when deleting a tier still referenced by a sale's line items."""
    pass


class SaleStoreError(SalesError):
    """Raised when a sale record fails structural checks on insert."""
    pass

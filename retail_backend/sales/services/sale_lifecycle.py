"""
Which status a Sale may move to next.

Pure rules: nothing here touches the database or stock. The refund manager
calls validate_transition() before flipping a sale to REFUNDED.
"""

from sales.models import Sale
from sales.services.exceptions import InvalidSaleState


class InvalidSaleTransitionError(InvalidSaleState):
    pass


# status -> statuses it may move to; anything absent is terminal
NEXT_STATUSES = {
    Sale.STATUS_PENDING: frozenset({Sale.STATUS_COMPLETED, Sale.STATUS_CANCELLED}),
    Sale.STATUS_COMPLETED: frozenset({Sale.STATUS_REFUNDED}),
}


def can_transition(*, from_status: str, to_status: str) -> bool:
    return to_status in NEXT_STATUSES.get(from_status, ())


def validate_transition(*, sale: Sale, target_status: str):
    if not can_transition(from_status=sale.status, to_status=target_status):
        raise InvalidSaleTransitionError(
            f"Sale {sale.pk} cannot go from {sale.status} to {target_status}"
        )

"""
Sales ledger signals.

Both are sent after the database transaction commits, through
Signal.send_robust: a failing receiver is logged and never affects the
committed sale or refund.
"""

import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Sent after a sale commits.
# Payload:
#   - sale_id: UUID of the committed Sale
#   - branch_id: UUID of its branch
#   - total: Decimal total amount
sale_completed = Signal()

# Sent after a refund commits.
# Payload:
#   - refund_id: UUID of the committed Refund
#   - sale_id: UUID of the original Sale
#   - total: Decimal refunded amount
#   - sale_fully_refunded: bool
refund_completed = Signal()


def send_on_commit(signal: Signal, sender, **payload) -> None:
    def _send():
        for receiver, response in signal.send_robust(sender=sender, **payload):
            if isinstance(response, Exception):
                logger.error(
                    "Ledger notification receiver failed",
                    exc_info=response,
                    extra={"receiver": repr(receiver), **{k: str(v) for k, v in payload.items()}},
                )

    transaction.on_commit(_send)

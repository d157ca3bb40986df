# products/services/stock_adjustments.py

"""
Manual corrections to a single batch: recounts, breakage, expired write-offs.

A signed delta moves quantity_remaining and leaves one ADJUSTMENT movement
behind (INCREASE for +N, DECREASE for -N). The delta must be a non-zero whole
number, a reason is mandatory, and no batch may end up below zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import transaction

from products.models import StockBatch, StockMovement
from products.services.stock_ledger import record_movement
from sales.services.exceptions import StockAdjustmentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdjustmentResult:
    batch: StockBatch
    movement: StockMovement
    quantity_delta: int


def parse_delta(value) -> int:
    if value is None or value == "":
        raise StockAdjustmentError("quantity_delta is required")

    # True/False and 2.5 would otherwise slip through int()
    whole = not isinstance(value, bool) and not (isinstance(value, float) and not value.is_integer())
    try:
        delta = int(value) if whole else None
    except (TypeError, ValueError):
        delta = None

    if delta is None:
        raise StockAdjustmentError(f"quantity_delta must be a whole number, got {value!r}")
    if delta == 0:
        raise StockAdjustmentError("quantity_delta cannot be 0")
    return delta


@transaction.atomic
def adjust_stock_batch(*, batch: StockBatch, quantity_delta, user=None, reason: str = "") -> AdjustmentResult:
    if batch is None:
        raise StockAdjustmentError("batch is required")

    delta = parse_delta(quantity_delta)
    reason = (reason or "").strip()
    if not reason:
        raise StockAdjustmentError("A reason is required for stock adjustments")

    locked = StockBatch.objects.select_for_update().get(pk=batch.pk)
    before = int(locked.quantity_remaining or 0)
    after = before + delta

    if after < 0:
        raise StockAdjustmentError(
            f"Batch {locked.batch_number} holds {before}; cannot remove {-delta}"
        )

    locked.quantity_remaining = after
    try:
        locked.save(update_fields=["quantity_remaining"])
    except ValidationError as exc:
        raise StockAdjustmentError(str(exc)) from exc

    movement = record_movement(
        batch=locked,
        movement_type=StockMovement.MovementType.ADJUSTMENT,
        direction=StockMovement.Direction.INCREASE if delta > 0 else StockMovement.Direction.DECREASE,
        quantity=abs(delta),
        user=user,
        reason=reason,
    )

    logger.info(
        "Stock batch adjusted",
        extra={
            "batch_id": str(locked.pk),
            "quantity_delta": delta,
            "quantity_remaining": after,
            "user_id": str(getattr(user, "pk", "") or ""),
        },
    )
    return AdjustmentResult(batch=locked, movement=movement, quantity_delta=delta)

# products/services/stock_ledger.py

"""
STOCK MOVEMENT LEDGER (APPLICATION SERVICE)

Purpose:
- Single writer for StockMovement rows (record_movement).
- Stock receipt: a new batch and its opening IN movement (receive_batch).
- Audit reads (list_movements) and batch reconciliation.

Reconciliation rule (per batch):
    quantity_remaining == Σ IN + Σ RETURN − Σ OUT + Σ ADJ(INCREASE) − Σ ADJ(DECREASE)

The opening receipt is the batch's first IN movement, so quantity_received is
carried by the ledger like any other change.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Case, F, IntegerField, Sum, When

from products.models import StockBatch, StockMovement

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")


@dataclass(frozen=True)
class BatchReconciliation:
    batch: StockBatch
    ledger_quantity: int
    recorded_quantity: int

    @property
    def is_consistent(self) -> bool:
        return self.ledger_quantity == self.recorded_quantity

    @property
    def difference(self) -> int:
        return self.recorded_quantity - self.ledger_quantity


# ============================================================
# WRITER
# ============================================================

def record_movement(
    *,
    batch: StockBatch,
    movement_type: str,
    quantity: int,
    direction: str | None = None,
    sale=None,
    refund=None,
    user=None,
    reason: str = "",
) -> StockMovement:
    """
    Append one immutable movement row for `batch`.

    product and branch are taken from the batch so the three always agree.
    The model validates type/direction pairing and references.
    """
    return StockMovement.objects.create(
        movement_type=movement_type,
        direction=direction or "",
        quantity=int(quantity),
        product_id=batch.product_id,
        batch=batch,
        branch_id=batch.branch_id,
        sale=sale,
        refund=refund,
        performed_by=user,
        reason=(reason or "").strip(),
    )


# ============================================================
# STOCK RECEIPT
# ============================================================

def _money(v) -> Decimal:
    try:
        return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError("selling_price must be a valid decimal") from exc


@transaction.atomic
def receive_batch(
    *,
    product,
    branch,
    quantity_received: int,
    selling_price,
    expiry_date=None,
    batch_number: str | None = None,
    user=None,
    reason: str = "Stock receipt",
    created_at=None,
) -> StockBatch:
    """
    Create a delivery batch and its opening IN movement.
    """
    if product is None:
        raise ValidationError("product is required")
    if branch is None:
        raise ValidationError("branch is required")

    if isinstance(quantity_received, bool) or quantity_received is None or int(quantity_received) <= 0:
        raise ValidationError("quantity_received must be greater than zero")

    qty = int(quantity_received)

    bn = (batch_number or "").strip()
    if not bn:
        bn = f"RCV-{uuid.uuid4().hex[:10].upper()}"

    extra = {}
    if created_at is not None:
        extra["created_at"] = created_at

    try:
        batch = StockBatch.objects.create(
            branch=branch,
            product=product,
            batch_number=bn,
            expiry_date=expiry_date,
            quantity_received=qty,
            quantity_remaining=qty,
            selling_price=_money(selling_price),
            **extra,
        )
    except IntegrityError as exc:
        raise ValidationError(
            "batch_number already exists for this branch + product. "
            "Each delivery batch_number must be unique per branch per product."
        ) from exc

    record_movement(
        batch=batch,
        movement_type=StockMovement.MovementType.IN,
        quantity=qty,
        user=user,
        reason=reason,
    )

    logger.info(
        "Stock batch received",
        extra={
            "batch_id": str(batch.id),
            "product_id": str(batch.product_id),
            "branch_id": str(batch.branch_id),
            "quantity": qty,
        },
    )

    return batch


# ============================================================
# READS
# ============================================================

def list_movements(
    *,
    branch,
    date_from=None,
    date_to=None,
    product=None,
    movement_type: str | None = None,
):
    """
    Audit read for one branch, newest first.

    date_from / date_to are inclusive calendar dates.
    """
    qs = StockMovement.objects.select_related(
        "product", "batch", "performed_by"
    ).filter(branch_id=getattr(branch, "pk", branch))

    if date_from is not None:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to is not None:
        qs = qs.filter(created_at__date__lte=date_to)
    if product is not None:
        qs = qs.filter(product_id=getattr(product, "pk", product))
    if movement_type:
        qs = qs.filter(movement_type=movement_type)

    return qs.order_by("-created_at", "-id")


def batch_balance(batch: StockBatch) -> int:
    """
    Quantity implied by the batch's movement history.
    """
    signed = Case(
        When(direction=StockMovement.Direction.INCREASE, then=F("quantity")),
        default=-F("quantity"),
        output_field=IntegerField(),
    )
    total = (
        StockMovement.objects.filter(batch_id=batch.pk)
        .aggregate(total=Sum(signed))
        .get("total")
    )
    return int(total or 0)


def reconcile_batch(batch: StockBatch) -> BatchReconciliation:
    recorded = (
        StockBatch.objects.filter(pk=batch.pk)
        .values_list("quantity_remaining", flat=True)
        .first()
    )
    return BatchReconciliation(
        batch=batch,
        ledger_quantity=batch_balance(batch),
        recorded_quantity=int(recorded or 0),
    )


def find_inconsistent_batches(*, branch=None) -> list[BatchReconciliation]:
    qs = StockBatch.objects.select_related("product", "branch").order_by("branch__name", "product__name", "created_at")
    if branch is not None:
        qs = qs.filter(branch_id=getattr(branch, "pk", branch))

    problems = []
    for batch in qs:
        result = reconcile_batch(batch)
        if not result.is_consistent:
            problems.append(result)
    return problems

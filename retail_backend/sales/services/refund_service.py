# sales/services/refund_service.py

"""
REFUND TRANSACTION MANAGER (DOMAIN-CONTROLLED)

Purpose:
- Validate a refund against the original sale's persisted lines.
- Restore stock into the ORIGINAL batch of each affected sale line.
- Append RETURN ledger rows and an immutable Refund + RefundLines.
- Move the sale to REFUNDED once every line is fully refunded.

Money:
- Uses SaleLine.net_amount only: the line total after its cent-exact share
  of the order discount, so the net amounts of a sale add up to its total.
- partial amount = net_amount × qty / sold qty, 2 dp
- The refund that exhausts a line gets the exact remainder of net_amount,
  so cumulative refunds never drift from what was charged.

Idempotency is enforced by quantity ceilings: retrying an over-refund is
rejected the same way every time.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from products.models import StockBatch, StockMovement
from products.services.stock_ledger import record_movement
from sales.models import Refund, RefundLine, Sale, SaleLine
from sales.services.exceptions import (
    InvalidRequest,
    InvalidSaleState,
    OverRefund,
    SaleAlreadyRefunded,
    SaleNotFound,
)
from sales.services.pricing import TWOPLACES, ZERO, to_quantity
from sales.services.sale_lifecycle import validate_transition
from sales.signals import refund_completed, send_on_commit

logger = logging.getLogger(__name__)


# ============================================================
# HELPERS
# ============================================================

def _get(line, key, *aliases):
    for k in (key, *aliases):
        if isinstance(line, dict):
            if k in line:
                return line[k]
        elif hasattr(line, k):
            return getattr(line, k)
    return None


def _id_of(value):
    return getattr(value, "pk", value)


def _lock_sale(sale) -> Sale:
    sale_id = _id_of(sale)
    if sale_id is None or sale_id == "":
        raise SaleNotFound()

    try:
        locked = Sale.objects.select_for_update().filter(pk=sale_id).first()
    except (ValidationError, ValueError):
        locked = None

    if locked is None:
        raise SaleNotFound(f"Sale {sale_id} not found")
    return locked


def refunded_quantities(sale: Sale) -> dict:
    """sale_line_id -> quantity already refunded"""
    rows = (
        RefundLine.objects.filter(sale_line__sale=sale)
        .values("sale_line_id")
        .annotate(total=Sum("quantity"))
    )
    return {r["sale_line_id"]: int(r["total"] or 0) for r in rows}


def _refunded_amounts(sale: Sale) -> dict:
    rows = (
        RefundLine.objects.filter(sale_line__sale=sale)
        .values("sale_line_id")
        .annotate(total=Sum("amount"))
    )
    return {r["sale_line_id"]: Decimal(r["total"] or ZERO) for r in rows}


def _partial_amount(*, sale_line: SaleLine, quantity: int) -> Decimal:
    share = Decimal(sale_line.net_amount) * quantity / int(sale_line.quantity)
    return share.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


# ============================================================
# PLANNING
# ============================================================

def _plan_refund(*, sale: Sale, sale_lines: list[SaleLine], requests: list, remaining: dict) -> dict:
    """
    Map sale_line_id -> (quantity, reason).

    Requests naming a sale line are applied first; product-level requests
    are then spread over that product's lines in position order.
    """
    by_id = {str(sl.pk): sl for sl in sale_lines}
    plan: dict = {}

    def _take(sale_line: SaleLine, qty: int, reason: str):
        remaining[sale_line.pk] -= qty
        prev_qty, prev_reason = plan.get(sale_line.pk, (0, reason))
        plan[sale_line.pk] = (prev_qty + qty, prev_reason or reason)

    explicit = []
    by_product: dict = defaultdict(int)
    product_reasons: dict = {}

    for line in requests:
        qty = to_quantity(_get(line, "quantity"))
        reason = str(_get(line, "reason") or "").strip()
        product_id = _id_of(_get(line, "product", "product_id"))
        sale_line_ref = _id_of(_get(line, "sale_line", "sale_line_id"))

        if sale_line_ref:
            sale_line = by_id.get(str(sale_line_ref))
            if sale_line is None:
                raise InvalidRequest(f"Sale line {sale_line_ref} does not belong to sale {sale.pk}")
            if product_id and str(product_id) != str(sale_line.product_id):
                raise InvalidRequest(f"Sale line {sale_line_ref} is not for product {product_id}")
            explicit.append((sale_line, qty, reason))
            continue

        if not product_id:
            raise InvalidRequest("Each refund line requires a product")

        key = str(product_id)
        by_product[key] += qty
        product_reasons.setdefault(key, reason)

    for sale_line, qty, reason in explicit:
        left = remaining.get(sale_line.pk, 0)
        if qty > left:
            raise OverRefund(
                f"Refund quantity {qty} exceeds refundable quantity {left} for sale line {sale_line.pk}",
                sale_line_id=str(sale_line.pk),
            )
        _take(sale_line, qty, reason)

    for product_key, qty in by_product.items():
        candidates = [sl for sl in sale_lines if str(sl.product_id) == product_key]
        if not candidates:
            raise InvalidRequest(f"Product {product_key} is not part of sale {sale.pk}")

        left = sum(remaining.get(sl.pk, 0) for sl in candidates)
        if qty > left:
            raise OverRefund(
                f"Refund quantity {qty} exceeds refundable quantity {left} for product {product_key}",
                product_id=product_key,
            )

        outstanding = qty
        for sale_line in candidates:
            if outstanding <= 0:
                break
            available = remaining.get(sale_line.pk, 0)
            if available <= 0:
                continue
            take = min(available, outstanding)
            _take(sale_line, take, product_reasons.get(product_key, ""))
            outstanding -= take

    return plan


# ============================================================
# REFUND TRANSACTION MANAGER
# ============================================================

@transaction.atomic
def create_refund(
    *,
    sale,
    lines: Iterable,
    reason: str = "",
    user=None,
) -> Refund:
    """
    Validate, restore stock, log RETURN movements and persist a refund.

    lines: iterable of dicts (or objects) with
        product | product_id, quantity, reason (optional),
        sale_line | sale_line_id (optional)
    """
    locked_sale = _lock_sale(sale)

    if locked_sale.status == Sale.STATUS_REFUNDED:
        raise SaleAlreadyRefunded(f"Sale {locked_sale.pk} has already been refunded")

    if locked_sale.status != Sale.STATUS_COMPLETED:
        raise InvalidSaleState(
            f"Sale {locked_sale.pk} is {locked_sale.status}; only COMPLETED sales can be refunded"
        )

    requests = list(lines or [])
    if not requests:
        raise InvalidRequest("A refund requires at least one line")

    sale_lines = list(
        locked_sale.lines.select_related("product", "batch").order_by("position", "created_at")
    )
    already = refunded_quantities(locked_sale)
    remaining = {sl.pk: int(sl.quantity) - already.get(sl.pk, 0) for sl in sale_lines}

    if sum(remaining.values()) <= 0:
        raise SaleAlreadyRefunded(f"Sale {locked_sale.pk} has no refundable quantity left")

    before = dict(remaining)
    plan = _plan_refund(
        sale=locked_sale,
        sale_lines=sale_lines,
        requests=requests,
        remaining=remaining,
    )

    # --------------------------------------------------
    # MONEY (stored net amounts only)
    # --------------------------------------------------
    refunded_money = _refunded_amounts(locked_sale)
    line_by_id = {sl.pk: sl for sl in sale_lines}

    amounts = {}
    for sale_line_id, (qty, _reason) in plan.items():
        sale_line = line_by_id[sale_line_id]
        outstanding_value = Decimal(sale_line.net_amount) - refunded_money.get(sale_line_id, ZERO)
        if qty == before[sale_line_id]:
            amount = outstanding_value
        else:
            amount = min(_partial_amount(sale_line=sale_line, quantity=qty), outstanding_value)
        amounts[sale_line_id] = max(ZERO, amount)

    # --------------------------------------------------
    # RESTORE STOCK (locked, pk order)
    # --------------------------------------------------
    restore: dict = defaultdict(int)
    for sale_line_id, (qty, _reason) in plan.items():
        restore[line_by_id[sale_line_id].batch_id] += qty

    locked_batches = {
        b.pk: b
        for b in StockBatch.objects.select_for_update().filter(pk__in=list(restore)).order_by("pk")
    }
    for batch_id, qty in restore.items():
        batch = locked_batches[batch_id]
        batch.quantity_remaining = int(batch.quantity_remaining) + qty
        batch.save(update_fields=["quantity_remaining"])

    # --------------------------------------------------
    # PERSIST
    # --------------------------------------------------
    refund_reason = (reason or "").strip()
    refund = Refund.objects.create(
        sale=locked_sale,
        reason=refund_reason,
        total_amount=sum(amounts.values(), ZERO),
        user=user,
    )

    for sale_line_id, (qty, line_reason) in plan.items():
        sale_line = line_by_id[sale_line_id]
        batch = locked_batches[sale_line.batch_id]

        RefundLine.objects.create(
            refund=refund,
            sale_line=sale_line,
            product_id=sale_line.product_id,
            batch=batch,
            quantity=qty,
            unit_price=sale_line.unit_price,
            amount=amounts[sale_line_id],
            reason=line_reason or refund_reason,
        )

        record_movement(
            batch=batch,
            movement_type=StockMovement.MovementType.RETURN,
            quantity=qty,
            sale=locked_sale,
            refund=refund,
            user=user,
            reason=line_reason or refund_reason or f"Refund of {locked_sale.invoice_no}",
        )

    fully_refunded = all(left <= 0 for left in remaining.values())
    if fully_refunded:
        validate_transition(sale=locked_sale, target_status=Sale.STATUS_REFUNDED)
        locked_sale.status = Sale.STATUS_REFUNDED
        locked_sale.save(update_fields=["status"])

    logger.info(
        "Refund completed",
        extra={
            "refund_id": str(refund.id),
            "sale_id": str(locked_sale.id),
            "total": str(refund.total_amount),
            "sale_fully_refunded": fully_refunded,
        },
    )

    send_on_commit(
        refund_completed,
        sender=Refund,
        refund_id=refund.id,
        sale_id=locked_sale.id,
        total=refund.total_amount,
        sale_fully_refunded=fully_refunded,
    )

    return refund

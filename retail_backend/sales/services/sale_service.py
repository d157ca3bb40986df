# sales/services/sale_service.py

"""
SALE TRANSACTION MANAGER (CORE SALES DOMAIN SERVICE)

SINGLE SOURCE OF TRUTH for:
- Sale + SaleLine creation
- batch resolution (explicit override or FEFO split)
- stock deduction and OUT ledger rows
- totals calculation

FLOW (one transaction):
1) Validate branch, payment values, discounts, quantities, product membership
2) Plan batch draws per line (earlier lines' draws are reserved)
3) Lock touched batches in pk order and re-validate the plan
4) Decrement batches
5) Price each requested line once (split across its draws) + order totals,
   splitting the order discount across lines cent for cent
6) Persist Sale (COMPLETED) + one SaleLine per batch draw
7) One OUT StockMovement per SaleLine
8) After commit: sale_completed notification

Any rejection in 1-3 leaves stock and tables untouched.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from branches.models import Branch
from products.models import Product, StockBatch, StockMovement
from products.services.batch_selector import BatchDraw, allocate, available_quantity
from products.services.stock_ledger import record_movement
from sales.models import Sale, SaleLine
from sales.services.exceptions import (
    BatchConflict,
    BranchRequired,
    InsufficientStock,
    InvalidRequest,
)
from sales.services.pricing import (
    compute_totals,
    net_line_amounts,
    price_split_line,
    to_percent,
    to_quantity,
)
from sales.signals import sale_completed, send_on_commit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleLineRequest:
    product: Product
    quantity: int
    line_discount_percent: Decimal
    batch_id: Optional[object] = None


# ============================================================
# VALIDATION HELPERS
# ============================================================

def _get(line, key, *aliases):
    for k in (key, *aliases):
        if isinstance(line, dict):
            if k in line:
                return line[k]
        elif hasattr(line, k):
            return getattr(line, k)
    return None


def _resolve_branch(branch) -> Branch:
    if branch is None or branch == "":
        raise BranchRequired()

    if isinstance(branch, Branch):
        return branch

    try:
        resolved = Branch.objects.filter(pk=branch).first()
    except (ValidationError, ValueError):
        resolved = None
    if resolved is None:
        raise InvalidRequest(f"Unknown branch: {branch}")
    return resolved


def _resolve_choice(value, choices, field: str) -> str:
    normalized = str(value or "").strip().upper()
    if normalized not in choices.values:
        allowed = ", ".join(choices.values)
        raise InvalidRequest(f"{field} must be one of: {allowed}")
    return normalized


def _resolve_product(value, *, branch: Branch) -> Product:
    if value is None or value == "":
        raise InvalidRequest("Each line requires a product")

    if isinstance(value, Product):
        product = value
    else:
        try:
            product = Product.objects.filter(pk=value).first()
        except (ValidationError, ValueError):
            product = None
    if product is None:
        raise InvalidRequest(f"Unknown product: {value}")

    if product.branch_id != branch.pk:
        raise InvalidRequest(f"Product {product.pk} does not belong to branch {branch.pk}")

    if not product.is_active:
        raise InvalidRequest(f"Product {product.pk} is not active")

    return product


def _normalize_lines(lines, *, branch: Branch) -> list[SaleLineRequest]:
    if not lines:
        raise InvalidRequest("A sale requires at least one line")

    normalized = []
    for line in lines:
        quantity = to_quantity(_get(line, "quantity"))
        pct = to_percent(_get(line, "line_discount_percent"), clamp=False)
        product = _resolve_product(_get(line, "product", "product_id"), branch=branch)

        batch = _get(line, "batch", "batch_id")
        normalized.append(
            SaleLineRequest(
                product=product,
                quantity=quantity,
                line_discount_percent=pct,
                batch_id=getattr(batch, "pk", batch) or None,
            )
        )
    return normalized


# ============================================================
# PLANNING + LOCKING
# ============================================================

def _plan_draws(requests: list[SaleLineRequest], *, branch: Branch) -> list[tuple[SaleLineRequest, list[BatchDraw]]]:
    reserved: dict = defaultdict(int)
    reserved_by_product: dict = defaultdict(int)
    plan = []

    for req in requests:
        draws = allocate(
            product=req.product,
            branch=branch,
            quantity=req.quantity,
            batch=req.batch_id,
            reserved=reserved,
        )
        if not draws:
            available = available_quantity(product=req.product, branch=branch)
            available -= reserved_by_product[req.product.pk]
            raise InsufficientStock(
                f"Insufficient stock for {req.product.name}. "
                f"Requested: {req.quantity}, Available: {max(0, available)}",
                product_id=str(req.product.pk),
                requested=req.quantity,
            )

        for draw in draws:
            reserved[draw.batch.pk] += draw.quantity
            reserved_by_product[req.product.pk] += draw.quantity
        plan.append((req, draws))

    return plan


def _lock_and_recheck(plan) -> dict:
    needed: dict = defaultdict(int)
    for _req, draws in plan:
        for draw in draws:
            needed[draw.batch.pk] += draw.quantity

    locked = {
        b.pk: b
        for b in StockBatch.objects.select_for_update().filter(pk__in=list(needed)).order_by("pk")
    }

    for batch_id, qty in needed.items():
        batch = locked.get(batch_id)
        if batch is None or int(batch.quantity_remaining) < qty:
            have = 0 if batch is None else int(batch.quantity_remaining)
            raise BatchConflict(
                f"Batch {batch_id} changed concurrently. Planned: {qty}, Available now: {have}",
                batch_id=str(batch_id),
            )

    for batch_id, qty in needed.items():
        batch = locked[batch_id]
        batch.quantity_remaining = int(batch.quantity_remaining) - qty
        batch.save(update_fields=["quantity_remaining"])

    return locked


# ============================================================
# SALE TRANSACTION MANAGER
# ============================================================

@transaction.atomic
def create_sale(
    *,
    branch,
    lines: Iterable,
    payment_method,
    payment_status,
    order_discount_percent=None,
    user=None,
) -> Sale:
    """
    Validate, lock, deduct, price, persist and log a sale as one unit.

    lines: iterable of dicts (or objects) with
        product | product_id, quantity, batch | batch_id (optional),
        line_discount_percent (optional)
    """
    branch = _resolve_branch(branch)
    if not branch.is_active:
        raise InvalidRequest(f"Branch {branch.pk} is not active")

    method = _resolve_choice(payment_method, Sale.PaymentMethod, "paymentMethod")
    pay_status = _resolve_choice(payment_status, Sale.PaymentStatus, "paymentStatus")
    order_pct = to_percent(order_discount_percent, clamp=False)

    requests = _normalize_lines(list(lines or []), branch=branch)

    plan = _plan_draws(requests, branch=branch)
    locked = _lock_and_recheck(plan)

    # --------------------------------------------------
    # PRICE (snapshot from locked batches)
    # --------------------------------------------------
    priced = []
    for req, draws in plan:
        batches = [locked[draw.batch.pk] for draw in draws]
        prices = price_split_line(
            draws=[(batch.selling_price, draw.quantity) for batch, draw in zip(batches, draws)],
            line_discount_percent=req.line_discount_percent,
        )
        priced.extend((req, batch, price) for batch, price in zip(batches, prices))

    totals = compute_totals(
        lines=[p for _req, _batch, p in priced],
        order_discount_percent=order_pct,
    )
    net_amounts = net_line_amounts(
        line_totals=[p.total for _req, _batch, p in priced],
        discount_amount=totals.discount_amount,
    )

    # --------------------------------------------------
    # PERSIST
    # --------------------------------------------------
    sale = Sale.objects.create(
        branch=branch,
        user=user,
        subtotal_amount=totals.subtotal,
        order_discount_percent=totals.discount_percent,
        discount_amount=totals.discount_amount,
        total_amount=totals.total,
        payment_method=method,
        payment_status=pay_status,
        status=Sale.STATUS_COMPLETED,
    )

    for position, ((req, batch, price), net_amount) in enumerate(zip(priced, net_amounts), start=1):
        sale_line = SaleLine.objects.create(
            sale=sale,
            product=req.product,
            batch=batch,
            position=position,
            quantity=price.quantity,
            unit_price=price.unit_price,
            line_discount_percent=price.discount_percent,
            discount_amount=price.discount_amount,
            line_total=price.total,
            net_amount=net_amount,
        )

        record_movement(
            batch=batch,
            movement_type=StockMovement.MovementType.OUT,
            quantity=sale_line.quantity,
            sale=sale,
            user=user,
            reason=f"Sale {sale.invoice_no}",
        )

    logger.info(
        "Sale completed",
        extra={
            "sale_id": str(sale.id),
            "invoice_no": sale.invoice_no,
            "branch_id": str(branch.pk),
            "line_count": len(priced),
            "total": str(sale.total_amount),
        },
    )

    send_on_commit(
        sale_completed,
        sender=Sale,
        sale_id=sale.id,
        branch_id=branch.pk,
        total=sale.total_amount,
    )

    return sale

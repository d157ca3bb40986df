# products/services/batch_selector.py

"""
FEFO BATCH SELECTOR (FIRST-EXPIRY-FIRST-OUT)

Purpose:
- Rank the in-stock batches of a product at a branch.
- Pick the batch a sale line should draw from.
- Plan multi-batch splits when one batch cannot cover a line.

Ordering (deterministic):
1) expiry_date ascending, undated batches after every dated batch
2) created_at ascending
3) batch_number, then id

Rules:
- Only batches with quantity_remaining > 0 are candidates.
- Expired batches stay eligible unless INVENTORY_FEFO_EXCLUDE_EXPIRED is set.
- An explicit batch override is honoured only when it belongs to the same
  product and branch and can cover the requested quantity; otherwise FEFO.
- "Not available" is returned as None / an empty plan, never raised.

Reads only. Locking and decrementing belong to the sale transaction manager.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models import F
from django.utils import timezone

from products.models import StockBatch


@dataclass(frozen=True)
class BatchDraw:
    batch: StockBatch
    quantity: int


def _id_of(value):
    return getattr(value, "pk", value)


def _exclude_expired_default() -> bool:
    return bool(getattr(settings, "INVENTORY_FEFO_EXCLUDE_EXPIRED", False))


def _candidates(*, product, branch, exclude_expired: Optional[bool] = None, today=None):
    if exclude_expired is None:
        exclude_expired = _exclude_expired_default()

    qs = StockBatch.objects.filter(
        product_id=_id_of(product),
        branch_id=_id_of(branch),
        quantity_remaining__gt=0,
    )

    if exclude_expired:
        today = today or timezone.localdate()
        # undated batches never expire
        qs = qs.exclude(expiry_date__lt=today)

    return qs


def rank_batches(*, product, branch, exclude_expired: Optional[bool] = None, today=None):
    """
    Full FEFO ordering of the candidate batches as a queryset.
    """
    return _candidates(
        product=product,
        branch=branch,
        exclude_expired=exclude_expired,
        today=today,
    ).order_by(
        F("expiry_date").asc(nulls_last=True),
        "created_at",
        "batch_number",
        "id",
    )


def list_batches(product, branch, exclude_expired: bool = False):
    """
    Batch query interface: in-stock batches for (product, branch) in FEFO order.
    """
    return list(
        rank_batches(
            product=product,
            branch=branch,
            exclude_expired=exclude_expired,
        ).select_related("product", "branch")
    )


def _override_is_usable(*, batch, product, branch, quantity: int, exclude_expired) -> bool:
    batch_id = _id_of(batch)
    if batch_id is None:
        return False

    try:
        candidate = (
            _candidates(product=product, branch=branch, exclude_expired=exclude_expired)
            .filter(pk=batch_id)
            .first()
        )
    except (ValidationError, ValueError):
        # malformed id: fall back to FEFO
        return False

    if candidate is None:
        return False

    return int(candidate.quantity_remaining) >= int(quantity or 1)


def select_batch(
    product,
    branch,
    *,
    quantity: Optional[int] = None,
    batch=None,
    exclude_expired: Optional[bool] = None,
) -> Optional[StockBatch]:
    """
    Return the batch a line should draw from, or None when nothing is available.

    quantity only matters for the override check. Without a usable override
    the head of the FEFO order is returned even when it cannot cover the
    whole quantity; allocate() plans the split.
    """
    if product is None or branch is None:
        return None

    if batch is not None and _override_is_usable(
        batch=batch,
        product=product,
        branch=branch,
        quantity=quantity or 1,
        exclude_expired=exclude_expired,
    ):
        return StockBatch.objects.get(pk=_id_of(batch))

    ranked = rank_batches(product=product, branch=branch, exclude_expired=exclude_expired)
    return ranked.first()


def allocate(
    *,
    product,
    branch,
    quantity: int,
    batch=None,
    reserved: Optional[dict] = None,
    exclude_expired: Optional[bool] = None,
) -> list[BatchDraw]:
    """
    Plan which batches cover `quantity` units.

    - reserved maps batch id -> units already promised to earlier lines of the
      same request, so two lines never plan the same units twice.
    - Returns an empty list when the total available is short; the caller
      decides how to reject.
    """
    reserved = reserved or {}
    qty = int(quantity)
    if qty <= 0:
        return []

    def _available(b: StockBatch) -> int:
        return int(b.quantity_remaining) - int(reserved.get(b.pk, 0))

    if batch is not None:
        chosen = select_batch(
            product,
            branch,
            quantity=qty,
            batch=batch,
            exclude_expired=exclude_expired,
        )
        if chosen is not None and str(chosen.pk) == str(_id_of(batch)) and _available(chosen) >= qty:
            return [BatchDraw(batch=chosen, quantity=qty)]

    draws: list[BatchDraw] = []
    remaining = qty

    for candidate in rank_batches(product=product, branch=branch, exclude_expired=exclude_expired):
        if remaining <= 0:
            break

        available = _available(candidate)
        if available <= 0:
            continue

        take = min(available, remaining)
        draws.append(BatchDraw(batch=candidate, quantity=take))
        remaining -= take

    if remaining > 0:
        return []

    return draws


def available_quantity(*, product, branch, exclude_expired: Optional[bool] = None) -> int:
    return sum(
        int(b.quantity_remaining)
        for b in _candidates(product=product, branch=branch, exclude_expired=exclude_expired)
    )

# sales/models/sale_line.py

"""
SALE LINE (IMMUTABLE SNAPSHOT)

One line = one product drawn from ONE batch.

Notes:
- A requested line that spans batches is persisted as one SaleLine per batch
- unit_price is snapshotted from the batch at sale time
- net_amount is the line's share of Sale.total_amount; the lines of a sale
  add up to it exactly
- the batch reference is permanent (refunds restore into it)
- append-only: never updated, never deleted
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from .sale import Sale


class SaleLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.ForeignKey(
        Sale,
        on_delete=models.PROTECT,
        related_name="lines",
    )

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="sale_lines",
    )

    batch = models.ForeignKey(
        "products.StockBatch",
        on_delete=models.PROTECT,
        related_name="sale_lines",
    )

    position = models.PositiveIntegerField(default=0)

    quantity = models.PositiveIntegerField()

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Batch selling price at time of sale (snapshot).",
    )

    line_discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    discount_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    line_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="unit_price × quantity − discount_amount",
    )

    net_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="line_total less this line's share of the order discount; what a full refund pays back.",
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["position", "created_at"]
        indexes = [
            models.Index(fields=["sale", "position"], name="saleline_sale_pos_idx"),
            models.Index(fields=["product", "created_at"], name="saleline_product_created_idx"),
            models.Index(fields=["batch"], name="saleline_batch_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["sale", "position"],
                name="uniq_saleline_position_per_sale",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="chk_saleline_qty_gt_zero",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("SaleLine records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("SaleLine records are immutable and cannot be deleted")

    @property
    def quantity_refunded(self) -> int:
        return int(self.refund_lines.aggregate(total=Sum("quantity")).get("total") or 0)

    @property
    def quantity_refundable(self) -> int:
        return max(0, int(self.quantity) - self.quantity_refunded)

    def __str__(self):
        return f"{self.product} x {self.quantity}"

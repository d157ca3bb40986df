# sales/models/refund_line.py

"""
REFUND LINE (PARTIAL REFUND LEDGER)

Refunded quantity for ONE SaleLine. Batch and unit price are copied from the
sale line so the stock reversal and the money reversal stay traceable.
"""

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .refund import Refund
from .sale_line import SaleLine


class RefundLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    refund = models.ForeignKey(
        Refund,
        on_delete=models.PROTECT,
        related_name="lines",
    )

    sale_line = models.ForeignKey(
        SaleLine,
        on_delete=models.PROTECT,
        related_name="refund_lines",
    )

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="refund_lines",
    )

    batch = models.ForeignKey(
        "products.StockBatch",
        on_delete=models.PROTECT,
        related_name="refund_lines",
    )

    quantity = models.PositiveIntegerField()

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Copied from the sale line.",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Refunded money for this line, after line and order discounts.",
    )

    reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["sale_line", "created_at"], name="refundline_line_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="chk_refundline_qty_gt_zero",
            ),
        ]

    def clean(self):
        if self.sale_line_id:
            if self.product_id and self.product_id != self.sale_line.product_id:
                raise ValidationError("RefundLine.product must match the sale line product")
            if self.batch_id and self.batch_id != self.sale_line.batch_id:
                raise ValidationError("RefundLine.batch must match the sale line batch")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("RefundLine records are immutable")
        self.clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("RefundLine records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.product} x {self.quantity} (refund)"

# products/models/stock_batch.py

"""
One delivery of one product into one branch.

quantity_received records what arrived and is fixed at creation.
quantity_remaining is what is left; only the sale, refund and adjustment
services move it, and each move leaves a StockMovement behind. is_active
mirrors quantity_remaining > 0 and is recomputed on every save.

selling_price is the unit price a sale snapshots. expiry_date is optional;
undated stock is sold after everything that expires.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone


class StockBatch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.PROTECT,
        related_name="stock_batches",
    )

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="stock_batches",
    )

    batch_number = models.CharField(
        max_length=128,
        help_text="Supplier / delivery batch reference",
    )

    expiry_date = models.DateField(null=True, blank=True)

    quantity_received = models.PositiveIntegerField(
        help_text="Quantity delivered (immutable)"
    )

    quantity_remaining = models.PositiveIntegerField(
        default=0,
        help_text="Remaining quantity (service-managed only)",
    )

    selling_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Unit selling price for this batch.",
    )

    # derived, NEVER edited directly
    is_active = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["expiry_date", "created_at"]
        verbose_name_plural = "stock batches"
        indexes = [
            models.Index(fields=["branch", "product", "expiry_date"], name="batch_branch_prod_exp_idx"),
            models.Index(fields=["branch", "created_at"], name="batch_branch_created_idx"),
            models.Index(fields=["expiry_date"], name="batch_expiry_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["branch", "product", "batch_number"],
                name="unique_batch_per_branch_product",
            ),
            models.CheckConstraint(
                condition=Q(quantity_received__gt=0),
                name="chk_stockbatch_qty_received_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__gte=0),
                name="chk_stockbatch_qty_remaining_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(selling_price__gte=0),
                name="chk_stockbatch_selling_price_gte_zero",
            ),
        ]

    FROZEN_FIELDS = ("quantity_received", "product_id", "branch_id")

    def clean(self):
        errors = {}
        if self.quantity_received is None or self.quantity_received <= 0:
            errors["quantity_received"] = "A batch must receive at least one unit"
        if self.quantity_remaining is None or self.quantity_remaining < 0:
            errors["quantity_remaining"] = "Remaining stock cannot be negative"
        if self.selling_price is None or Decimal(self.selling_price) < 0:
            errors["selling_price"] = "Selling price cannot be negative"
        if self.product_id and self.branch_id and self.product.branch_id != self.branch_id:
            errors["branch"] = "A batch must sit in its product's branch"
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if not self._state.adding:
            stored = StockBatch.objects.filter(pk=self.pk).values(*self.FROZEN_FIELDS).first()
            changed = [f for f in self.FROZEN_FIELDS if stored and getattr(self, f) != stored[f]]
            if changed:
                raise ValidationError(f"Batch {self.batch_number}: {', '.join(changed)} cannot change")

        self.is_active = int(self.quantity_remaining or 0) > 0

        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "quantity_remaining" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"is_active"}

        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        from products.models.stock_movement import StockMovement

        if StockMovement.objects.filter(batch=self).exists():
            raise ValidationError(f"Batch {self.batch_number} has ledger history and cannot be deleted")
        return super().delete(*args, **kwargs)

    def is_expired(self, today=None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < (today or timezone.localdate())

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        branch_name = getattr(self.branch, "name", "Branch")
        return f"{branch_name} | {product_name} | Batch {self.batch_number}"

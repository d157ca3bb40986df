# products/models/stock_movement.py

"""
One line of the inventory ledger.

Rows are inserted once and never updated or deleted. Summed per batch with
signed_quantity they must reproduce StockBatch.quantity_remaining; the check
lives in products/services/stock_ledger.py.

What a row may point at depends on its type: a sale deduction (OUT) names
its sale, a refund restock (RETURN) names its refund, and batch, product and
branch always describe the same stock.
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from .stock_batch import StockBatch


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        IN = "IN", "Stock In"
        OUT = "OUT", "Stock Out"
        RETURN = "RETURN", "Refund Return"
        ADJUSTMENT = "ADJUSTMENT", "Manual Adjustment"

    class Direction(models.TextChoices):
        INCREASE = "INCREASE", "Increase"
        DECREASE = "DECREASE", "Decrease"

    TYPE_TO_DIRECTION = {
        MovementType.IN: Direction.INCREASE,
        MovementType.RETURN: Direction.INCREASE,
        MovementType.OUT: Direction.DECREASE,
        MovementType.ADJUSTMENT: None,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    movement_type = models.CharField(max_length=10, choices=MovementType.choices)
    direction = models.CharField(max_length=8, choices=Direction.choices)

    quantity = models.PositiveIntegerField()

    product = models.ForeignKey(
        "products.Product", on_delete=models.PROTECT, related_name="stock_movements"
    )
    batch = models.ForeignKey(
        StockBatch, on_delete=models.PROTECT, related_name="stock_movements"
    )
    branch = models.ForeignKey(
        "branches.Branch", on_delete=models.PROTECT, related_name="stock_movements"
    )

    sale = models.ForeignKey(
        "sales.Sale",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    refund = models.ForeignKey(
        "sales.Refund",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["branch", "created_at"], name="move_branch_created_idx"),
            models.Index(fields=["movement_type"], name="move_type_idx"),
            models.Index(fields=["product", "created_at"], name="move_product_created_idx"),
            models.Index(fields=["batch", "created_at"], name="move_batch_created_idx"),
            models.Index(fields=["sale", "created_at"], name="move_sale_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="chk_stockmovement_qty_gt_zero",
            ),
        ]

    def _direction_error(self):
        if self.movement_type not in self.TYPE_TO_DIRECTION:
            return f"Unknown movement type {self.movement_type!r}"
        fixed = self.TYPE_TO_DIRECTION[self.movement_type]
        if fixed is None and not self.direction:
            return "An adjustment must say whether it adds or removes stock"
        if fixed is not None and self.direction and self.direction != fixed:
            return f"{self.movement_type} movements always {fixed.lower()} stock"
        return None

    def _reference_error(self):
        if self.movement_type == self.MovementType.OUT and not self.sale_id:
            return "OUT movements must reference a sale"
        if self.movement_type == self.MovementType.RETURN and not self.refund_id:
            return "RETURN movements must reference a refund"
        return None

    def _batch_error(self):
        if not self.batch_id:
            return None
        owner = StockBatch.objects.filter(pk=self.batch_id).values("product_id", "branch_id").first()
        if owner is None:
            return None
        if self.product_id and owner["product_id"] != self.product_id:
            return "Batch does not belong to product"
        if self.branch_id and owner["branch_id"] != self.branch_id:
            return "Batch does not belong to branch"
        return None

    def clean(self):
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError("quantity must be greater than zero")

        problems = [p for p in (self._direction_error(), self._reference_error(), self._batch_error()) if p]
        if problems:
            raise ValidationError(problems)

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Ledger rows are written once and never edited")

        if not self.direction:
            self.direction = self.TYPE_TO_DIRECTION.get(self.movement_type) or ""

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Ledger rows cannot be deleted")

    @property
    def signed_quantity(self) -> int:
        qty = int(self.quantity or 0)
        return qty if self.direction == self.Direction.INCREASE else -qty

    @property
    def reference_id(self):
        return self.refund_id or self.sale_id

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | {self.movement_type} | {self.quantity}"

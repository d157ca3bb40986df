# products/models/product.py

import uuid

from django.db import models
from django.db.models import Sum


class Product(models.Model):
    """
    Something a branch sells, counted in unit_label units.

    Holds no quantity and no price of its own. Both live on its StockBatch
    rows, and a sale copies the batch price onto the line it writes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.PROTECT,
        related_name="products",
    )

    name = models.CharField(max_length=255, db_index=True)

    unit_label = models.CharField(
        max_length=50,
        blank=True,
        default="units",
        help_text='Unit of sale, e.g. "tablets", "bottles".',
    )

    barcode = models.CharField(max_length=128, null=True, blank=True, db_index=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["branch", "name"], name="product_branch_name_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def total_stock_db(self) -> int:
        totals = self.stock_batches.aggregate(total=Sum("quantity_remaining"))
        return totals["total"] or 0

"""
======================================================
PATH: products/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Product, StockBatch, StockMovement

StockMovement.sale / StockMovement.refund are added in 0002 once the sales
tables exist.
"""

from __future__ import annotations

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("branches", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=255, db_index=True)),
                (
                    "unit_label",
                    models.CharField(
                        max_length=50,
                        blank=True,
                        default="units",
                        help_text='Unit of sale, e.g. "tablets", "bottles".',
                    ),
                ),
                (
                    "barcode",
                    models.CharField(max_length=128, null=True, blank=True, db_index=True),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="products",
                        to="branches.branch",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["branch", "name"], name="product_branch_name_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockBatch",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                (
                    "batch_number",
                    models.CharField(
                        max_length=128,
                        help_text="Supplier / delivery batch reference",
                    ),
                ),
                ("expiry_date", models.DateField(null=True, blank=True)),
                (
                    "quantity_received",
                    models.PositiveIntegerField(help_text="Quantity delivered (immutable)"),
                ),
                (
                    "quantity_remaining",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Remaining quantity (service-managed only)",
                    ),
                ),
                (
                    "selling_price",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        help_text="Unit selling price for this batch.",
                    ),
                ),
                ("is_active", models.BooleanField(default=False)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, db_index=True),
                ),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_batches",
                        to="branches.branch",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_batches",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["expiry_date", "created_at"],
                "verbose_name_plural": "stock batches",
                "indexes": [
                    models.Index(
                        fields=["branch", "product", "expiry_date"],
                        name="batch_branch_prod_exp_idx",
                    ),
                    models.Index(fields=["branch", "created_at"], name="batch_branch_created_idx"),
                    models.Index(fields=["expiry_date"], name="batch_expiry_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("branch", "product", "batch_number"),
                        name="unique_batch_per_branch_product",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_received__gt", 0)),
                        name="chk_stockbatch_qty_received_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_remaining__gte", 0)),
                        name="chk_stockbatch_qty_remaining_gte_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("selling_price__gte", 0)),
                        name="chk_stockbatch_selling_price_gte_zero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                (
                    "movement_type",
                    models.CharField(
                        max_length=10,
                        choices=[
                            ("IN", "Stock In"),
                            ("OUT", "Stock Out"),
                            ("RETURN", "Refund Return"),
                            ("ADJUSTMENT", "Manual Adjustment"),
                        ],
                    ),
                ),
                (
                    "direction",
                    models.CharField(
                        max_length=8,
                        choices=[("INCREASE", "Increase"), ("DECREASE", "Decrease")],
                    ),
                ),
                ("quantity", models.PositiveIntegerField()),
                ("reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="products.stockbatch",
                    ),
                ),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="branches.branch",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_movements",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["branch", "created_at"], name="move_branch_created_idx"),
                    models.Index(fields=["movement_type"], name="move_type_idx"),
                    models.Index(fields=["product", "created_at"], name="move_product_created_idx"),
                    models.Index(fields=["batch", "created_at"], name="move_batch_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="chk_stockmovement_qty_gt_zero",
                    ),
                ],
            },
        ),
    ]

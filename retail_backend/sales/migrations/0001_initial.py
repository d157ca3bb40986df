"""
======================================================
PATH: sales/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Sale, SaleLine, Refund, RefundLine
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def _uuid_pk():
    return (
        "id",
        models.UUIDField(
            primary_key=True,
            default=uuid.uuid4,
            editable=False,
            serialize=False,
        ),
    )


def _money(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=2, **kwargs)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("branches", "0001_initial"),
        ("products", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                _uuid_pk(),
                (
                    "invoice_no",
                    models.CharField(
                        max_length=64,
                        unique=True,
                        blank=True,
                        help_text="System-generated invoice / receipt number",
                    ),
                ),
                ("subtotal_amount", _money(default=Decimal("0.00"))),
                (
                    "order_discount_percent",
                    models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00")),
                ),
                ("discount_amount", _money(default=Decimal("0.00"))),
                ("total_amount", _money(default=Decimal("0.00"))),
                (
                    "payment_method",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("CASH", "Cash"),
                            ("CARD", "Card"),
                            ("MOBILE", "Mobile Money"),
                            ("BANK_TRANSFER", "Bank Transfer"),
                        ],
                        default="CASH",
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("PENDING", "Pending"),
                            ("COMPLETED", "Completed"),
                            ("FAILED", "Failed"),
                        ],
                        default="COMPLETED",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("PENDING", "Pending"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                            ("REFUNDED", "Refunded"),
                        ],
                        default="COMPLETED",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(null=True, blank=True)),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="branches.branch",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="sales",
                        help_text="Cashier / staff who processed the sale",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["branch", "created_at"], name="sale_branch_created_idx"),
                    models.Index(fields=["status"], name="sale_status_idx"),
                    models.Index(fields=["invoice_no"], name="sale_invoice_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("order_discount_percent__gte", 0),
                            ("order_discount_percent__lte", 100),
                        ),
                        name="chk_sale_order_discount_pct_range",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gte", 0)),
                        name="chk_sale_total_gte_zero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleLine",
            fields=[
                _uuid_pk(),
                ("position", models.PositiveIntegerField(default=0)),
                ("quantity", models.PositiveIntegerField()),
                (
                    "unit_price",
                    _money(help_text="Batch selling price at time of sale (snapshot)."),
                ),
                (
                    "line_discount_percent",
                    models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00")),
                ),
                ("discount_amount", _money(default=Decimal("0.00"))),
                ("line_total", _money(help_text="unit_price × quantity − discount_amount")),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, db_index=True),
                ),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sale_lines",
                        to="products.stockbatch",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sale_lines",
                        to="products.product",
                    ),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                        to="sales.sale",
                    ),
                ),
            ],
            options={
                "ordering": ["position", "created_at"],
                "indexes": [
                    models.Index(fields=["sale", "position"], name="saleline_sale_pos_idx"),
                    models.Index(
                        fields=["product", "created_at"],
                        name="saleline_product_created_idx",
                    ),
                    models.Index(fields=["batch"], name="saleline_batch_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("sale", "position"),
                        name="uniq_saleline_position_per_sale",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="chk_saleline_qty_gt_zero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Refund",
            fields=[
                _uuid_pk(),
                ("reason", models.TextField(blank=True, default="")),
                ("total_amount", _money(default=Decimal("0.00"))),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, db_index=True),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="sales.sale",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="refunds",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["sale", "created_at"], name="refund_sale_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RefundLine",
            fields=[
                _uuid_pk(),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price", _money(help_text="Copied from the sale line.")),
                (
                    "amount",
                    _money(
                        help_text="Refunded money for this line, after line and order discounts."
                    ),
                ),
                ("reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refund_lines",
                        to="products.stockbatch",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refund_lines",
                        to="products.product",
                    ),
                ),
                (
                    "refund",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                        to="sales.refund",
                    ),
                ),
                (
                    "sale_line",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refund_lines",
                        to="sales.saleline",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["sale_line", "created_at"],
                        name="refundline_line_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="chk_refundline_qty_gt_zero",
                    ),
                ],
            },
        ),
    ]

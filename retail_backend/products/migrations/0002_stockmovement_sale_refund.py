"""
======================================================
PATH: products/migrations/0002_stockmovement_sale_refund.py
======================================================
MIGRATION: link StockMovement to Sale / Refund
"""

from __future__ import annotations

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("products", "0001_initial"),
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="stockmovement",
            name="sale",
            field=models.ForeignKey(
                null=True,
                blank=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="stock_movements",
                to="sales.sale",
            ),
        ),
        migrations.AddField(
            model_name="stockmovement",
            name="refund",
            field=models.ForeignKey(
                null=True,
                blank=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="stock_movements",
                to="sales.refund",
            ),
        ),
        migrations.AddIndex(
            model_name="stockmovement",
            index=models.Index(fields=["sale", "created_at"], name="move_sale_created_idx"),
        ),
    ]

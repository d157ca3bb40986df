"""
======================================================
PATH: sales/migrations/0002_saleline_net_amount.py
======================================================
MIGRATION: ADD SaleLine.net_amount

Backfills existing sales by splitting Sale.discount_amount across their lines
(largest remainder), so the lines of every sale add up to its total.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import migrations, models

from sales.services.pricing import net_line_amounts


def backfill_net_amounts(apps, schema_editor):
    Sale = apps.get_model("sales", "Sale")
    SaleLine = apps.get_model("sales", "SaleLine")

    for sale in Sale.objects.all().iterator():
        lines = list(SaleLine.objects.filter(sale=sale).order_by("position", "created_at"))
        if not lines:
            continue

        nets = net_line_amounts(
            line_totals=[line.line_total for line in lines],
            discount_amount=sale.discount_amount,
        )
        for line, net in zip(lines, nets):
            line.net_amount = net
        SaleLine.objects.bulk_update(lines, ["net_amount"])


class Migration(migrations.Migration):
    dependencies = [
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="saleline",
            name="net_amount",
            field=models.DecimalField(
                decimal_places=2,
                default=Decimal("0.00"),
                help_text="line_total less this line's share of the order discount; what a full refund pays back.",
                max_digits=12,
            ),
        ),
        migrations.RunPython(backfill_net_amounts, migrations.RunPython.noop),
    ]

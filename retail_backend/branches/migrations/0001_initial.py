"""
======================================================
PATH: branches/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Branch
"""

from __future__ import annotations

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Branch",
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
                ("name", models.CharField(max_length=255)),
                (
                    "code",
                    models.CharField(
                        max_length=50,
                        null=True,
                        blank=True,
                        db_index=True,
                        help_text="Unique branch code (optional). If set, must be unique.",
                    ),
                ),
                ("address", models.TextField(blank=True)),
                ("phone", models.CharField(max_length=50, blank=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "verbose_name_plural": "branches",
            },
        ),
        migrations.AddConstraint(
            model_name="branch",
            constraint=models.UniqueConstraint(
                fields=("code",),
                condition=models.Q(("code__isnull", False), models.Q(("code", ""), _negated=True)),
                name="uniq_branch_code_when_present",
            ),
        ),
    ]

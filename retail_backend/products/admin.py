# products/admin.py
"""
Back-office screens for products and stock.

Stock is received by adding rows to the batch inline on a product. Those rows
are never saved by the admin itself: each one is handed to receive_batch() so
the batch and its opening IN movement are written together. Rows that already
exist are frozen, and batches and movements have no edit screens at all.

Unsaved inline instances already carry a UUID pk (default=uuid4), so "is
this row new" is answered from _state.adding with a DB check as fallback.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib import admin
from django.core.exceptions import ValidationError
from django.forms.models import BaseInlineFormSet
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.stock_ledger import receive_batch

EXPIRY_WARNING_DAYS = 30


def _already_saved(batch: StockBatch | None) -> bool:
    if batch is None:
        return False
    if not batch._state.adding:
        return True
    return bool(batch.pk) and StockBatch.objects.filter(pk=batch.pk).exists()


def _left_empty(data: dict) -> bool:
    return not any(
        (
            (data.get("batch_number") or "").strip(),
            data.get("expiry_date"),
            data.get("quantity_received") not in (None, "", 0),
            data.get("selling_price") not in (None, ""),
        )
    )


def _receipt_rows(formset):
    """(form, cleaned_data) for every inline row that describes a new delivery."""
    for form in formset.forms:
        data = getattr(form, "cleaned_data", None)
        if not data or data.get("DELETE"):
            continue
        if _already_saved(form.instance) or _left_empty(data):
            continue
        yield form, data


class ViewOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# -----------------------------------------------------
# stock receipt inline
# -----------------------------------------------------

class StockReceiptFormSet(BaseInlineFormSet):
    def _receipt_errors(self, data: dict) -> list[tuple[str | None, str]]:
        errors = []

        qty = data.get("quantity_received")
        if qty in (None, "") or int(qty) <= 0:
            errors.append(("quantity_received", "Received quantity must be greater than zero."))

        if data.get("selling_price") in (None, ""):
            errors.append(("selling_price", "A selling price is required."))

        batch_number = (data.get("batch_number") or "").strip()
        if batch_number and self.instance.pk:
            taken = StockBatch.objects.filter(
                branch_id=self.instance.branch_id,
                product_id=self.instance.pk,
                batch_number=batch_number,
            ).exists()
            if taken:
                errors.append(("batch_number", f"Batch {batch_number} was already received for this product."))

        return errors

    def clean(self):
        super().clean()

        if not getattr(self.instance, "branch_id", None):
            raise ValidationError("Choose the product's branch before receiving stock.")

        failed = False
        for form in self.forms:
            data = getattr(form, "cleaned_data", None)
            if data is None:
                continue

            if data.get("DELETE"):
                form.add_error(None, "Received batches stay on record and cannot be removed.")
                failed = True
            elif _already_saved(form.instance) and form.has_changed():
                form.add_error(None, "Received batches are frozen. Record an adjustment instead.")
                failed = True

        for form, data in _receipt_rows(self):
            for field, message in self._receipt_errors(data):
                form.add_error(field, message)
                failed = True

        if failed:
            raise ValidationError("Some stock receipt rows need attention.")


class StockReceiptInline(admin.TabularInline):
    model = StockBatch
    formset = StockReceiptFormSet
    extra = 1
    can_delete = False

    fields = (
        "batch_number",
        "expiry_date",
        "quantity_received",
        "selling_price",
        "quantity_remaining",
        "is_active",
        "created_at",
    )
    readonly_fields = ("quantity_remaining", "is_active", "created_at")

    def get_formset(self, request, obj=None, **kwargs):
        formset = super().get_formset(request, obj, **kwargs)
        # blank means "generate one"
        formset.form.base_fields["batch_number"].required = False
        return formset


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "branch", "unit_label", "barcode", "total_stock_db", "is_active", "created_at")
    list_filter = ("is_active", "branch")
    search_fields = ("name", "barcode")
    ordering = ("name",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [StockReceiptInline]

    def save_formset(self, request, form, formset, change):
        if formset.model is not StockBatch:
            return super().save_formset(request, form, formset, change)

        product = form.instance
        received = [
            receive_batch(
                product=product,
                branch=product.branch,
                quantity_received=int(data["quantity_received"]),
                selling_price=data["selling_price"],
                expiry_date=data.get("expiry_date"),
                batch_number=(data.get("batch_number") or "").strip() or None,
                user=request.user,
                reason="Stock receipt (admin)",
            )
            for _form, data in _receipt_rows(formset)
        ]

        # read by construct_change_message()
        formset.new_objects = received
        formset.changed_objects = []
        formset.deleted_objects = []


# -----------------------------------------------------
# ledger views
# -----------------------------------------------------

@admin.register(StockBatch)
class StockBatchAdmin(ViewOnlyAdmin):
    list_display = (
        "product",
        "branch",
        "batch_number",
        "expiry_date",
        "quantity_received",
        "quantity_remaining",
        "selling_price",
        "expiry_status",
        "is_active",
        "created_at",
    )
    list_filter = ("branch", "is_active", "expiry_date")
    search_fields = ("batch_number", "product__name")
    ordering = ("expiry_date", "created_at")

    @admin.display(description="Expiry")
    def expiry_status(self, obj):
        if obj.expiry_date is None:
            return "NO EXPIRY"
        today = timezone.localdate()
        if obj.is_expired(today):
            return "EXPIRED"
        if obj.expiry_date <= today + timedelta(days=EXPIRY_WARNING_DAYS):
            return "SOON"
        return "OK"


@admin.register(StockMovement)
class StockMovementAdmin(ViewOnlyAdmin):
    list_display = (
        "created_at",
        "movement_type",
        "direction",
        "quantity",
        "product",
        "batch",
        "branch",
        "sale",
        "refund",
        "performed_by",
    )
    list_filter = ("movement_type", "direction", "branch")
    search_fields = ("product__name", "batch__batch_number", "reason")
    ordering = ("-created_at",)

# sales/admin.py

"""
Sales admin: view-only. Sales and refunds are written by the transaction
managers only; admin exists for audit visibility.
"""

from django.contrib import admin

from sales.models import Refund, RefundLine, Sale, SaleLine


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class SaleLineInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = SaleLine
    extra = 0
    fields = (
        "position",
        "product",
        "batch",
        "quantity",
        "unit_price",
        "line_discount_percent",
        "discount_amount",
        "line_total",
        "net_amount",
    )
    readonly_fields = fields


class RefundLineInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = RefundLine
    extra = 0
    fields = ("sale_line", "product", "batch", "quantity", "unit_price", "amount", "reason")
    readonly_fields = fields


@admin.register(Sale)
class SaleAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "invoice_no",
        "branch",
        "status",
        "payment_method",
        "payment_status",
        "total_amount",
        "user",
        "created_at",
    )
    list_filter = ("status", "payment_method", "payment_status", "branch")
    search_fields = ("invoice_no",)
    ordering = ("-created_at",)
    inlines = [SaleLineInline]


@admin.register(Refund)
class RefundAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "sale", "total_amount", "user", "created_at")
    search_fields = ("sale__invoice_no", "reason")
    ordering = ("-created_at",)
    inlines = [RefundLineInline]

# sales/models/sale.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

User = settings.AUTH_USER_MODEL

ZERO = Decimal("0.00")


def _money(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=2, default=ZERO, **kwargs)


def _next_invoice_no() -> str:
    return f"{timezone.now():INV%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class Sale(models.Model):
    """
    Header of one checkout at one branch.

    Written once by the sale transaction manager together with its lines
    (related_name="lines", ordered by position). After that the money columns
    are frozen and the only status change left is COMPLETED -> REFUNDED,
    made by the refund manager. Sales are never deleted.
    """

    STATUS_PENDING = "PENDING"
    STATUS_COMPLETED = "COMPLETED"
    STATUS_CANCELLED = "CANCELLED"
    STATUS_REFUNDED = "REFUNDED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    # statuses whose money columns can no longer move
    LOCKED_STATUSES = (STATUS_COMPLETED, STATUS_REFUNDED)

    FROZEN_FIELDS = (
        "branch_id",
        "user_id",
        "subtotal_amount",
        "order_discount_percent",
        "discount_amount",
        "total_amount",
        "payment_method",
        "payment_status",
        "created_at",
        "completed_at",
    )

    class PaymentMethod(models.TextChoices):
        CASH = "CASH", "Cash"
        CARD = "CARD", "Card"
        MOBILE = "MOBILE", "Mobile Money"
        BANK_TRANSFER = "BANK_TRANSFER", "Bank Transfer"

    class PaymentStatus(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COMPLETED = "COMPLETED", "Completed"
        FAILED = "FAILED", "Failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice_no = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated invoice / receipt number",
    )
    branch = models.ForeignKey("branches.Branch", on_delete=models.PROTECT, related_name="sales")
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales",
        help_text="Cashier / staff who processed the sale",
    )

    subtotal_amount = _money()
    order_discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    discount_amount = _money()
    total_amount = _money()

    payment_method = models.CharField(max_length=32, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.COMPLETED)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_COMPLETED)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["branch", "created_at"], name="sale_branch_created_idx"),
            models.Index(fields=["status"], name="sale_status_idx"),
            models.Index(fields=["invoice_no"], name="sale_invoice_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(order_discount_percent__gte=0) & Q(order_discount_percent__lte=100),
                name="chk_sale_order_discount_pct_range",
            ),
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name="chk_sale_total_gte_zero",
            ),
        ]

    def _check_frozen(self, stored: "Sale"):
        if stored.status not in self.LOCKED_STATUSES:
            return

        refunding = (stored.status, self.status) == (self.STATUS_COMPLETED, self.STATUS_REFUNDED)
        if self.status != stored.status and not refunding:
            raise ValueError(f"Sale {self.invoice_no} is {stored.status}; cannot move to {self.status}")

        changed = [f for f in self.FROZEN_FIELDS if getattr(self, f) != getattr(stored, f)]
        if changed:
            raise ValueError(f"Sale {self.invoice_no} is {stored.status}; {', '.join(changed)} cannot change")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            stored = Sale.objects.filter(pk=self.pk).first()
            if stored is not None:
                self._check_frozen(stored)

        self.invoice_no = self.invoice_no or _next_invoice_no()
        if self.status == self.STATUS_COMPLETED and self.completed_at is None:
            self.completed_at = timezone.now()

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Sales are financial records and cannot be deleted")

    def __str__(self):
        return f"{self.invoice_no} | {self.total_amount}"

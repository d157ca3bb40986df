from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from branches.models import Branch
from products.models import Product, StockBatch, StockMovement
from products.services.stock_ledger import find_inconsistent_batches, receive_batch
from sales.models import Refund, RefundLine, Sale
from sales.services.exceptions import (
    InvalidRequest,
    InvalidSaleState,
    OverRefund,
    SaleAlreadyRefunded,
    SaleNotFound,
)
from sales.services.refund_service import create_refund, refunded_quantities
from sales.services.sale_service import create_sale
from sales.signals import refund_completed

User = get_user_model()


class RefundTransactionTests(TestCase):
    """
    Tests for the refund transaction manager.

    GUARANTEES:
    - Stock returns to the batch it was sold from
    - Refunded quantity never exceeds sold quantity (per line)
    - Money comes from the sale line snapshot
    - Sale becomes REFUNDED only when every line is fully refunded
    """

    def setUp(self):
        today = timezone.localdate()

        self.branch = Branch.objects.create(name="Main", code="MAIN")
        self.pharmacist = User.objects.create_user(
            email="pharmacist@example.com",
            password="pass",
            role="pharmacist",
        )
        self.product = Product.objects.create(branch=self.branch, name="Cetirizine")
        self.other_product = Product.objects.create(branch=self.branch, name="Loratadine")

        self.batch_a = receive_batch(
            product=self.product,
            branch=self.branch,
            quantity_received=10,
            selling_price="30.00",
            expiry_date=today + timedelta(days=20),
            batch_number="A",
        )
        self.batch_b = receive_batch(
            product=self.product,
            branch=self.branch,
            quantity_received=10,
            selling_price="30.00",
            expiry_date=today + timedelta(days=200),
            batch_number="B",
        )
        receive_batch(
            product=self.other_product,
            branch=self.branch,
            quantity_received=5,
            selling_price="8.00",
            batch_number="L-1",
        )

        self.sale = self._sell([{"product": self.product, "quantity": 15}])

    def _sell(self, lines, **kwargs):
        return create_sale(
            branch=self.branch,
            lines=lines,
            payment_method="CARD",
            payment_status="COMPLETED",
            user=self.pharmacist,
            **kwargs,
        )

    def _refund(self, lines, sale=None, **kwargs):
        kwargs.setdefault("user", self.pharmacist)
        return create_refund(sale=sale or self.sale, lines=lines, **kwargs)

    def _remaining(self):
        self.batch_a.refresh_from_db()
        self.batch_b.refresh_from_db()
        return self.batch_a.quantity_remaining, self.batch_b.quantity_remaining

    # =====================================================
    # PARTIAL + FULL
    # =====================================================

    def test_partial_refund_restores_original_batch(self):
        refund = self._refund([{"product_id": self.product.pk, "quantity": 3}], reason="Wrong strength")

        self.sale.refresh_from_db()

        self.assertEqual(self._remaining(), (3, 5))
        self.assertEqual(refund.total_amount, Decimal("90.00"))
        self.assertEqual(self.sale.status, Sale.STATUS_COMPLETED)
        self.assertEqual(refund.lines.get().batch_id, self.batch_a.pk)

    def test_return_movement_references_refund_and_sale(self):
        refund = self._refund([{"product": self.product, "quantity": 2}])

        movement = StockMovement.objects.get(movement_type=StockMovement.MovementType.RETURN)

        self.assertEqual(movement.refund_id, refund.pk)
        self.assertEqual(movement.sale_id, self.sale.pk)
        self.assertEqual(movement.reference_id, refund.pk)
        self.assertEqual(movement.direction, StockMovement.Direction.INCREASE)
        self.assertEqual(movement.quantity, 2)

    def test_full_refund_in_two_steps_marks_sale_refunded(self):
        first = self._refund([{"product": self.product, "quantity": 3}])
        second = self._refund([{"product": self.product, "quantity": 12}])

        self.sale.refresh_from_db()

        self.assertEqual(self.sale.status, Sale.STATUS_REFUNDED)
        self.assertEqual(self._remaining(), (10, 10))
        self.assertEqual(first.total_amount + second.total_amount, self.sale.total_amount)
        self.assertEqual(find_inconsistent_batches(branch=self.branch), [])

    def test_refund_by_sale_line(self):
        second_line = self.sale.lines.get(position=2)

        self._refund([{"sale_line_id": second_line.pk, "product_id": self.product.pk, "quantity": 2}])

        self.assertEqual(self._remaining(), (0, 7))
        self.assertEqual(refunded_quantities(self.sale), {second_line.pk: 2})

    def test_refund_uses_sold_price_not_current_price(self):
        StockBatch.objects.filter(pk=self.batch_a.pk).update(selling_price="99.00")

        refund = self._refund([{"product": self.product, "quantity": 1}])

        self.assertEqual(refund.total_amount, Decimal("30.00"))
        self.assertEqual(refund.lines.get().unit_price, Decimal("30.00"))

    def test_refund_amounts_never_drift_from_charged_total(self):
        product = Product.objects.create(branch=self.branch, name="Vitamin C")
        receive_batch(
            product=product,
            branch=self.branch,
            quantity_received=3,
            selling_price="10.00",
            batch_number="VC-1",
        )
        sale = self._sell([{"product": product, "quantity": 3}], order_discount_percent="33.33")

        amounts = [
            self._refund([{"product": product, "quantity": 1}], sale=sale).total_amount
            for _ in range(3)
        ]

        self.assertEqual(amounts, [Decimal("6.67"), Decimal("6.67"), Decimal("6.66")])
        self.assertEqual(sum(amounts), sale.total_amount)

    def _cheap_product(self, name, *batches):
        product = Product.objects.create(branch=self.branch, name=name)
        for number, (qty, days) in enumerate(batches, start=1):
            receive_batch(
                product=product,
                branch=self.branch,
                quantity_received=qty,
                selling_price="0.99",
                expiry_date=timezone.localdate() + timedelta(days=days),
                batch_number=f"{name[:3].upper()}-{number}",
            )
        return product

    def test_full_refund_of_several_discounted_lines_returns_the_charged_total(self):
        products = [self._cheap_product(name, (5, 30)) for name in ("Zinc", "Iron", "Folic")]
        sale = self._sell(
            [{"product": p, "quantity": 1} for p in products],
            order_discount_percent="50",
        )

        refund = self._refund([{"product": p, "quantity": 1} for p in products], sale=sale)

        self.assertEqual(sale.total_amount, Decimal("1.48"))
        self.assertEqual(refund.total_amount, sale.total_amount)
        self.assertEqual(sum(l.net_amount for l in sale.lines.all()), sale.total_amount)
        sale.refresh_from_db()
        self.assertEqual(sale.status, Sale.STATUS_REFUNDED)

    def test_step_refunds_of_a_split_discounted_line_return_the_charged_total(self):
        split = self._cheap_product("Magnesium", (1, 10), (5, 100))
        single = self._cheap_product("Calcium", (5, 30))
        sale = self._sell(
            [{"product": split, "quantity": 2}, {"product": single, "quantity": 1}],
            order_discount_percent="50",
        )
        self.assertEqual(sale.lines.filter(product=split).count(), 2)

        first = self._refund([{"product": split, "quantity": 2}], sale=sale)
        second = self._refund([{"product": single, "quantity": 1}], sale=sale)

        self.assertEqual(first.total_amount + second.total_amount, sale.total_amount)
        self.assertEqual(
            sorted(RefundLine.objects.filter(refund__sale=sale).values_list("amount", flat=True)),
            sorted(sale.lines.values_list("net_amount", flat=True)),
        )

    # =====================================================
    # REJECTIONS
    # =====================================================

    def test_over_refund_is_rejected_without_side_effects(self):
        with self.assertRaises(OverRefund):
            self._refund([{"product": self.product, "quantity": 16}])

        self.assertEqual(self._remaining(), (0, 5))
        self.assertEqual(Refund.objects.count(), 0)
        self.assertEqual(RefundLine.objects.count(), 0)

    def test_over_refund_retry_is_rejected_the_same_way(self):
        self._refund([{"product": self.product, "quantity": 10}])

        for _ in range(2):
            with self.assertRaises(OverRefund):
                self._refund([{"product": self.product, "quantity": 6}])

        self.assertEqual(Refund.objects.count(), 1)

    def test_second_refund_of_fully_refunded_line(self):
        sale = self._sell([{"product": self.other_product, "quantity": 3}])
        self._refund([{"product": self.other_product, "quantity": 3}], sale=sale)

        with self.assertRaises(OverRefund) as ctx:
            self._refund([{"product": self.other_product, "quantity": 1}], sale=sale)

        self.assertIsInstance(ctx.exception, SaleAlreadyRefunded)

    def test_unknown_sale(self):
        with self.assertRaises(SaleNotFound):
            create_refund(sale="not-a-uuid", lines=[{"product": self.product, "quantity": 1}])

    def test_product_not_on_sale(self):
        with self.assertRaises(InvalidRequest):
            self._refund([{"product": self.other_product, "quantity": 1}])

    def test_empty_refund(self):
        with self.assertRaises(InvalidRequest):
            self._refund([])

    def test_pending_sale_cannot_be_refunded(self):
        pending = Sale.objects.create(branch=self.branch, status=Sale.STATUS_PENDING)

        with self.assertRaises(InvalidSaleState):
            self._refund([{"product": self.product, "quantity": 1}], sale=pending)

    # =====================================================
    # NOTIFICATION
    # =====================================================

    def test_refund_completed_sent_after_commit(self):
        received = []

        def receiver(sender, **kwargs):
            received.append(kwargs)

        refund_completed.connect(receiver)
        self.addCleanup(refund_completed.disconnect, receiver)

        with self.captureOnCommitCallbacks(execute=True):
            refund = self._refund([{"product": self.product, "quantity": 15}])

        self.assertEqual(received[0]["refund_id"], refund.pk)
        self.assertTrue(received[0]["sale_fully_refunded"])

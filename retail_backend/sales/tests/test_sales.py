from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from branches.models import Branch
from products.models import Product, StockBatch, StockMovement
from products.services.stock_ledger import receive_batch
from sales.models import Sale, SaleLine
from sales.services.exceptions import (
    BranchRequired,
    InsufficientStock,
    InvalidDiscount,
    InvalidQuantity,
    InvalidRequest,
)
from sales.services.sale_lifecycle import InvalidSaleTransitionError, validate_transition
from sales.services.sale_service import create_sale
from sales.signals import sale_completed

User = get_user_model()


class SaleTransactionTests(TestCase):
    """
    Tests for the sale transaction manager.

    GUARANTEES:
    - FEFO split across batches, one SaleLine per batch
    - Stock deducted exactly once, with one OUT movement per line
    - Any rejection leaves stock and tables untouched
    - Totals follow the line pricer + order totals engine
    """

    def setUp(self):
        today = timezone.localdate()

        self.branch = Branch.objects.create(name="Main", code="MAIN")
        self.other_branch = Branch.objects.create(name="Annex", code="ANX")
        self.cashier = User.objects.create_user(
            email="cashier@example.com",
            password="pass",
            role="cashier",
        )

        self.product = Product.objects.create(branch=self.branch, name="Paracetamol", unit_label="tablets")

        self.batch_a = receive_batch(
            product=self.product,
            branch=self.branch,
            quantity_received=10,
            selling_price="100.00",
            expiry_date=today + timedelta(days=30),
            batch_number="A",
        )
        self.batch_b = receive_batch(
            product=self.product,
            branch=self.branch,
            quantity_received=10,
            selling_price="100.00",
            expiry_date=today + timedelta(days=180),
            batch_number="B",
        )

    def _sell(self, lines, **kwargs):
        kwargs.setdefault("branch", self.branch)
        kwargs.setdefault("payment_method", "CASH")
        kwargs.setdefault("payment_status", "COMPLETED")
        kwargs.setdefault("user", self.cashier)
        return create_sale(lines=lines, **kwargs)

    def _remaining(self):
        self.batch_a.refresh_from_db()
        self.batch_b.refresh_from_db()
        return self.batch_a.quantity_remaining, self.batch_b.quantity_remaining

    # =====================================================
    # HAPPY PATH
    # =====================================================

    def test_line_larger_than_one_batch_is_split_fefo(self):
        sale = self._sell([{"product_id": self.product.pk, "quantity": 15}])

        lines = list(sale.lines.order_by("position"))

        self.assertEqual(
            [(l.batch_id, l.quantity, l.position) for l in lines],
            [(self.batch_a.pk, 10, 1), (self.batch_b.pk, 5, 2)],
        )
        self.assertEqual(self._remaining(), (0, 5))
        self.assertEqual(sale.status, Sale.STATUS_COMPLETED)
        self.assertIsNotNone(sale.completed_at)
        self.assertEqual(sale.total_amount, Decimal("1500.00"))

    def test_one_out_movement_per_line(self):
        sale = self._sell([{"product": self.product, "quantity": 12}])

        movements = StockMovement.objects.filter(sale=sale, movement_type=StockMovement.MovementType.OUT)

        self.assertEqual(movements.count(), 2)
        self.assertEqual(sorted(m.quantity for m in movements), [2, 10])
        self.assertTrue(all(m.performed_by_id == self.cashier.pk for m in movements))
        self.assertTrue(all(m.reference_id == sale.pk for m in movements))

    def test_discounted_sale_totals(self):
        sale = self._sell(
            [{"product": self.product, "quantity": 5, "line_discount_percent": "10"}],
            order_discount_percent="5",
        )

        line = sale.lines.get()

        self.assertEqual(line.line_total, Decimal("450.00"))
        self.assertEqual(sale.subtotal_amount, Decimal("450.00"))
        self.assertEqual(sale.discount_amount, Decimal("22.50"))
        self.assertEqual(sale.total_amount, Decimal("427.50"))
        self.assertEqual(line.net_amount, Decimal("427.50"))

    def test_split_line_costs_the_same_as_one_batch(self):
        product = Product.objects.create(branch=self.branch, name="Lozenges")
        for number, days in ((1, 10), (2, 90)):
            receive_batch(
                product=product,
                branch=self.branch,
                quantity_received=1,
                selling_price="0.15",
                expiry_date=timezone.localdate() + timedelta(days=days),
                batch_number=f"LZ-{number}",
            )

        sale = self._sell([{"product": product, "quantity": 2, "line_discount_percent": "10"}])
        lines = list(sale.lines.order_by("position"))

        self.assertEqual(len(lines), 2)
        self.assertEqual(sum(l.discount_amount for l in lines), Decimal("0.03"))
        self.assertEqual(sale.total_amount, Decimal("0.27"))

    def test_explicit_batch_override(self):
        sale = self._sell([{"product": self.product, "batch_id": self.batch_b.pk, "quantity": 3}])

        self.assertEqual(sale.lines.get().batch_id, self.batch_b.pk)
        self.assertEqual(self._remaining(), (10, 7))

    def test_unusable_override_falls_back_to_fefo(self):
        sale = self._sell([{"product": self.product, "batch": self.batch_b, "quantity": 12}])

        self.assertEqual(
            [(l.batch_id, l.quantity) for l in sale.lines.order_by("position")],
            [(self.batch_a.pk, 10), (self.batch_b.pk, 2)],
        )

    def test_two_lines_never_plan_the_same_units(self):
        sale = self._sell(
            [
                {"product": self.product, "quantity": 8},
                {"product": self.product, "quantity": 8},
            ]
        )

        lines = list(sale.lines.order_by("position"))

        self.assertEqual(
            [(l.batch_id, l.quantity) for l in lines],
            [(self.batch_a.pk, 8), (self.batch_a.pk, 2), (self.batch_b.pk, 6)],
        )
        self.assertEqual(self._remaining(), (0, 4))

    def test_unit_price_is_snapshotted(self):
        sale = self._sell([{"product": self.product, "quantity": 1}])

        StockBatch.objects.filter(pk=self.batch_a.pk).update(selling_price="250.00")

        line = SaleLine.objects.get(sale=sale)
        self.assertEqual(line.unit_price, Decimal("100.00"))

    def test_pending_payment_still_deducts_stock(self):
        sale = self._sell([{"product": self.product, "quantity": 2}], payment_status="pending")

        self.assertEqual(sale.payment_status, Sale.PaymentStatus.PENDING)
        self.assertEqual(sale.status, Sale.STATUS_COMPLETED)
        self.assertEqual(self._remaining(), (8, 10))

    def test_invoice_number_is_generated(self):
        sale = self._sell([{"product": self.product, "quantity": 1}])

        self.assertTrue(sale.invoice_no.startswith("INV"))

    # =====================================================
    # REJECTIONS (NO SIDE EFFECTS)
    # =====================================================

    def _assert_untouched(self):
        self.assertEqual(self._remaining(), (10, 10))
        self.assertEqual(Sale.objects.count(), 0)
        self.assertEqual(SaleLine.objects.count(), 0)
        self.assertFalse(StockMovement.objects.filter(movement_type=StockMovement.MovementType.OUT).exists())

    def test_insufficient_stock(self):
        with self.assertRaises(InsufficientStock) as ctx:
            self._sell([{"product": self.product, "quantity": 21}])

        self.assertEqual(ctx.exception.code, "INSUFFICIENT_STOCK")
        self._assert_untouched()

    def test_insufficient_stock_on_later_line_rolls_back_earlier_lines(self):
        with self.assertRaises(InsufficientStock):
            self._sell(
                [
                    {"product": self.product, "quantity": 15},
                    {"product": self.product, "quantity": 6},
                ]
            )

        self._assert_untouched()

    def test_missing_branch(self):
        with self.assertRaises(BranchRequired):
            self._sell([{"product": self.product, "quantity": 1}], branch=None)

        self._assert_untouched()

    def test_product_from_another_branch(self):
        with self.assertRaises(InvalidRequest):
            self._sell([{"product": self.product, "quantity": 1}], branch=self.other_branch)

        self._assert_untouched()

    def test_out_of_range_discount(self):
        with self.assertRaises(InvalidDiscount):
            self._sell([{"product": self.product, "quantity": 1, "line_discount_percent": "101"}])
        with self.assertRaises(InvalidDiscount):
            self._sell([{"product": self.product, "quantity": 1}], order_discount_percent="-1")

        self._assert_untouched()

    def test_invalid_quantity(self):
        with self.assertRaises(InvalidQuantity):
            self._sell([{"product": self.product, "quantity": 0}])

        self._assert_untouched()

    def test_unknown_payment_method(self):
        with self.assertRaises(InvalidRequest):
            self._sell([{"product": self.product, "quantity": 1}], payment_method="BITCOIN")

        self._assert_untouched()

    def test_empty_lines(self):
        with self.assertRaises(InvalidRequest):
            self._sell([])

    # =====================================================
    # NOTIFICATION
    # =====================================================

    def test_sale_completed_sent_after_commit(self):
        received = []

        def receiver(sender, **kwargs):
            received.append(kwargs)

        sale_completed.connect(receiver)
        self.addCleanup(sale_completed.disconnect, receiver)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            sale = self._sell([{"product": self.product, "quantity": 1}])
            self.assertEqual(received, [])

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(received[0]["sale_id"], sale.pk)
        self.assertEqual(received[0]["total"], Decimal("100.00"))

    def test_failing_receiver_does_not_break_the_sale(self):
        def broken(sender, **kwargs):
            raise RuntimeError("dashboard down")

        sale_completed.connect(broken)
        self.addCleanup(sale_completed.disconnect, broken)

        with self.assertLogs("sales.signals", level="ERROR"):
            with self.captureOnCommitCallbacks(execute=True):
                sale = self._sell([{"product": self.product, "quantity": 1}])

        self.assertTrue(Sale.objects.filter(pk=sale.pk).exists())


class SaleModelTests(TestCase):
    """
    Tests for Sale lifecycle and immutability.

    GUARANTEES:
    - Sale totals are preserved after completion
    - Sale state transitions obey domain rules
    - Sales cannot be deleted
    """

    def setUp(self):
        self.branch = Branch.objects.create(name="Main")
        self.sale = Sale.objects.create(
            branch=self.branch,
            subtotal_amount=Decimal("100.00"),
            total_amount=Decimal("100.00"),
            status=Sale.STATUS_COMPLETED,
        )

    def test_sale_totals_are_immutable_after_completion(self):
        self.sale.total_amount = Decimal("999.00")

        with self.assertRaises(ValueError):
            self.sale.save()

    def test_completed_sale_cannot_be_deleted(self):
        with self.assertRaises(ValueError):
            self.sale.delete()

    def test_completed_sale_can_transition_to_refunded(self):
        validate_transition(sale=self.sale, target_status=Sale.STATUS_REFUNDED)

        self.sale.status = Sale.STATUS_REFUNDED
        self.sale.save(update_fields=["status"])

        self.sale.refresh_from_db()
        self.assertEqual(self.sale.status, Sale.STATUS_REFUNDED)

    def test_completed_sale_cannot_transition_to_cancelled(self):
        with self.assertRaises(InvalidSaleTransitionError):
            validate_transition(sale=self.sale, target_status=Sale.STATUS_CANCELLED)

    def test_refunded_sale_is_terminal(self):
        self.sale.status = Sale.STATUS_REFUNDED

        with self.assertRaises(InvalidSaleTransitionError):
            validate_transition(sale=self.sale, target_status=Sale.STATUS_COMPLETED)

    def test_pending_sale_can_complete_or_cancel(self):
        pending = Sale(branch=self.branch, status=Sale.STATUS_PENDING)

        validate_transition(sale=pending, target_status=Sale.STATUS_COMPLETED)
        validate_transition(sale=pending, target_status=Sale.STATUS_CANCELLED)

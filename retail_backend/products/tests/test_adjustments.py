from django.test import TestCase

from branches.models import Branch
from products.models import Product, StockMovement
from products.services.stock_adjustments import adjust_stock_batch
from products.services.stock_ledger import receive_batch
from sales.services.exceptions import StockAdjustmentError


class StockAdjustmentTests(TestCase):
    """
    GUARANTEES:
    - Adjustments write exactly one ADJUSTMENT movement
    - Stock never goes below zero
    - A reason is mandatory
    """

    def setUp(self):
        branch = Branch.objects.create(name="Main")
        product = Product.objects.create(branch=branch, name="Cough Syrup", unit_label="bottles")
        self.batch = receive_batch(
            product=product,
            branch=branch,
            quantity_received=8,
            selling_price="4.20",
            batch_number="CS-1",
        )

    def test_decrease_records_adjustment(self):
        result = adjust_stock_batch(batch=self.batch, quantity_delta=-3, reason="Expired write-off")

        self.assertEqual(result.batch.quantity_remaining, 5)
        self.assertEqual(result.movement.movement_type, StockMovement.MovementType.ADJUSTMENT)
        self.assertEqual(result.movement.direction, StockMovement.Direction.DECREASE)
        self.assertEqual(result.movement.quantity, 3)

    def test_increase_records_adjustment(self):
        result = adjust_stock_batch(batch=self.batch, quantity_delta=4, reason="Recount")

        self.assertEqual(result.batch.quantity_remaining, 12)
        self.assertEqual(result.movement.direction, StockMovement.Direction.INCREASE)

    def test_cannot_go_below_zero(self):
        with self.assertRaises(StockAdjustmentError):
            adjust_stock_batch(batch=self.batch, quantity_delta=-9, reason="Lost")

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 8)

    def test_reason_is_required(self):
        with self.assertRaises(StockAdjustmentError):
            adjust_stock_batch(batch=self.batch, quantity_delta=-1, reason="   ")

    def test_zero_and_boolean_deltas_are_rejected(self):
        for bad in (0, True, 1.5, "abc"):
            with self.subTest(delta=bad):
                with self.assertRaises(StockAdjustmentError):
                    adjust_stock_batch(batch=self.batch, quantity_delta=bad, reason="x")

    def test_empty_batch_becomes_inactive(self):
        result = adjust_stock_batch(batch=self.batch, quantity_delta=-8, reason="Recall")

        result.batch.refresh_from_db()
        self.assertFalse(result.batch.is_active)

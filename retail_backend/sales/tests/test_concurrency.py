from unittest import mock

from django.test import TestCase

from branches.models import Branch
from products.models import Product, StockMovement
from products.services import batch_selector
from products.services.stock_adjustments import adjust_stock_batch
from products.services.stock_ledger import receive_batch
from sales.models import Sale
from sales.services.exceptions import BatchConflict
from sales.services.sale_service import create_sale


class StaleSelectionTests(TestCase):
    """
    A batch consumed between selection and locking must not be overdrawn.

    The concurrent consumer is simulated inside the planning step: the plan is
    computed first, then the batch is drawn down before the sale manager locks.

    GUARANTEES:
    - Re-validation under lock raises BatchConflict
    - No stock is deducted and no sale is persisted
    """

    def setUp(self):
        branch = Branch.objects.create(name="Main")
        self.branch = branch
        self.product = Product.objects.create(branch=branch, name="Insulin Pen")
        self.batch = receive_batch(
            product=self.product,
            branch=branch,
            quantity_received=10,
            selling_price="45.00",
            batch_number="INS-1",
        )

    def test_stale_plan_raises_batch_conflict(self):
        real_allocate = batch_selector.allocate

        def allocate_then_race(**kwargs):
            plan = real_allocate(**kwargs)
            adjust_stock_batch(batch=self.batch, quantity_delta=-8, reason="Concurrent consumer")
            return plan

        with mock.patch("sales.services.sale_service.allocate", side_effect=allocate_then_race):
            with self.assertRaises(BatchConflict) as ctx:
                create_sale(
                    branch=self.branch,
                    lines=[{"product": self.product, "quantity": 5}],
                    payment_method="CASH",
                    payment_status="COMPLETED",
                )

        self.assertEqual(ctx.exception.code, "BATCH_CONFLICT")
        self.assertEqual(Sale.objects.count(), 0)
        self.assertFalse(
            StockMovement.objects.filter(movement_type=StockMovement.MovementType.OUT).exists()
        )

        # the whole unit rolled back, including the simulated consumer
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 10)

    def test_sequential_sales_never_go_negative(self):
        for _ in range(2):
            create_sale(
                branch=self.branch,
                lines=[{"product": self.product, "quantity": 5}],
                payment_method="CASH",
                payment_status="COMPLETED",
            )

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 0)
        self.assertFalse(self.batch.is_active)

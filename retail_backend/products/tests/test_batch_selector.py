from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone

from branches.models import Branch
from products.models import Product
from products.services.batch_selector import (
    allocate,
    available_quantity,
    list_batches,
    select_batch,
)
from products.services.stock_adjustments import adjust_stock_batch
from products.services.stock_ledger import receive_batch


class BatchSelectorTests(TestCase):
    """
    Tests for FEFO batch selection.

    GUARANTEES:
    - Earliest expiry among in-stock batches wins
    - Undated batches rank after every dated batch
    - Empty batches are never selected
    - Explicit overrides are honoured only when usable
    - "Nothing available" is None / [] (never an exception)
    """

    def setUp(self):
        self.today = timezone.localdate()
        self.branch = Branch.objects.create(name="Main", code="MAIN")
        self.other_branch = Branch.objects.create(name="Annex", code="ANX")

        self.product = Product.objects.create(
            branch=self.branch,
            name="Paracetamol 500mg",
            unit_label="tablets",
        )

    def _receive(self, number, qty, expiry_days=None, price="30.00", product=None, **kwargs):
        expiry = None if expiry_days is None else self.today + timedelta(days=expiry_days)
        return receive_batch(
            product=product or self.product,
            branch=self.branch,
            quantity_received=qty,
            selling_price=price,
            expiry_date=expiry,
            batch_number=number,
            **kwargs,
        )

    # =====================================================
    # FEFO ORDERING
    # =====================================================

    def test_earliest_expiry_is_selected(self):
        self._receive("LATE", 10, expiry_days=90)
        early = self._receive("EARLY", 10, expiry_days=10)
        self._receive("MID", 10, expiry_days=40)

        chosen = select_batch(self.product, self.branch)

        self.assertEqual(chosen.pk, early.pk)

    def test_undated_batch_ranks_after_dated_batches(self):
        undated = self._receive("NODATE", 10)
        dated = self._receive("DATED", 5, expiry_days=365)

        self.assertEqual(select_batch(self.product, self.branch).pk, dated.pk)

        adjust_stock_batch(batch=dated, quantity_delta=-5, reason="Count correction")

        self.assertEqual(select_batch(self.product, self.branch).pk, undated.pk)

    def test_same_expiry_falls_back_to_receipt_order(self):
        now = timezone.now()
        second = self._receive("B-2", 10, expiry_days=30, created_at=now)
        first = self._receive("B-1", 10, expiry_days=30, created_at=now - timedelta(hours=1))

        ranked = list_batches(self.product, self.branch)

        self.assertEqual([b.pk for b in ranked], [first.pk, second.pk])

    def test_empty_batches_are_never_selected(self):
        batch = self._receive("ONLY", 3, expiry_days=30)
        adjust_stock_batch(batch=batch, quantity_delta=-3, reason="Damaged")

        self.assertIsNone(select_batch(self.product, self.branch))
        self.assertEqual(allocate(product=self.product, branch=self.branch, quantity=1), [])
        self.assertEqual(list_batches(self.product, self.branch), [])

    def test_other_branch_sees_nothing(self):
        self._receive("MAIN-1", 10, expiry_days=30)

        self.assertIsNone(select_batch(self.product, self.other_branch))
        self.assertEqual(available_quantity(product=self.product, branch=self.other_branch), 0)

    # =====================================================
    # EXPIRED BATCHES
    # =====================================================

    def test_expired_batches_stay_eligible_by_default(self):
        expired = self._receive("OLD", 10, expiry_days=-5)
        self._receive("NEW", 10, expiry_days=30)

        self.assertEqual(select_batch(self.product, self.branch).pk, expired.pk)

    @override_settings(INVENTORY_FEFO_EXCLUDE_EXPIRED=True)
    def test_expired_batches_skipped_when_policy_enabled(self):
        self._receive("OLD", 10, expiry_days=-5)
        fresh = self._receive("NEW", 10, expiry_days=30)

        self.assertEqual(select_batch(self.product, self.branch).pk, fresh.pk)

    def test_list_batches_can_exclude_expired(self):
        self._receive("OLD", 10, expiry_days=-1)
        fresh = self._receive("NEW", 10, expiry_days=1)

        batches = list_batches(self.product, self.branch, exclude_expired=True)

        self.assertEqual([b.pk for b in batches], [fresh.pk])

    # =====================================================
    # EXPLICIT OVERRIDE
    # =====================================================

    def test_usable_override_is_honoured(self):
        self._receive("EARLY", 10, expiry_days=10)
        late = self._receive("LATE", 10, expiry_days=90)

        chosen = select_batch(self.product, self.branch, quantity=4, batch=late)

        self.assertEqual(chosen.pk, late.pk)

    def test_override_that_cannot_cover_falls_back_to_fefo(self):
        early = self._receive("EARLY", 10, expiry_days=10)
        small = self._receive("SMALL", 2, expiry_days=90)

        chosen = select_batch(self.product, self.branch, quantity=5, batch=small.pk)

        self.assertEqual(chosen.pk, early.pk)

    def test_override_from_other_product_falls_back_to_fefo(self):
        other = Product.objects.create(branch=self.branch, name="Ibuprofen")
        foreign = self._receive("FOREIGN", 10, expiry_days=5, product=other)
        own = self._receive("OWN", 10, expiry_days=60)

        chosen = select_batch(self.product, self.branch, quantity=1, batch=foreign)

        self.assertEqual(chosen.pk, own.pk)

    def test_malformed_override_id_falls_back_to_fefo(self):
        own = self._receive("OWN", 10, expiry_days=60)

        chosen = select_batch(self.product, self.branch, batch="not-a-uuid")

        self.assertEqual(chosen.pk, own.pk)

    # =====================================================
    # MULTI-BATCH ALLOCATION
    # =====================================================

    def test_allocate_splits_across_batches_in_fefo_order(self):
        a = self._receive("A", 10, expiry_days=10)
        b = self._receive("B", 10, expiry_days=150)

        plan = allocate(product=self.product, branch=self.branch, quantity=15)

        self.assertEqual([(d.batch.pk, d.quantity) for d in plan], [(a.pk, 10), (b.pk, 5)])

    def test_allocate_respects_reserved_units(self):
        a = self._receive("A", 10, expiry_days=10)
        b = self._receive("B", 10, expiry_days=150)

        plan = allocate(
            product=self.product,
            branch=self.branch,
            quantity=5,
            reserved={a.pk: 8},
        )

        self.assertEqual([(d.batch.pk, d.quantity) for d in plan], [(a.pk, 2), (b.pk, 3)])

    def test_allocate_returns_empty_plan_on_shortfall(self):
        self._receive("A", 10, expiry_days=10)

        self.assertEqual(allocate(product=self.product, branch=self.branch, quantity=11), [])
        self.assertEqual(available_quantity(product=self.product, branch=self.branch), 10)

from decimal import Decimal

from django.test import SimpleTestCase

from sales.services.exceptions import InvalidDiscount, InvalidQuantity
from sales.services.pricing import (
    LinePrice,
    compute_totals,
    net_line_amounts,
    price_line,
    price_split_line,
    split_amount,
    to_percent,
    to_quantity,
)


class LinePricerTests(SimpleTestCase):
    """
    GUARANTEES:
    - Decimal money, 2 dp, ROUND_HALF_UP
    - total = subtotal − discount
    - Identical inputs give identical outputs
    """

    def test_line_with_discount(self):
        price = price_line(unit_price="100.00", quantity=5, line_discount_percent="10")

        self.assertEqual(price.subtotal, Decimal("500.00"))
        self.assertEqual(price.discount_amount, Decimal("50.00"))
        self.assertEqual(price.total, Decimal("450.00"))

    def test_unit_price_read_from_batch(self):
        class _Batch:
            selling_price = Decimal("3.35")

        price = price_line(batch=_Batch(), quantity=3)

        self.assertEqual(price.unit_price, Decimal("3.35"))
        self.assertEqual(price.total, Decimal("10.05"))

    def test_half_cent_rounds_up(self):
        price = price_line(unit_price="0.05", quantity=1, line_discount_percent="50")

        # 0.025 -> 0.03
        self.assertEqual(price.discount_amount, Decimal("0.03"))
        self.assertEqual(price.total, Decimal("0.02"))

    def test_pricer_clamps_out_of_range_discounts(self):
        high = price_line(unit_price="10.00", quantity=1, line_discount_percent="150")
        low = price_line(unit_price="10.00", quantity=1, line_discount_percent="-20")

        self.assertEqual(high.total, Decimal("0.00"))
        self.assertEqual(low.total, Decimal("10.00"))

    def test_invalid_quantities(self):
        for bad in (0, -1, 1.5, "two", None, True):
            with self.subTest(quantity=bad):
                with self.assertRaises(InvalidQuantity):
                    to_quantity(bad)

        self.assertEqual(to_quantity("4"), 4)


class OrderTotalsTests(SimpleTestCase):
    def test_order_discount_on_discounted_lines(self):
        line = price_line(unit_price="100.00", quantity=5, line_discount_percent="10")

        totals = compute_totals(lines=[line], order_discount_percent="5")

        self.assertEqual(totals.subtotal, Decimal("450.00"))
        self.assertEqual(totals.discount_amount, Decimal("22.50"))
        self.assertEqual(totals.total, Decimal("427.50"))

    def test_subtotal_is_sum_of_line_totals(self):
        lines = [
            price_line(unit_price="1.99", quantity=3),
            price_line(unit_price="12.49", quantity=2, line_discount_percent="12.5"),
        ]

        totals = compute_totals(lines=lines)

        self.assertEqual(totals.subtotal, sum((l.total for l in lines), Decimal("0.00")))
        self.assertEqual(totals.total, totals.subtotal - totals.discount_amount)

    def test_repeated_computation_does_not_drift(self):
        lines = [price_line(unit_price="0.33", quantity=7, line_discount_percent="3.3")]

        first = compute_totals(lines=lines, order_discount_percent="7.77")
        second = compute_totals(lines=lines, order_discount_percent="7.77")

        self.assertEqual(first, second)

    def test_empty_order_is_zero(self):
        totals = compute_totals(lines=[])

        self.assertEqual(totals.total, Decimal("0.00"))

    def test_order_discount_split_adds_up_to_the_charged_total(self):
        lines = [price_line(unit_price="0.99", quantity=1) for _ in range(3)]
        totals = compute_totals(lines=lines, order_discount_percent="50")

        nets = net_line_amounts(
            line_totals=[l.total for l in lines],
            discount_amount=totals.discount_amount,
        )

        self.assertEqual(totals.total, Decimal("1.48"))
        self.assertEqual(nets, [Decimal("0.49"), Decimal("0.49"), Decimal("0.50")])
        self.assertEqual(sum(nets), totals.total)

    def test_strict_percent_rejects_out_of_range(self):
        with self.assertRaises(InvalidDiscount):
            to_percent("100.01", clamp=False)
        with self.assertRaises(InvalidDiscount):
            to_percent("ten")
        with self.assertRaises(InvalidDiscount):
            to_percent("NaN")

        self.assertEqual(to_percent(None), Decimal("0.00"))

    def test_line_price_is_a_value_object(self):
        a = price_line(unit_price="2.00", quantity=2)

        self.assertIsInstance(a, LinePrice)
        self.assertEqual(a, price_line(unit_price="2.00", quantity=2))


class AmountSplitTests(SimpleTestCase):
    """
    GUARANTEES:
    - Shares always add up to the amount being split
    - Leftover cents go to the largest fractional parts, earlier shares first
    - A line served from several batches costs what it would from one
    """

    def test_leftover_cents_go_to_earlier_shares_on_ties(self):
        self.assertEqual(
            split_amount(Decimal("0.02"), [1, 1, 1]),
            [Decimal("0.01"), Decimal("0.01"), Decimal("0.00")],
        )

    def test_split_follows_weights(self):
        shares = split_amount(Decimal("10.00"), [Decimal("300.00"), Decimal("150.00")])

        self.assertEqual(shares, [Decimal("6.67"), Decimal("3.33")])

    def test_zero_weights_keep_the_whole_amount_on_the_first_share(self):
        self.assertEqual(split_amount(Decimal("0.00"), [0, 0]), [Decimal("0.00"), Decimal("0.00")])
        self.assertEqual(split_amount(Decimal("1.00"), []), [])

    def test_split_line_costs_the_same_as_a_single_batch_line(self):
        whole = price_line(unit_price="0.15", quantity=2, line_discount_percent="10")
        parts = price_split_line(draws=[("0.15", 1), ("0.15", 1)], line_discount_percent="10")

        self.assertEqual(whole.total, Decimal("0.27"))
        self.assertEqual(sum(p.total for p in parts), whole.total)
        self.assertEqual(sum(p.discount_amount for p in parts), whole.discount_amount)
        self.assertEqual([p.quantity for p in parts], [1, 1])

    def test_single_draw_matches_the_line_pricer(self):
        [only] = price_split_line(draws=[("100.00", 5)], line_discount_percent="10")

        self.assertEqual(only, price_line(unit_price="100.00", quantity=5, line_discount_percent="10"))

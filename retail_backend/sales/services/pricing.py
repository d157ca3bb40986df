# sales/services/pricing.py

"""
LINE PRICER + ORDER TOTALS ENGINE (PURE)

Purpose:
- Price one line from a batch snapshot: unit_price × quantity − line discount.
- Aggregate priced lines and apply the order-level discount on top.
- Split discounts across batch draws and sale lines cent for cent
  (largest remainder), so the parts always add up to the whole.

DESIGN PRINCIPLES:
- No database writes, no side effects
- Decimal only, quantized to 2 dp with ROUND_HALF_UP
- Identical inputs always give identical outputs

Discount percentages are clamped to [0, 100] here. The sale transaction
manager rejects out-of-range values before they ever reach the pricer.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from sales.services.exceptions import InvalidDiscount, InvalidQuantity

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def _money(v) -> Decimal:
    if v is None or v == "":
        return ZERO
    return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_percent(value, *, clamp: bool = True) -> Decimal:
    """
    Normalize a discount percentage.

    - None / "" -> 0
    - non-numeric -> InvalidDiscount
    - clamp=True: values outside [0, 100] are clamped
    - clamp=False: values outside [0, 100] raise InvalidDiscount
    """
    if value is None or value == "":
        return ZERO

    if isinstance(value, bool):
        raise InvalidDiscount("Discount percentage must be numeric")

    try:
        pct = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidDiscount(f"Discount percentage must be numeric, got {value!r}")

    if not pct.is_finite():
        raise InvalidDiscount(f"Discount percentage must be numeric, got {value!r}")

    if pct < 0 or pct > HUNDRED:
        if not clamp:
            raise InvalidDiscount(f"Discount percentage must be between 0 and 100, got {value}")
        pct = max(ZERO, min(HUNDRED, pct))

    return pct.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_quantity(value) -> int:
    """
    Quantity normalizer.
    HARD RULE: quantities are whole positive integer units.
    """
    if value is None or value == "" or isinstance(value, bool):
        raise InvalidQuantity()

    if isinstance(value, int):
        qty = value
    elif isinstance(value, float) and value.is_integer():
        qty = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        qty = int(value.strip())
    else:
        raise InvalidQuantity(f"Quantity must be a positive whole number, got {value!r}")

    if qty <= 0:
        raise InvalidQuantity(f"Quantity must be a positive whole number, got {value!r}")

    return qty


def apply_percent(amount: Decimal, pct: Decimal) -> Decimal:
    return _money(Decimal(amount) * Decimal(pct) / HUNDRED)


def split_amount(total, weights) -> list[Decimal]:
    """
    Split a money amount across weights, cent for cent.

    Largest-remainder method: every share is floored to the cent, then the
    leftover cents go to the shares with the biggest fractional parts
    (earlier shares win ties). The shares always add up to `total`.
    """
    weights = [Decimal(w) for w in weights]
    if not weights:
        return []

    cents = int(_money(total) / TWOPLACES)
    weight_sum = sum(weights, Decimal(0))
    if weight_sum <= 0:
        return [_money(total)] + [ZERO] * (len(weights) - 1)

    raw = [Decimal(cents) * w / weight_sum for w in weights]
    floors = [int(r) for r in raw]
    leftover = cents - sum(floors)

    by_fraction = sorted(range(len(raw)), key=lambda i: (-(raw[i] - floors[i]), i))
    for i in by_fraction[:leftover]:
        floors[i] += 1

    return [Decimal(c) * TWOPLACES for c in floors]


# ============================================================
# LINE PRICER
# ============================================================

@dataclass(frozen=True)
class LinePrice:
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    total: Decimal


def price_line(*, batch=None, quantity, line_discount_percent=None, unit_price=None) -> LinePrice:
    """
    Price one line.

    unit_price is read from batch.selling_price at call time unless given.
    """
    qty = to_quantity(quantity)

    if unit_price is None:
        if batch is None:
            raise ValueError("batch or unit_price is required")
        unit_price = batch.selling_price

    price = _money(unit_price)
    pct = to_percent(line_discount_percent)

    subtotal = _money(price * qty)
    discount_amount = apply_percent(subtotal, pct)

    return LinePrice(
        unit_price=price,
        quantity=qty,
        subtotal=subtotal,
        discount_percent=pct,
        discount_amount=discount_amount,
        total=subtotal - discount_amount,
    )


def price_split_line(*, draws, line_discount_percent=None) -> list[LinePrice]:
    """
    Price one requested line that is served from several batches.

    draws: (unit_price, quantity) per batch. The line discount is computed once
    on the whole line and then split across the draws by subtotal, so the
    customer pays the same whether the units come from one batch or many.
    """
    draws = [(_money(unit_price), to_quantity(qty)) for unit_price, qty in draws]
    if len(draws) == 1:
        unit_price, qty = draws[0]
        return [price_line(unit_price=unit_price, quantity=qty, line_discount_percent=line_discount_percent)]

    pct = to_percent(line_discount_percent)

    subtotals = [_money(price * qty) for price, qty in draws]
    discount = apply_percent(sum(subtotals, ZERO), pct)
    shares = split_amount(discount, subtotals)

    return [
        LinePrice(
            unit_price=price,
            quantity=qty,
            subtotal=subtotal,
            discount_percent=pct,
            discount_amount=share,
            total=subtotal - share,
        )
        for (price, qty), subtotal, share in zip(draws, subtotals, shares)
    ]


# ============================================================
# ORDER TOTALS ENGINE
# ============================================================

@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    total: Decimal


def compute_totals(*, lines: Iterable[LinePrice], order_discount_percent=None) -> OrderTotals:
    """
    subtotal = Σ line.total (line discounts already applied)
    discount_amount = subtotal × pct / 100
    total = subtotal − discount_amount
    """
    subtotal = ZERO
    for line in lines:
        subtotal += _money(line.total)

    pct = to_percent(order_discount_percent)
    discount_amount = apply_percent(subtotal, pct)

    return OrderTotals(
        subtotal=subtotal,
        discount_percent=pct,
        discount_amount=discount_amount,
        total=subtotal - discount_amount,
    )




def net_line_amounts(*, line_totals, discount_amount) -> list[Decimal]:
    """
    What each line contributes to the sale total once the order discount is
    taken off. The discount is split with split_amount(), so the results add
    up to subtotal − discount_amount exactly.
    """
    line_totals = [_money(t) for t in line_totals]
    shares = split_amount(discount_amount, line_totals)
    return [total - share for total, share in zip(line_totals, shares)]

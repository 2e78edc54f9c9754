"""Commission arithmetic.

All money is rounded half-up at the cent with ``Decimal`` so that float
representation error never moves a value across a rounding boundary. The
commission rate is always passed in by the caller.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Sequence

from models.entities.documents.orders import OrderItem

CENT = Decimal("0.01")


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


def round_money(value: float) -> float:
    return float(_to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CommissionSplit:
    commission: float
    net: float


@dataclass(frozen=True)
class OrderTotals:
    items: List[OrderItem]
    subtotal: float
    platform_fee: float
    total_amount: float


def split(gross_amount: float, rate: float) -> CommissionSplit:
    """Split a gross amount into platform commission and merchant net."""
    if gross_amount < 0:
        raise ValueError(f"Gross amount must not be negative, got {gross_amount}")
    if not 0 <= rate < 1:
        raise ValueError(f"Commission rate must be in [0, 1), got {rate}")

    gross = _to_decimal(gross_amount)
    commission = (gross * _to_decimal(rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    net = (gross - commission).quantize(CENT, rounding=ROUND_HALF_UP)
    return CommissionSplit(commission=float(commission), net=float(net))


def order_totals(items: Sequence[OrderItem], rate: float) -> OrderTotals:
    """Price line items and compute subtotal, platform fee and total.

    Line totals are recomputed from quantity and unit price; whatever the
    client sent in ``total_price`` is discarded.
    """
    priced = []
    subtotal = Decimal("0")
    for item in items:
        line_total = (Decimal(item.quantity) * _to_decimal(item.unit_price)).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        subtotal += line_total
        priced.append(item.model_copy(update={"total_price": float(line_total)}))

    fee = _to_decimal(split(float(subtotal), rate).commission)
    return OrderTotals(
        items=priced,
        subtotal=float(subtotal),
        platform_fee=float(fee),
        total_amount=float(subtotal + fee),
    )

# Overview: Brokerage commission split for a transaction total.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..money import round_money, to_decimal


# Fixed brokerage rate charged on every approved sale
COMMISSION_RATE = Decimal("0.05")


@dataclass(frozen=True)
class Commission:
    total: Decimal
    commission: Decimal
    seller_net: Decimal


def compute(total_price) -> Commission:
    """
    Split a transaction total into commission and seller proceeds.

    commission is the 5% rate rounded half-up to the cent; seller_net is the
    exact remainder, so commission + seller_net == total always holds.
    """
    total = to_decimal(total_price, "total_price")
    if total < 0:
        raise ValueError("total_price must not be negative")

    commission = round_money(total * COMMISSION_RATE)
    return Commission(total=total, commission=commission, seller_net=total - commission)

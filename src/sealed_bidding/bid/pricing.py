"""
Bid pricing arithmetic

Exact Decimal math: line totals and bid amounts are sums of products and
never rounded, so bid_amount == Σ unit_price * quantity holds exactly.
"""

from decimal import Decimal
from typing import Iterable, NamedTuple


class BidTotals(NamedTuple):
    bid_amount: Decimal
    service_fee: Decimal
    total_amount: Decimal
    total_with_fee: Decimal


def line_total(unit_price: Decimal, quantity: Decimal) -> Decimal:
    return unit_price * quantity


def bid_totals(line_totals: Iterable[Decimal], service_fee_rate: Decimal) -> BidTotals:
    """
    Aggregate line totals into the bid amounts

    total_amount is always the plain Σ of line totals; the service fee is
    carried beside it in service_fee and total_with_fee.

    Example:
        >>> bid_totals([Decimal("1000"), Decimal("1000")], Decimal("0.01"))
        BidTotals(bid_amount=Decimal('2000'), service_fee=Decimal('20.00'), total_amount=Decimal('2000'), total_with_fee=Decimal('2020.00'))
    """
    bid_amount = sum(line_totals, Decimal("0"))
    service_fee = bid_amount * service_fee_rate
    return BidTotals(bid_amount, service_fee, bid_amount, bid_amount + service_fee)


def fee_inclusive(amount: Decimal, service_fee_rate: Decimal) -> Decimal:
    """Buyer-facing amount including the platform service fee"""
    return amount * (Decimal("1") + service_fee_rate)

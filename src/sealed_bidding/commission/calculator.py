"""
Commission arithmetic

Pure function of (fee per unit, share percentage, dispatched quantity):
no I/O, no clock, so the same inputs always yield the same amounts.
"""

from decimal import Decimal
from typing import NamedTuple


class CommissionBreakdown(NamedTuple):
    total_platform_fee: Decimal
    commission_amount: Decimal
    platform_net_revenue: Decimal


def compute_commission(
    platform_fee_per_unit: Decimal,
    referral_share_percentage: Decimal,
    dispatched_qty: Decimal,
) -> CommissionBreakdown:
    """
    Split the platform fee on a dispatched quantity

    total_platform_fee   = fee_per_unit * qty
    commission_amount    = total_platform_fee * share / 100
    platform_net_revenue = total_platform_fee - commission_amount

    Example:
        >>> compute_commission(Decimal("220"), Decimal("20"), Decimal("10"))
        CommissionBreakdown(total_platform_fee=Decimal('2200'), commission_amount=Decimal('440'), platform_net_revenue=Decimal('1760'))
    """
    total_platform_fee = platform_fee_per_unit * dispatched_qty
    commission_amount = total_platform_fee * referral_share_percentage / Decimal("100")
    return CommissionBreakdown(
        total_platform_fee=total_platform_fee,
        commission_amount=commission_amount,
        platform_net_revenue=total_platform_fee - commission_amount,
    )

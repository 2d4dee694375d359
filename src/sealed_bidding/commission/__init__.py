"""
Commission Engine

Keeps each accepted bid's referral commission in step with what has
actually been dispatched.
"""

from sealed_bidding.commission.calculator import CommissionBreakdown, compute_commission
from sealed_bidding.commission.commands import ProvisionCommission, RecalculateCommission
from sealed_bidding.commission.handlers import CommissionCommandHandlers
from sealed_bidding.commission.models import CommissionRecord
from sealed_bidding.commission.projections import CommissionLedger

__all__ = [
    "CommissionRecord",
    "CommissionBreakdown",
    "compute_commission",
    "ProvisionCommission",
    "RecalculateCommission",
    "CommissionCommandHandlers",
    "CommissionLedger",
]

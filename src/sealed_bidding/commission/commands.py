"""
Commission Commands
"""

from decimal import Decimal

from pydantic import BaseModel, Field

Number = Decimal | int | float | str | None


class ProvisionCommission(BaseModel):
    """Create the commission record for an accepted bid"""

    bid_id: str = Field(..., description="Accepted bid")
    referrer_id: str | None = Field(default=None, description="Referral partner")
    platform_fee_per_unit: Number = Field(
        default=None, description="Override of the policy default"
    )
    referral_share_percentage: Number = Field(
        default=None, description="Override of the policy default (0-100)"
    )


class RecalculateCommission(BaseModel):
    """Recompute commission amounts from the bid's total dispatched quantity"""

    bid_id: str = Field(..., description="Bid whose record is recalculated")
    total_dispatched_qty: Number = Field(default=None, description="Σ dispatched")

"""
Commission Events
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CommissionProvisioned(BaseModel):
    commission_id: str = Field(..., description="Record identifier")
    bid_id: str = Field(..., description="Accepted bid")
    referrer_id: str | None = Field(default=None)
    platform_fee_per_unit: Decimal = Field(..., description="Fee per dispatched unit")
    referral_share_percentage: Decimal = Field(..., description="Referrer share, percent")
    provisioned_at: datetime = Field(..., description="Provisioning timestamp")
    provisioned_by: str | None = Field(default=None)


class CommissionRecalculated(BaseModel):
    """Amounts overwritten from the current dispatched quantity"""

    commission_id: str = Field(..., description="Record identifier")
    bid_id: str = Field(..., description="Bid identifier")
    dispatched_qty: Decimal = Field(..., description="Quantity the amounts are based on")
    total_platform_fee: Decimal
    commission_amount: Decimal
    platform_net_revenue: Decimal
    recalculated_at: datetime = Field(..., description="Recalculation timestamp")
    recalculated_by: str | None = Field(default=None)

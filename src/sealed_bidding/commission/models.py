"""
Commission Domain Models

One CommissionRecord per accepted bid, provisioned by the acceptance /
referral flow. Its amounts follow the bid's dispatched quantity.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CommissionRecord(BaseModel):
    """Referral commission owed on an accepted bid"""

    commission_id: str = Field(..., description="Unique record identifier")
    bid_id: str = Field(..., description="Accepted bid (1:1)")
    referrer_id: str | None = Field(default=None, description="Referral partner")
    platform_fee_per_unit: Decimal = Field(..., ge=0)
    referral_share_percentage: Decimal = Field(..., ge=0, le=100)
    dispatched_qty: Decimal = Field(default=Decimal("0"), ge=0)
    total_platform_fee: Decimal = Field(default=Decimal("0"))
    commission_amount: Decimal = Field(default=Decimal("0"))
    platform_net_revenue: Decimal = Field(default=Decimal("0"))
    created_at: datetime = Field(..., description="Provisioning timestamp")
    updated_at: datetime | None = Field(default=None, description="Last recalculation")
    version: int = Field(default=1, description="Stream version")

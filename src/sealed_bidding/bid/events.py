"""
Bid Events

Item lists are serialized dicts with Decimal values as strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class BidSubmitted(BaseModel):
    """Bid and all of its items submitted together"""

    bid_id: str = Field(..., description="Unique bid identifier")
    requirement_id: str = Field(..., description="Requirement bid against")
    supplier_id: str = Field(..., description="Submitting supplier")
    items: list[dict[str, Any]] = Field(..., description="Bid items (serialized)")
    bid_amount: Decimal = Field(..., description="Σ item totals")
    service_fee: Decimal = Field(..., description="Service fee on bid_amount")
    total_amount: Decimal = Field(..., description="Σ item totals")
    total_with_fee: Decimal = Field(..., description="total_amount + service_fee")
    submitted_at: datetime = Field(..., description="Submission timestamp")
    submitted_by: str | None = Field(default=None, description="Actor")


class BidRevised(BaseModel):
    """Re-bid overwrote item prices/quantities"""

    bid_id: str = Field(..., description="Bid identifier")
    items: list[dict[str, Any]] = Field(
        ..., description="Changed items: bid_item_id, unit_price, quantity, total"
    )
    bid_amount: Decimal = Field(..., description="Recomputed Σ item totals")
    service_fee: Decimal = Field(..., description="Recomputed service fee")
    total_amount: Decimal = Field(..., description="Recomputed Σ item totals")
    total_with_fee: Decimal = Field(..., description="Recomputed total with fee")
    revised_at: datetime = Field(..., description="Revision timestamp")
    revised_by: str | None = Field(default=None, description="Actor")


class BidAccepted(BaseModel):
    bid_id: str = Field(..., description="Bid identifier")
    requirement_id: str = Field(..., description="Requirement identifier")
    accepted_at: datetime = Field(..., description="Acceptance timestamp")
    accepted_by: str | None = Field(default=None, description="Actor")


class BidRejected(BaseModel):
    bid_id: str = Field(..., description="Bid identifier")
    requirement_id: str = Field(..., description="Requirement identifier")
    reason: str | None = Field(default=None, description="Audit note")
    rejected_at: datetime = Field(..., description="Rejection timestamp")
    rejected_by: str | None = Field(default=None, description="Actor")

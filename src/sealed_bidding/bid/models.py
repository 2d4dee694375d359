"""
Bid Domain Models

A Bid is one supplier's sealed quotation against a Requirement, priced per
line item. Bid items live inside their bid: a bid and its items are always
written together.

Bid.dispatched_qty is derived from the items and never stored on its own,
so the bid total and the per-item breakdown cannot drift apart.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class BidStatus(str, Enum):
    """
    Bid lifecycle states

    PENDING → ACCEPTED
        ↓
    REJECTED
    """

    PENDING = "pending"  # Submitted, open for re-bid
    ACCEPTED = "accepted"  # Awarded - dispatch may be recorded
    REJECTED = "rejected"  # Declined by the buyer


class BidItem(BaseModel):
    """One quoted line: price and quantity against a requirement item"""

    bid_item_id: str = Field(..., description="Unique bid item identifier")
    bid_id: str = Field(..., description="Owning bid")
    requirement_item_id: str = Field(..., description="Requirement item quoted")
    unit_price: Decimal = Field(..., ge=0, description="Quoted price per unit")
    quantity: Decimal = Field(..., gt=0, description="Committed quantity")
    total: Decimal = Field(..., ge=0, description="unit_price * quantity")
    dispatched_qty: Decimal = Field(
        default=Decimal("0"), ge=0, description="Quantity dispatched so far"
    )


class Bid(BaseModel):
    """Bid aggregate as seen by readers of the ledger"""

    bid_id: str = Field(..., description="Unique bid identifier")
    requirement_id: str = Field(..., description="Requirement bid against")
    supplier_id: str = Field(..., description="Submitting supplier")
    items: list[BidItem] = Field(..., min_length=1)
    bid_amount: Decimal = Field(..., ge=0, description="Sum of item totals")
    service_fee: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0, description="Σ item totals (equals bid_amount)")
    total_with_fee: Decimal = Field(..., ge=0, description="total_amount + service_fee")
    status: BidStatus = Field(default=BidStatus.PENDING)
    submitted_at: datetime = Field(..., description="Original submission time")
    sequence: int = Field(default=0, description="Submission order in the ledger")
    updated_at: datetime | None = Field(default=None)
    version: int = Field(default=1, description="Stream version")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def dispatched_qty(self) -> Decimal:
        """Always Σ item dispatched quantities"""
        return sum((item.dispatched_qty for item in self.items), Decimal("0"))

    def item(self, bid_item_id: str) -> BidItem | None:
        return next((i for i in self.items if i.bid_item_id == bid_item_id), None)

    def item_for(self, requirement_item_id: str) -> BidItem | None:
        return next(
            (i for i in self.items if i.requirement_item_id == requirement_item_id),
            None,
        )

"""
Bid Commands

Prices and quantities are accepted loosely typed and parsed by the
invariants into Decimal.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

Number = Decimal | int | float | str | None


class BidItemSpec(BaseModel):
    """Quoted line against one requirement item"""

    requirement_item_id: str = Field(..., description="Requirement item being quoted")
    unit_price: Number = Field(default=None, description="Price per unit (>= 0)")
    quantity: Number = Field(default=None, description="Quantity offered (> 0)")


class SubmitBid(BaseModel):
    """
    Submit a sealed bid

    Never retried automatically; resubmitting with the same command id
    returns the bid that was already created.
    """

    supplier_id: str = Field(..., description="Submitting supplier")
    requirement_id: str = Field(..., description="Requirement bid against")
    items: list[BidItemSpec] = Field(default_factory=list)


class ReviseBid(BaseModel):
    """
    Re-bid: overwrite price/quantity on existing bid items

    Only the items named are changed; they are matched by requirement item.
    """

    bid_id: str = Field(..., description="Bid to revise")
    items: list[BidItemSpec] = Field(default_factory=list)
    expected_version: int | None = Field(
        default=None, description="Bid version the caller read (optimistic lock)"
    )


class AcceptBid(BaseModel):
    bid_id: str = Field(..., description="Bid to accept")


class RejectBid(BaseModel):
    bid_id: str = Field(..., description="Bid to reject")
    reason: str | None = Field(default=None, description="Audit note")

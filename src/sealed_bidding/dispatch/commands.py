"""
Dispatch Commands
"""

from decimal import Decimal

from pydantic import BaseModel, Field

Number = Decimal | int | float | str | None


class RecordDispatch(BaseModel):
    """
    Record cumulative dispatched quantities per bid item

    Quantities are absolute (the new dispatched total for the item), not
    increments, so applying the same mapping twice changes nothing.
    """

    bid_id: str = Field(..., description="Accepted bid being fulfilled")
    item_quantities: dict[str, Number] = Field(
        default_factory=dict, description="bid_item_id -> dispatched quantity"
    )
    close_requirement: bool = Field(
        default=False, description="Also mark the parent requirement closed"
    )
    expected_version: int | None = Field(
        default=None, description="Bid version the caller read (optimistic lock)"
    )


class RecordSingleDispatch(BaseModel):
    """Legacy single-quantity dispatch for bids with exactly one item"""

    bid_id: str = Field(..., description="Accepted bid being fulfilled")
    quantity: Number = Field(default=None, description="Dispatched quantity")
    close_requirement: bool = Field(default=False)
    expected_version: int | None = Field(default=None)

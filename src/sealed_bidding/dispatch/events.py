"""
Dispatch Events

DispatchRecorded is appended to the bid stream: dispatched quantities are
state of the bid items.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class DispatchRecorded(BaseModel):
    """Dispatched quantities set on some or all items of a bid"""

    bid_id: str = Field(..., description="Bid identifier")
    requirement_id: str = Field(..., description="Parent requirement")
    item_quantities: dict[str, Decimal] = Field(
        ..., description="bid_item_id -> new dispatched quantity"
    )
    dispatched_qty: Decimal = Field(
        ..., description="Bid total after the update (Σ all item quantities)"
    )
    path: Literal["per_item", "single"] = Field(
        default="per_item", description="Entry point used"
    )
    recorded_at: datetime = Field(..., description="Recording timestamp")
    recorded_by: str | None = Field(default=None, description="Actor")

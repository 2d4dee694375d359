"""
Requirement Domain Models

A Requirement is a buyer's request for quotation (RFQ): a title, a bidding
deadline and one or more line items. Suppliers quote per line item.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class RequirementStatus(str, Enum):
    """
    Requirement lifecycle states

    ACTIVE → AWARDED → CLOSED
       ↓        ↓
    EXPIRED  CANCELLED (also reachable from ACTIVE)

    An EXPIRED requirement can still be awarded: the buyer picks a winner
    after the bidding window. CLOSED and CANCELLED are terminal.
    """

    ACTIVE = "active"  # Open for sealed bids
    AWARDED = "awarded"  # At least one bid accepted
    CLOSED = "closed"  # Fulfilment finished (explicit, may be partial)
    CANCELLED = "cancelled"  # Withdrawn by the buyer
    EXPIRED = "expired"  # Deadline passed while still active


ALLOWED_TRANSITIONS: dict[RequirementStatus, frozenset[RequirementStatus]] = {
    RequirementStatus.ACTIVE: frozenset(
        {
            RequirementStatus.AWARDED,
            RequirementStatus.CLOSED,
            RequirementStatus.CANCELLED,
            RequirementStatus.EXPIRED,
        }
    ),
    RequirementStatus.AWARDED: frozenset(
        {RequirementStatus.CLOSED, RequirementStatus.CANCELLED}
    ),
    RequirementStatus.CLOSED: frozenset(),
    RequirementStatus.CANCELLED: frozenset(),
    RequirementStatus.EXPIRED: frozenset(
        {RequirementStatus.AWARDED, RequirementStatus.CANCELLED}
    ),
}


class RequirementItem(BaseModel):
    """One line item being procured; immutable once created"""

    requirement_item_id: str = Field(..., description="Unique line item identifier")
    requirement_id: str = Field(..., description="Owning requirement")
    item_name: str = Field(..., description="What is being procured")
    quantity: Decimal = Field(..., gt=0, description="Quantity required")
    unit: str = Field(..., description="Unit of measure (MT, kg, pcs, ...)")
    category: str = Field(default="", description="Product category")
    description: str | None = Field(default=None, description="Free-text detail")

    model_config = {"frozen": True}


class Requirement(BaseModel):
    """Requirement aggregate as seen by readers of the catalog"""

    requirement_id: str = Field(..., description="Unique requirement identifier")
    buyer_id: str | None = Field(default=None, description="Owning buyer")
    title: str = Field(..., description="Requirement title")
    status: RequirementStatus = Field(default=RequirementStatus.ACTIVE)
    deadline: datetime | None = Field(
        default=None, description="Bidding deadline (None = open-ended)"
    )
    trade_type: str | None = Field(
        default=None, description="Trade type selecting the service fee rate"
    )
    items: list[RequirementItem] = Field(..., min_length=1)
    created_at: datetime = Field(..., description="Creation timestamp")
    version: int = Field(default=1, description="Stream version")

    def item(self, requirement_item_id: str) -> RequirementItem | None:
        return next(
            (i for i in self.items if i.requirement_item_id == requirement_item_id),
            None,
        )

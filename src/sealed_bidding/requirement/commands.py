"""
Requirement Commands

Numeric fields are accepted loosely typed here and parsed into Decimal by
the invariants, so malformed input raises the core's ValidationError with
the offending field rather than a schema error.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from sealed_bidding.requirement.models import RequirementStatus

Number = Decimal | int | float | str | None


class RequirementItemSpec(BaseModel):
    """Line item specification"""

    item_name: str = Field(default="", description="What is being procured")
    quantity: Number = Field(default=None, description="Quantity required (> 0)")
    unit: str = Field(default="", description="Unit of measure")
    category: str = Field(default="", description="Product category")
    description: str | None = Field(default=None, description="Free-text detail")


class CreateRequirement(BaseModel):
    """Create a requirement with its line items in one atomic write"""

    title: str = Field(default="", description="Requirement title")
    items: list[RequirementItemSpec] = Field(default_factory=list)
    buyer_id: str | None = Field(default=None, description="Owning buyer")
    deadline: datetime | None = Field(default=None, description="Bidding deadline")
    trade_type: str | None = Field(default=None, description="Trade type")
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChangeRequirementStatus(BaseModel):
    """Move a requirement to another lifecycle status"""

    requirement_id: str = Field(..., description="Requirement to change")
    target_status: RequirementStatus = Field(..., description="Status to move to")
    reason: str | None = Field(default=None, description="Audit note")

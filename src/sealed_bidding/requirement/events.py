"""
Requirement Events
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from sealed_bidding.requirement.models import RequirementStatus


class RequirementCreated(BaseModel):
    """Requirement and all of its line items created together"""

    requirement_id: str = Field(..., description="Unique requirement identifier")
    buyer_id: str | None = Field(default=None, description="Owning buyer")
    title: str = Field(..., description="Requirement title")
    items: list[dict[str, Any]] = Field(..., description="Line items (serialized)")
    deadline: datetime | None = Field(default=None, description="Bidding deadline")
    trade_type: str | None = Field(default=None, description="Trade type")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(..., description="Creation timestamp")
    created_by: str | None = Field(default=None, description="Actor who created it")


class RequirementStatusChanged(BaseModel):
    """Requirement moved between lifecycle statuses"""

    requirement_id: str = Field(..., description="Requirement identifier")
    from_status: RequirementStatus = Field(..., description="Previous status")
    to_status: RequirementStatus = Field(..., description="New status")
    reason: str | None = Field(default=None, description="Audit note")
    changed_at: datetime = Field(..., description="Change timestamp")
    changed_by: str | None = Field(default=None, description="Actor (None for system)")

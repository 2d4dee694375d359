"""
Base Event model for the bidding event log

Every state change in the core is recorded as an immutable event on the
stream of the aggregate it changes: one stream per Requirement, per Bid
(bid items live inside their bid), and per CommissionRecord.

The read models a caller sees (requirement rows, bid rows, commission rows)
are projections of these events.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Immutable fact about what happened in the bidding core

    stream_id + version gives optimistic locking; command_id makes the
    write that produced the event idempotent.
    """

    event_id: str = Field(..., description="Unique event identifier (UUIDv7)")
    stream_id: str = Field(..., description="Aggregate id: requirement, bid or commission")
    stream_type: str = Field(
        ..., description="Aggregate type: 'Requirement', 'Bid', 'Commission'"
    )
    event_type: str = Field(
        ..., description="Event type: 'BidSubmitted', 'DispatchRecorded', etc."
    )
    occurred_at: datetime = Field(..., description="UTC timestamp of the change")
    actor_id: str | None = Field(
        default=None, description="Actor who caused the change (None for system)"
    )
    command_id: str = Field(..., description="Idempotency key of the causing command")
    payload: dict[str, Any] = Field(
        default_factory=dict, description="Event data (JSON-serializable)"
    )
    version: int = Field(..., ge=1, description="Stream version after this event")

    model_config = {"frozen": True}


def create_event(
    *,
    event_id: str,
    stream_id: str,
    stream_type: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    actor_id: str | None = None,
    payload: dict[str, Any] | None = None,
) -> Event:
    """Construct an event with named parameters"""
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )

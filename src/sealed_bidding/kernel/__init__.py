"""
Kernel - event log, errors, time, logging and policy shared by all components
"""

from sealed_bidding.kernel.errors import (
    BiddingError,
    ConflictError,
    ConsistencyError,
    EventStoreError,
    ExternalDependencyError,
    NotFoundError,
    ValidationError,
)
from sealed_bidding.kernel.event_store import EventStore, SQLiteEventStore, StreamAppend
from sealed_bidding.kernel.events import Event
from sealed_bidding.kernel.ids import generate_id
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs & time
    "generate_id",
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events & storage
    "Event",
    "EventStore",
    "SQLiteEventStore",
    "StreamAppend",
    # Policy
    "CommercialPolicy",
    # Errors
    "BiddingError",
    "EventStoreError",
    "ValidationError",
    "NotFoundError",
    "ConsistencyError",
    "ConflictError",
    "ExternalDependencyError",
]

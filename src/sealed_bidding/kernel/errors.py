"""
Custom exceptions for the sealed bidding core

Well-defined error hierarchy enables precise error handling and clear
messages for the caller rendering them. Every error keeps the entity id and,
where one exists, the offending field as attributes.

Five kinds matter to callers:
- ValidationError: bad input (negative/NaN price, empty required field)
- NotFoundError: unknown requirement / bid / item id
- ConsistencyError: the write would break a cross-entity invariant
- ConflictError: optimistic concurrency lost - reload and retry
- ExternalDependencyError: an out-of-core collaborator did not provision data
"""

from typing import Any


class BiddingError(Exception):
    """Base exception for all sealed bidding errors"""

    pass


class EventStoreError(BiddingError):
    """Base class for event store errors"""

    pass


class ConflictError(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates concurrent modification - caller should reload and retry.
    """

    retryable = True

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


class ValidationError(BiddingError):
    """Raised when an input value is malformed (negative, non-finite, empty)"""

    def __init__(
        self,
        field: str,
        message: str,
        *,
        entity_id: str | None = None,
        value: Any = None,
    ) -> None:
        self.field = field
        self.entity_id = entity_id
        self.value = value
        where = f" on {entity_id}" if entity_id else ""
        super().__init__(f"Invalid {field}{where}: {message}")


# Not found


class NotFoundError(BiddingError):
    """Base class for unknown-id errors"""

    entity_type = "Entity"

    def __init__(self, entity_id: str, message: str = "") -> None:
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity_type} {entity_id} not found")


class RequirementNotFound(NotFoundError):
    entity_type = "Requirement"


class BidNotFound(NotFoundError):
    entity_type = "Bid"


class BidItemNotFound(NotFoundError):
    """Raised when a bid item is not part of the bid"""

    entity_type = "Bid item"

    def __init__(self, bid_id: str, bid_item_id: str) -> None:
        self.bid_id = bid_id
        self.field = "bid_item_id"
        super().__init__(
            bid_item_id, f"Bid item {bid_item_id} not found in bid {bid_id}"
        )


# Consistency


class ConsistencyError(BiddingError):
    """
    Raised when a write would break a cross-entity invariant

    Raised before anything is appended - the log never holds a partial write.
    """

    pass


class SinglePathDispatchRejected(ConsistencyError):
    """Raised when the legacy single-total dispatch targets a multi-item bid"""

    def __init__(self, bid_id: str, item_count: int) -> None:
        self.bid_id = bid_id
        self.item_count = item_count
        super().__init__(
            f"Bid {bid_id} has {item_count} items - single-total dispatch is only "
            "allowed for single-item bids; record per-item quantities instead"
        )


class DispatchExceedsQuantity(ConsistencyError):
    """Raised when dispatched quantity would exceed the committed quantity"""

    def __init__(self, bid_item_id: str, dispatched: str, committed: str) -> None:
        self.bid_item_id = bid_item_id
        self.field = "dispatched_qty"
        self.dispatched = dispatched
        self.committed = committed
        super().__init__(
            f"Bid item {bid_item_id} dispatch {dispatched} exceeds "
            f"committed quantity {committed}"
        )


class BidNotAccepted(ConsistencyError):
    """Raised when dispatch targets a bid that was never accepted"""

    def __init__(self, bid_id: str, current_status: str) -> None:
        self.bid_id = bid_id
        self.current_status = current_status
        super().__init__(
            f"Bid {bid_id} is {current_status}, must be accepted to record dispatch"
        )


class BidNotEditable(ConsistencyError):
    """Raised when a re-bid targets a decided bid or a requirement no longer active"""

    def __init__(self, bid_id: str, bid_status: str, requirement_status: str) -> None:
        self.bid_id = bid_id
        self.bid_status = bid_status
        self.requirement_status = requirement_status
        super().__init__(
            f"Bid {bid_id} cannot be changed (bid {bid_status}, "
            f"requirement {requirement_status})"
        )


class RequirementNotOpen(ConsistencyError):
    """Raised when bidding is attempted outside the open window"""

    def __init__(self, requirement_id: str, reason: str) -> None:
        self.requirement_id = requirement_id
        self.reason = reason
        super().__init__(f"Requirement {requirement_id} is not open for bids: {reason}")


class InvalidStatusTransition(ConsistencyError):
    """Raised when a status change is not allowed by the lifecycle"""

    def __init__(self, entity_id: str, current_status: str, target_status: str) -> None:
        self.entity_id = entity_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"{entity_id} cannot move from {current_status} to {target_status}"
        )


class CommissionAlreadyProvisioned(ConsistencyError):
    """Raised when a second commission record is provisioned for a bid"""

    def __init__(self, bid_id: str, commission_id: str) -> None:
        self.bid_id = bid_id
        self.commission_id = commission_id
        super().__init__(
            f"Bid {bid_id} already has commission record {commission_id}"
        )


# External dependencies


class ExternalDependencyError(BiddingError):
    """Raised when data owned by an out-of-core collaborator is missing"""

    pass


class CommissionRecordMissing(ExternalDependencyError):
    """
    Raised when no commission record exists for a bid at recalculation time

    Commission records are provisioned at acceptance time by the referral
    flow. Callers log and skip this one.
    """

    def __init__(self, bid_id: str) -> None:
        self.bid_id = bid_id
        super().__init__(f"No commission record provisioned for bid {bid_id}")

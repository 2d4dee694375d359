"""
Dispatch Invariants

Pure validation functions for recording dispatched quantities.
"""

from decimal import Decimal
from typing import Any

from sealed_bidding.bid.models import Bid, BidItem, BidStatus
from sealed_bidding.kernel.amounts import parse_quantity
from sealed_bidding.kernel.errors import (
    BidItemNotFound,
    BidNotAccepted,
    DispatchExceedsQuantity,
    SinglePathDispatchRejected,
    ValidationError,
)


def validate_bid_accepted(bid: Bid) -> None:
    """
    Raises:
        BidNotAccepted: Dispatch can only be recorded against an accepted bid
    """
    if bid.status != BidStatus.ACCEPTED:
        raise BidNotAccepted(bid.bid_id, bid.status.value)


def validate_single_item(bid: Bid) -> BidItem:
    """
    The legacy single-quantity path cannot say which item was dispatched,
    so it only applies to bids with exactly one item.

    Raises:
        SinglePathDispatchRejected: Bid has more than one item
    """
    if len(bid.items) != 1:
        raise SinglePathDispatchRejected(bid.bid_id, len(bid.items))
    return bid.items[0]


def validate_dispatch_quantity(item: BidItem, value: Any, places: int) -> Decimal:
    """
    Parse one dispatched quantity: 0 <= qty <= committed quantity

    Raises:
        ValidationError: Negative, non-finite or over-precise value
        DispatchExceedsQuantity: More than the bid item committed
    """
    quantity = parse_quantity(
        value,
        f"item_quantities[{item.bid_item_id}]",
        places,
        entity_id=item.bid_id,
        allow_zero=True,
    )
    if quantity > item.quantity:
        raise DispatchExceedsQuantity(item.bid_item_id, str(quantity), str(item.quantity))
    return quantity


def validate_item_quantities(
    bid: Bid, item_quantities: dict[str, Any], places: int
) -> dict[str, Decimal]:
    """
    Validate every entry of a per-item dispatch mapping

    Nothing is partially accepted: the first bad entry raises and the
    caller writes nothing.

    Returns:
        bid_item_id -> parsed quantity
    """
    if not item_quantities:
        raise ValidationError(
            "item_quantities", "at least one bid item is required", entity_id=bid.bid_id
        )

    parsed: dict[str, Decimal] = {}
    for bid_item_id, value in item_quantities.items():
        item = bid.item(bid_item_id)
        if item is None:
            raise BidItemNotFound(bid.bid_id, bid_item_id)
        parsed[bid_item_id] = validate_dispatch_quantity(item, value, places)
    return parsed


def dispatched_total_after(bid: Bid, updates: dict[str, Decimal]) -> Decimal:
    """Σ item dispatched quantities once the updates are applied"""
    return sum(
        (updates.get(item.bid_item_id, item.dispatched_qty) for item in bid.items),
        Decimal("0"),
    )

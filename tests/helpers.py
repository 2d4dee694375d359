"""
Test Helper Functions - Builders

Reusable builders for requirements, quotes and accepted bids so each test
reads as the scenario it checks.
"""

from datetime import datetime, timezone
from typing import Any

from sealed_bidding.bid.models import Bid
from sealed_bidding.core import BiddingCore
from sealed_bidding.kernel.events import Event
from sealed_bidding.kernel.ids import generate_id


def item_spec(
    item_name: str, quantity: Any, unit: str = "MT", category: str = "steel"
) -> dict[str, Any]:
    """Builder for a requirement line item"""
    return {"item_name": item_name, "quantity": quantity, "unit": unit, "category": category}


def quote(requirement_item_id: str, unit_price: Any, quantity: Any) -> dict[str, Any]:
    """Builder for one bid line"""
    return {
        "requirement_item_id": requirement_item_id,
        "unit_price": unit_price,
        "quantity": quantity,
    }


def create_two_item_requirement(
    core: BiddingCore,
    *,
    trade_type: str | None = None,
    deadline: datetime | None = None,
) -> tuple[str, str, str]:
    """
    Requirement with item A (qty 10) and item B (qty 5)

    Returns:
        (requirement_id, item_a_id, item_b_id)
    """
    requirement_id = core.create_requirement(
        "Construction steel",
        [item_spec("TMT bar A", 10), item_spec("Angle B", 5)],
        buyer_id="buyer-1",
        trade_type=trade_type,
        deadline=deadline,
    )
    item_a, item_b = core.get_requirement(requirement_id).items
    return requirement_id, item_a.requirement_item_id, item_b.requirement_item_id


def submit_competing_bids(
    core: BiddingCore, requirement_id: str, item_a: str, item_b: str
) -> tuple[Bid, Bid]:
    """
    SupplierX: A@100, B@200; SupplierY: A@90, B@210

    Returns:
        (bid_x, bid_y)
    """
    bid_x = core.submit_bid(
        "supplier-x", requirement_id, [quote(item_a, 100, 10), quote(item_b, 200, 5)]
    )
    bid_y = core.submit_bid(
        "supplier-y", requirement_id, [quote(item_a, 90, 10), quote(item_b, 210, 5)]
    )
    return bid_x, bid_y


def accepted_bid_with_commission(core: BiddingCore, **commission: Any) -> Bid:
    """
    Two-item requirement with competing bids, supplier-x accepted and commission provisioned

    Returns:
        The accepted bid
    """
    requirement_id, item_a, item_b = create_two_item_requirement(core)
    bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)
    core.accept_bid(bid_x.bid_id)
    core.provision_commission(bid_x.bid_id, referrer_id="partner-1", **commission)
    return core.get_bid(bid_x.bid_id)


def item_ids(bid: Bid) -> tuple[str, ...]:
    return tuple(item.bid_item_id for item in bid.items)


def make_event(
    stream_id: str,
    version: int,
    *,
    command_id: str | None = None,
    stream_type: str = "test",
    event_type: str = "TestEvent",
    payload: dict[str, Any] | None = None,
) -> Event:
    """Builder for raw events used by event store tests"""
    return Event(
        event_id=generate_id(),
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc),
        actor_id="test-actor",
        command_id=command_id or generate_id(),
        payload=payload or {},
        version=version,
    )


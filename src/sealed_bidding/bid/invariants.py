"""
Bid Invariants

Pure validation functions for bid submission, re-bid and decisions.
"""

from decimal import Decimal

from sealed_bidding.bid.commands import BidItemSpec
from sealed_bidding.bid.models import Bid, BidStatus
from sealed_bidding.kernel.amounts import parse_price, parse_quantity
from sealed_bidding.kernel.errors import (
    BidNotEditable,
    InvalidStatusTransition,
    ValidationError,
)
from sealed_bidding.requirement.models import Requirement, RequirementStatus


def validate_items_present(items: list[BidItemSpec], *, entity_id: str | None = None) -> None:
    if not items:
        raise ValidationError("items", "at least one bid item is required", entity_id=entity_id)


def validate_no_duplicate_items(
    items: list[BidItemSpec], *, entity_id: str | None = None
) -> None:
    """A requirement item may be quoted at most once per bid"""
    seen: set[str] = set()
    for spec in items:
        if spec.requirement_item_id in seen:
            raise ValidationError(
                "requirement_item_id",
                f"{spec.requirement_item_id} quoted more than once",
                entity_id=entity_id,
                value=spec.requirement_item_id,
            )
        seen.add(spec.requirement_item_id)


def validate_item_belongs(spec: BidItemSpec, requirement: Requirement) -> None:
    """
    Raises:
        ValidationError: If the requirement item is not part of this requirement
    """
    if requirement.item(spec.requirement_item_id) is None:
        raise ValidationError(
            "requirement_item_id",
            f"not an item of requirement {requirement.requirement_id}",
            entity_id=requirement.requirement_id,
            value=spec.requirement_item_id,
        )


def parse_item_spec(
    spec: BidItemSpec, index: int, places: int, *, entity_id: str | None = None
) -> tuple[Decimal, Decimal]:
    """
    Parse the quoted price and quantity of one bid line

    Returns:
        (unit_price, quantity)
    """
    unit_price = parse_price(spec.unit_price, f"items[{index}].unit_price", entity_id=entity_id)
    quantity = parse_quantity(
        spec.quantity, f"items[{index}].quantity", places, entity_id=entity_id
    )
    return unit_price, quantity


def validate_editable(bid: Bid, requirement: Requirement) -> None:
    """
    Re-bid is allowed only on a pending bid of an active requirement

    Raises:
        BidNotEditable: Otherwise
    """
    if bid.status != BidStatus.PENDING or requirement.status != RequirementStatus.ACTIVE:
        raise BidNotEditable(bid.bid_id, bid.status.value, requirement.status.value)


def validate_decision(bid: Bid, target: BidStatus) -> None:
    """
    Only pending bids can be accepted or rejected

    Raises:
        InvalidStatusTransition: If the bid was already decided the other way
    """
    if bid.status != BidStatus.PENDING:
        raise InvalidStatusTransition(bid.bid_id, bid.status.value, target.value)

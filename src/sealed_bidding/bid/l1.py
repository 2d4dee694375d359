"""
L1 Resolver - lowest bidder per requirement line item

L1 is derived state: recomputed from the bid ledger on every read and
never stored. There is no "is_l1" flag to drift out of date.

Ranking is strictly per line item. Different suppliers can be L1 on
different items of the same requirement.

Fun fact: "L1" is Indian public-procurement shorthand - L1, L2, L3 are the
lowest, second-lowest and third-lowest quotes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, Field

from sealed_bidding.bid.models import Bid, BidStatus
from sealed_bidding.bid.pricing import fee_inclusive
from sealed_bidding.requirement.models import Requirement, RequirementItem


class RankedBidItem(BaseModel):
    """A bid item with the bid context needed to rank it"""

    rank: int = Field(..., ge=1, description="1 = lowest unit price")
    bid_id: str
    bid_item_id: str
    supplier_id: str
    unit_price: Decimal
    quantity: Decimal
    total: Decimal
    bid_status: BidStatus
    submitted_at: datetime


class L1Line(BaseModel):
    """Ranking of all quotes for one requirement item"""

    requirement_item: RequirementItem
    lowest: RankedBidItem | None = Field(default=None, description="L1 quote")
    supplier_id: str | None = Field(default=None, description="L1 supplier")
    ranked: list[RankedBidItem] = Field(default_factory=list)
    inclusive_unit_price: Decimal | None = Field(
        default=None, description="L1 unit price including the service fee"
    )
    inclusive_total: Decimal | None = Field(
        default=None, description="L1 line total including the service fee"
    )


class L1Summary(BaseModel):
    """Requirement-level roll-up of the per-item L1 lines"""

    requirement_id: str
    lines: dict[str, L1Line]
    l1_total: Decimal = Field(..., description="Σ L1 line totals over covered items")
    l1_total_inclusive: Decimal = Field(..., description="Same, fee-inclusive")
    uncovered_item_ids: list[str] = Field(
        default_factory=list, description="Requirement items nobody quoted"
    )


def compute_l1(
    requirement: Requirement,
    bids: Iterable[Bid],
    *,
    service_fee_rate: Decimal = Decimal("0"),
    bid_statuses: Iterable[BidStatus] | None = None,
) -> dict[str, L1Line]:
    """
    Rank every quote per requirement item, lowest unit price first

    Ties on unit price go to the earlier-submitted bid; identical submission
    times fall back to the ledger's submission order.

    Args:
        requirement: Requirement whose items are ranked
        bids: Bids against the requirement
        service_fee_rate: Rate used for the fee-inclusive L1 prices
        bid_statuses: Only rank bids in these statuses (None = all)

    Returns:
        Mapping requirement_item_id -> L1Line, one entry per requirement item
    """
    allowed = set(bid_statuses) if bid_statuses is not None else None
    candidates = [
        bid
        for bid in bids
        if bid.requirement_id == requirement.requirement_id
        and (allowed is None or bid.status in allowed)
    ]

    lines: dict[str, L1Line] = {}
    for requirement_item in requirement.items:
        quotes = [
            (bid, item)
            for bid in candidates
            for item in bid.items
            if item.requirement_item_id == requirement_item.requirement_item_id
        ]
        quotes.sort(key=lambda q: (q[1].unit_price, q[0].submitted_at, q[0].sequence))

        ranked = [
            RankedBidItem(
                rank=position,
                bid_id=bid.bid_id,
                bid_item_id=item.bid_item_id,
                supplier_id=bid.supplier_id,
                unit_price=item.unit_price,
                quantity=item.quantity,
                total=item.total,
                bid_status=bid.status,
                submitted_at=bid.submitted_at,
            )
            for position, (bid, item) in enumerate(quotes, start=1)
        ]

        lowest = ranked[0] if ranked else None
        lines[requirement_item.requirement_item_id] = L1Line(
            requirement_item=requirement_item,
            lowest=lowest,
            supplier_id=lowest.supplier_id if lowest else None,
            ranked=ranked,
            inclusive_unit_price=(
                fee_inclusive(lowest.unit_price, service_fee_rate) if lowest else None
            ),
            inclusive_total=fee_inclusive(lowest.total, service_fee_rate) if lowest else None,
        )
    return lines


def summarize_l1(requirement: Requirement, lines: dict[str, L1Line]) -> L1Summary:
    """Totals of the L1 quotes plus the items left uncovered"""
    covered = [line for line in lines.values() if line.lowest is not None]
    return L1Summary(
        requirement_id=requirement.requirement_id,
        lines=lines,
        l1_total=sum((line.lowest.total for line in covered), Decimal("0")),
        l1_total_inclusive=sum((line.inclusive_total for line in covered), Decimal("0")),
        uncovered_item_ids=[
            item_id for item_id, line in lines.items() if line.lowest is None
        ],
    )

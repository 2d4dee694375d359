"""
Bid Command Handlers

Transform bid commands into events after validating invariants.
Cross-component effects (awarding the requirement on acceptance) are
composed by the BiddingCore facade into the same atomic write.
"""

from decimal import Decimal

from sealed_bidding.bid import commands, events, invariants
from sealed_bidding.bid.models import Bid, BidStatus
from sealed_bidding.bid.pricing import bid_totals, line_total
from sealed_bidding.bid.projections import BidLedger
from sealed_bidding.kernel.errors import (
    BidItemNotFound,
    BidNotFound,
    ConflictError,
    RequirementNotFound,
)
from sealed_bidding.kernel.events import Event, create_event
from sealed_bidding.kernel.ids import generate_id
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.time import TimeProvider
from sealed_bidding.requirement.invariants import validate_open_for_bids
from sealed_bidding.requirement.models import Requirement
from sealed_bidding.requirement.projections import RequirementCatalog


class BidCommandHandlers:
    """Command handlers for the bid ledger"""

    def __init__(self, time_provider: TimeProvider, policy: CommercialPolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_submit_bid(
        self,
        command: commands.SubmitBid,
        command_id: str,
        actor_id: str | None,
        requirement_catalog: RequirementCatalog,
    ) -> list[Event]:
        """
        Submit a sealed bid with all of its items as one event

        Validates:
        - Requirement exists, is active and its deadline has not passed
        - At least one item, no requirement item quoted twice
        - Every requirement item belongs to the requirement
        - unit_price >= 0, quantity > 0, both finite

        Returns:
            List containing BidSubmitted event
        """
        now = self.time_provider.now()

        requirement = requirement_catalog.get(command.requirement_id)
        if requirement is None:
            raise RequirementNotFound(command.requirement_id)
        validate_open_for_bids(requirement, now)

        invariants.validate_items_present(command.items, entity_id=requirement.requirement_id)
        invariants.validate_no_duplicate_items(
            command.items, entity_id=requirement.requirement_id
        )

        bid_id = generate_id()
        item_dicts = []
        line_totals: list[Decimal] = []
        for index, spec in enumerate(command.items):
            invariants.validate_item_belongs(spec, requirement)
            unit_price, quantity = invariants.parse_item_spec(
                spec, index, self.policy.quantity_decimal_places, entity_id=bid_id
            )
            total = line_total(unit_price, quantity)
            line_totals.append(total)
            item_dicts.append(
                {
                    "bid_item_id": generate_id(),
                    "requirement_item_id": spec.requirement_item_id,
                    "unit_price": str(unit_price),
                    "quantity": str(quantity),
                    "total": str(total),
                }
            )

        totals = bid_totals(
            line_totals,
            self.policy.service_fee_rate(requirement.trade_type),
        )

        event_payload = events.BidSubmitted(
            bid_id=bid_id,
            requirement_id=requirement.requirement_id,
            supplier_id=command.supplier_id,
            items=item_dicts,
            bid_amount=totals.bid_amount,
            service_fee=totals.service_fee,
            total_amount=totals.total_amount,
            total_with_fee=totals.total_with_fee,
            submitted_at=now,
            submitted_by=actor_id,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="BidSubmitted",
                stream_id=bid_id,
                stream_type="Bid",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=event_payload,
                version=1,
            )
        ]

    def handle_revise_bid(
        self,
        command: commands.ReviseBid,
        command_id: str,
        actor_id: str | None,
        bid_ledger: BidLedger,
        requirement_catalog: RequirementCatalog,
    ) -> list[Event]:
        """
        Re-bid: overwrite price and quantity on existing bid items

        Items are matched by requirement item. Items not named keep their
        current values; the bid amounts are recomputed over all items.

        Raises:
            BidNotFound: Unknown bid
            ConflictError: expected_version does not match the bid
            BidNotEditable: Bid not pending or requirement not active
            BidItemNotFound: Bid does not quote a named requirement item
        """
        now = self.time_provider.now()

        bid = _require_bid(bid_ledger, command.bid_id)
        if command.expected_version is not None and command.expected_version != bid.version:
            raise ConflictError(bid.bid_id, command.expected_version, bid.version)

        requirement = _require_requirement(requirement_catalog, bid.requirement_id)
        invariants.validate_editable(bid, requirement)

        invariants.validate_items_present(command.items, entity_id=bid.bid_id)
        invariants.validate_no_duplicate_items(command.items, entity_id=bid.bid_id)

        revised: dict[str, dict[str, str]] = {}
        revised_totals: dict[str, Decimal] = {}
        for index, spec in enumerate(command.items):
            invariants.validate_item_belongs(spec, requirement)
            bid_item = bid.item_for(spec.requirement_item_id)
            if bid_item is None:
                raise BidItemNotFound(bid.bid_id, spec.requirement_item_id)
            unit_price, quantity = invariants.parse_item_spec(
                spec, index, self.policy.quantity_decimal_places, entity_id=bid.bid_id
            )
            total = line_total(unit_price, quantity)
            revised_totals[bid_item.bid_item_id] = total
            revised[bid_item.bid_item_id] = {
                "bid_item_id": bid_item.bid_item_id,
                "unit_price": str(unit_price),
                "quantity": str(quantity),
                "total": str(total),
            }

        totals = bid_totals(
            (revised_totals.get(item.bid_item_id, item.total) for item in bid.items),
            self.policy.service_fee_rate(requirement.trade_type),
        )

        event_payload = events.BidRevised(
            bid_id=bid.bid_id,
            items=list(revised.values()),
            bid_amount=totals.bid_amount,
            service_fee=totals.service_fee,
            total_amount=totals.total_amount,
            total_with_fee=totals.total_with_fee,
            revised_at=now,
            revised_by=actor_id,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="BidRevised",
                stream_id=bid.bid_id,
                stream_type="Bid",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=event_payload,
                version=bid.version + 1,
            )
        ]

    def handle_accept_bid(
        self,
        command: commands.AcceptBid,
        command_id: str,
        actor_id: str | None,
        bid_ledger: BidLedger,
    ) -> list[Event]:
        """
        Accept a pending bid

        Accepting an already accepted bid is a no-op (empty event list).
        """
        now = self.time_provider.now()
        bid = _require_bid(bid_ledger, command.bid_id)
        if bid.status == BidStatus.ACCEPTED:
            return []
        invariants.validate_decision(bid, BidStatus.ACCEPTED)

        event_payload = events.BidAccepted(
            bid_id=bid.bid_id,
            requirement_id=bid.requirement_id,
            accepted_at=now,
            accepted_by=actor_id,
        ).model_dump(mode="json")

        return [self._bid_event(bid, "BidAccepted", event_payload, command_id, actor_id)]

    def handle_reject_bid(
        self,
        command: commands.RejectBid,
        command_id: str,
        actor_id: str | None,
        bid_ledger: BidLedger,
    ) -> list[Event]:
        """Reject a pending bid; rejecting twice is a no-op"""
        now = self.time_provider.now()
        bid = _require_bid(bid_ledger, command.bid_id)
        if bid.status == BidStatus.REJECTED:
            return []
        invariants.validate_decision(bid, BidStatus.REJECTED)

        event_payload = events.BidRejected(
            bid_id=bid.bid_id,
            requirement_id=bid.requirement_id,
            reason=command.reason,
            rejected_at=now,
            rejected_by=actor_id,
        ).model_dump(mode="json")

        return [self._bid_event(bid, "BidRejected", event_payload, command_id, actor_id)]

    def _bid_event(
        self,
        bid: Bid,
        event_type: str,
        payload: dict,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            event_type=event_type,
            stream_id=bid.bid_id,
            stream_type="Bid",
            occurred_at=self.time_provider.now(),
            actor_id=actor_id,
            command_id=command_id,
            payload=payload,
            version=bid.version + 1,
        )


def _require_bid(bid_ledger: BidLedger, bid_id: str) -> Bid:
    bid = bid_ledger.get(bid_id)
    if bid is None:
        raise BidNotFound(bid_id)
    return bid


def _require_requirement(
    requirement_catalog: RequirementCatalog, requirement_id: str
) -> Requirement:
    requirement = requirement_catalog.get(requirement_id)
    if requirement is None:
        raise RequirementNotFound(requirement_id)
    return requirement

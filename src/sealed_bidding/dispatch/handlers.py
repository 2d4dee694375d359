"""
Dispatch Command Handlers

Produce the DispatchRecorded event for a bid. The commission recalculation
and the optional requirement close are composed by the BiddingCore facade
into the same atomic write.
"""

from sealed_bidding.bid.models import Bid
from sealed_bidding.bid.projections import BidLedger
from sealed_bidding.dispatch import commands, events, invariants
from sealed_bidding.kernel.errors import BidNotFound, ConflictError
from sealed_bidding.kernel.events import Event, create_event
from sealed_bidding.kernel.ids import generate_id
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.time import TimeProvider


class DispatchCommandHandlers:
    """Command handlers for the dispatch tracker"""

    def __init__(self, time_provider: TimeProvider, policy: CommercialPolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_record_dispatch(
        self,
        command: commands.RecordDispatch,
        command_id: str,
        actor_id: str | None,
        bid_ledger: BidLedger,
    ) -> list[Event]:
        """
        Set dispatched quantities on named bid items

        Validates:
        - Bid exists, matches expected_version and is accepted
        - Every key is an item of this bid
        - Each quantity is finite, at most N decimal places, and
          0 <= qty <= committed quantity

        Items not named keep their current dispatched quantity.

        Returns:
            List containing DispatchRecorded event
        """
        bid = self._load_bid(command.bid_id, command.expected_version, bid_ledger)
        updates = invariants.validate_item_quantities(
            bid, command.item_quantities, self.policy.quantity_decimal_places
        )
        return [self._dispatch_event(bid, updates, "per_item", command_id, actor_id)]

    def handle_record_single_dispatch(
        self,
        command: commands.RecordSingleDispatch,
        command_id: str,
        actor_id: str | None,
        bid_ledger: BidLedger,
    ) -> list[Event]:
        """
        Legacy path: one quantity for a bid with exactly one item

        Raises:
            SinglePathDispatchRejected: Bid has more than one item
        """
        bid = self._load_bid(command.bid_id, command.expected_version, bid_ledger)
        item = invariants.validate_single_item(bid)
        quantity = invariants.validate_dispatch_quantity(
            item, command.quantity, self.policy.quantity_decimal_places
        )
        return [
            self._dispatch_event(
                bid, {item.bid_item_id: quantity}, "single", command_id, actor_id
            )
        ]

    def _load_bid(
        self, bid_id: str, expected_version: int | None, bid_ledger: BidLedger
    ) -> Bid:
        bid = bid_ledger.get(bid_id)
        if bid is None:
            raise BidNotFound(bid_id)
        if expected_version is not None and expected_version != bid.version:
            raise ConflictError(bid_id, expected_version, bid.version)
        invariants.validate_bid_accepted(bid)
        return bid

    def _dispatch_event(
        self,
        bid: Bid,
        updates: dict,
        path: str,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        now = self.time_provider.now()
        event_payload = events.DispatchRecorded(
            bid_id=bid.bid_id,
            requirement_id=bid.requirement_id,
            item_quantities=updates,
            dispatched_qty=invariants.dispatched_total_after(bid, updates),
            path=path,
            recorded_at=now,
            recorded_by=actor_id,
        ).model_dump(mode="json")

        return create_event(
            event_id=generate_id(),
            event_type="DispatchRecorded",
            stream_id=bid.bid_id,
            stream_type="Bid",
            occurred_at=now,
            actor_id=actor_id,
            command_id=command_id,
            payload=event_payload,
            version=bid.version + 1,
        )

"""
Bid Projections

BidLedger holds every bid with its items. Rebuilt from bid events and from
DispatchRecorded, which lands on the bid stream.

The ledger numbers bids in the order it sees BidSubmitted. Replay follows
the global append order of the event log, so the numbering is the same on
every rebuild; the L1 resolver uses it to break submission-time ties.
"""

from datetime import datetime
from decimal import Decimal

from sealed_bidding.bid.models import Bid, BidItem, BidStatus
from sealed_bidding.kernel.events import Event


class BidLedger:
    """Bid registry projection"""

    def __init__(self) -> None:
        self.bids: dict[str, Bid] = {}
        self.by_requirement: dict[str, list[str]] = {}
        self._sequence = 0

    def apply_event(self, event: Event) -> None:
        handler = {
            "BidSubmitted": self._apply_bid_submitted,
            "BidRevised": self._apply_bid_revised,
            "BidAccepted": self._apply_bid_accepted,
            "BidRejected": self._apply_bid_rejected,
            "DispatchRecorded": self._apply_dispatch_recorded,
        }.get(event.event_type)
        if handler is not None:
            handler(event)

    def _apply_bid_submitted(self, event: Event) -> None:
        payload = event.payload
        bid_id = payload["bid_id"]
        self._sequence += 1

        self.bids[bid_id] = Bid(
            bid_id=bid_id,
            requirement_id=payload["requirement_id"],
            supplier_id=payload["supplier_id"],
            items=[
                BidItem(
                    bid_item_id=item["bid_item_id"],
                    bid_id=bid_id,
                    requirement_item_id=item["requirement_item_id"],
                    unit_price=Decimal(item["unit_price"]),
                    quantity=Decimal(item["quantity"]),
                    total=Decimal(item["total"]),
                )
                for item in payload["items"]
            ],
            bid_amount=Decimal(payload["bid_amount"]),
            service_fee=Decimal(payload["service_fee"]),
            total_amount=Decimal(payload["total_amount"]),
            total_with_fee=Decimal(payload["total_with_fee"]),
            status=BidStatus.PENDING,
            submitted_at=datetime.fromisoformat(payload["submitted_at"]),
            sequence=self._sequence,
            updated_at=None,
            version=event.version,
        )
        self.by_requirement.setdefault(payload["requirement_id"], []).append(bid_id)

    def _apply_bid_revised(self, event: Event) -> None:
        payload = event.payload
        bid = self.bids.get(payload["bid_id"])
        if bid is None:
            return

        changes = {item["bid_item_id"]: item for item in payload["items"]}
        items = [
            item.model_copy(
                update={
                    "unit_price": Decimal(changes[item.bid_item_id]["unit_price"]),
                    "quantity": Decimal(changes[item.bid_item_id]["quantity"]),
                    "total": Decimal(changes[item.bid_item_id]["total"]),
                }
            )
            if item.bid_item_id in changes
            else item
            for item in bid.items
        ]
        self.bids[bid.bid_id] = bid.model_copy(
            update={
                "items": items,
                "bid_amount": Decimal(payload["bid_amount"]),
                "service_fee": Decimal(payload["service_fee"]),
                "total_amount": Decimal(payload["total_amount"]),
                "total_with_fee": Decimal(payload["total_with_fee"]),
                "updated_at": datetime.fromisoformat(payload["revised_at"]),
                "version": event.version,
            }
        )

    def _apply_bid_accepted(self, event: Event) -> None:
        self._set_status(event, BidStatus.ACCEPTED, "accepted_at")

    def _apply_bid_rejected(self, event: Event) -> None:
        self._set_status(event, BidStatus.REJECTED, "rejected_at")

    def _set_status(self, event: Event, status: BidStatus, timestamp_key: str) -> None:
        bid = self.bids.get(event.payload["bid_id"])
        if bid is None:
            return
        self.bids[bid.bid_id] = bid.model_copy(
            update={
                "status": status,
                "updated_at": datetime.fromisoformat(event.payload[timestamp_key]),
                "version": event.version,
            }
        )

    def _apply_dispatch_recorded(self, event: Event) -> None:
        payload = event.payload
        bid = self.bids.get(payload["bid_id"])
        if bid is None:
            return

        quantities = payload["item_quantities"]
        items = [
            item.model_copy(update={"dispatched_qty": Decimal(quantities[item.bid_item_id])})
            if item.bid_item_id in quantities
            else item
            for item in bid.items
        ]
        self.bids[bid.bid_id] = bid.model_copy(
            update={
                "items": items,
                "updated_at": datetime.fromisoformat(payload["recorded_at"]),
                "version": event.version,
            }
        )

    def get(self, bid_id: str) -> Bid | None:
        return self.bids.get(bid_id)

    def list_for_requirement(self, requirement_id: str) -> list[Bid]:
        """Bids against a requirement, in submission order"""
        return [self.bids[bid_id] for bid_id in self.by_requirement.get(requirement_id, [])]

    def list_by_supplier(self, supplier_id: str) -> list[Bid]:
        return [b for b in self.bids.values() if b.supplier_id == supplier_id]

"""
Commission Projections

CommissionLedger indexes records by bid: every lookup the core makes is
"the record for this bid".
"""

from datetime import datetime
from decimal import Decimal

from sealed_bidding.commission.models import CommissionRecord
from sealed_bidding.kernel.events import Event


class CommissionLedger:
    """Commission registry projection"""

    def __init__(self) -> None:
        self.records: dict[str, CommissionRecord] = {}
        self.by_bid: dict[str, str] = {}

    def apply_event(self, event: Event) -> None:
        if event.event_type == "CommissionProvisioned":
            self._apply_provisioned(event)
        elif event.event_type == "CommissionRecalculated":
            self._apply_recalculated(event)

    def _apply_provisioned(self, event: Event) -> None:
        payload = event.payload
        commission_id = payload["commission_id"]
        self.records[commission_id] = CommissionRecord(
            commission_id=commission_id,
            bid_id=payload["bid_id"],
            referrer_id=payload.get("referrer_id"),
            platform_fee_per_unit=Decimal(payload["platform_fee_per_unit"]),
            referral_share_percentage=Decimal(payload["referral_share_percentage"]),
            created_at=datetime.fromisoformat(payload["provisioned_at"]),
            version=event.version,
        )
        self.by_bid[payload["bid_id"]] = commission_id

    def _apply_recalculated(self, event: Event) -> None:
        payload = event.payload
        record = self.records.get(payload["commission_id"])
        if record is None:
            return
        self.records[record.commission_id] = record.model_copy(
            update={
                "dispatched_qty": Decimal(payload["dispatched_qty"]),
                "total_platform_fee": Decimal(payload["total_platform_fee"]),
                "commission_amount": Decimal(payload["commission_amount"]),
                "platform_net_revenue": Decimal(payload["platform_net_revenue"]),
                "updated_at": datetime.fromisoformat(payload["recalculated_at"]),
                "version": event.version,
            }
        )

    def get_for_bid(self, bid_id: str) -> CommissionRecord | None:
        commission_id = self.by_bid.get(bid_id)
        return self.records.get(commission_id) if commission_id else None

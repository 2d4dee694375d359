"""
Commission Command Handlers
"""

from sealed_bidding.bid.projections import BidLedger
from sealed_bidding.commission import commands, events
from sealed_bidding.commission.calculator import compute_commission
from sealed_bidding.commission.projections import CommissionLedger
from sealed_bidding.dispatch.invariants import validate_bid_accepted
from sealed_bidding.kernel.amounts import parse_quantity, to_decimal, validate_non_negative
from sealed_bidding.kernel.errors import (
    BidNotFound,
    CommissionAlreadyProvisioned,
    CommissionRecordMissing,
    ValidationError,
)
from sealed_bidding.kernel.events import Event, create_event
from sealed_bidding.kernel.ids import generate_id
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.time import TimeProvider


class CommissionCommandHandlers:
    """Command handlers for the commission engine"""

    def __init__(self, time_provider: TimeProvider, policy: CommercialPolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_provision_commission(
        self,
        command: commands.ProvisionCommission,
        command_id: str,
        actor_id: str | None,
        commission_ledger: CommissionLedger,
        bid_ledger: BidLedger,
    ) -> list[Event]:
        """
        Provision the 1:1 commission record for an accepted bid

        Rates not given on the command come from the commercial policy.

        Raises:
            BidNotFound: Unknown bid
            BidNotAccepted: Bid is not accepted
            CommissionAlreadyProvisioned: Bid already has a record
            ValidationError: Negative fee or share outside 0-100
        """
        now = self.time_provider.now()

        bid = bid_ledger.get(command.bid_id)
        if bid is None:
            raise BidNotFound(command.bid_id)
        validate_bid_accepted(bid)

        existing = commission_ledger.get_for_bid(bid.bid_id)
        if existing is not None:
            raise CommissionAlreadyProvisioned(bid.bid_id, existing.commission_id)

        fee_per_unit = self.policy.platform_fee_per_unit
        if command.platform_fee_per_unit is not None:
            fee_per_unit = to_decimal(
                command.platform_fee_per_unit, "platform_fee_per_unit", entity_id=bid.bid_id
            )
            validate_non_negative(fee_per_unit, "platform_fee_per_unit", entity_id=bid.bid_id)

        share = self.policy.referral_share_percentage
        if command.referral_share_percentage is not None:
            share = to_decimal(
                command.referral_share_percentage,
                "referral_share_percentage",
                entity_id=bid.bid_id,
            )
            if not 0 <= share <= 100:
                raise ValidationError(
                    "referral_share_percentage",
                    "must be between 0 and 100",
                    entity_id=bid.bid_id,
                    value=str(share),
                )

        commission_id = generate_id()
        event_payload = events.CommissionProvisioned(
            commission_id=commission_id,
            bid_id=bid.bid_id,
            referrer_id=command.referrer_id,
            platform_fee_per_unit=fee_per_unit,
            referral_share_percentage=share,
            provisioned_at=now,
            provisioned_by=actor_id,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="CommissionProvisioned",
                stream_id=commission_id,
                stream_type="Commission",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=event_payload,
                version=1,
            )
        ]

    def handle_recalculate_commission(
        self,
        command: commands.RecalculateCommission,
        command_id: str,
        actor_id: str | None,
        commission_ledger: CommissionLedger,
    ) -> list[Event]:
        """
        Overwrite the record's amounts from the total dispatched quantity

        Uses the rates stored on the record, not the current policy.

        Raises:
            CommissionRecordMissing: No record was provisioned for the bid
            ValidationError: Quantity negative, non-finite or over-precise
        """
        now = self.time_provider.now()

        record = commission_ledger.get_for_bid(command.bid_id)
        if record is None:
            raise CommissionRecordMissing(command.bid_id)

        dispatched_qty = parse_quantity(
            command.total_dispatched_qty,
            "total_dispatched_qty",
            self.policy.quantity_decimal_places,
            entity_id=command.bid_id,
            allow_zero=True,
        )
        breakdown = compute_commission(
            record.platform_fee_per_unit, record.referral_share_percentage, dispatched_qty
        )

        event_payload = events.CommissionRecalculated(
            commission_id=record.commission_id,
            bid_id=record.bid_id,
            dispatched_qty=dispatched_qty,
            total_platform_fee=breakdown.total_platform_fee,
            commission_amount=breakdown.commission_amount,
            platform_net_revenue=breakdown.platform_net_revenue,
            recalculated_at=now,
            recalculated_by=actor_id,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="CommissionRecalculated",
                stream_id=record.commission_id,
                stream_type="Commission",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=event_payload,
                version=record.version + 1,
            )
        ]

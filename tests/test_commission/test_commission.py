"""
Tests for the commission calculator, handlers and ledger
"""

from decimal import Decimal

import pytest

from sealed_bidding.bid.commands import AcceptBid, SubmitBid
from sealed_bidding.commission.calculator import compute_commission
from sealed_bidding.commission.commands import ProvisionCommission, RecalculateCommission
from sealed_bidding.kernel.errors import (
    BidNotAccepted,
    BidNotFound,
    CommissionAlreadyProvisioned,
    CommissionRecordMissing,
    ExternalDependencyError,
    ValidationError,
)
from sealed_bidding.kernel.ids import generate_id
from sealed_bidding.requirement.commands import CreateRequirement
from tests.helpers import item_spec, quote


class TestComputeCommission:
    def test_fee_split_on_full_dispatch(self) -> None:
        breakdown = compute_commission(Decimal("220"), Decimal("20"), Decimal("15"))

        assert breakdown.total_platform_fee == Decimal("3300")
        assert breakdown.commission_amount == Decimal("660")
        assert breakdown.platform_net_revenue == Decimal("2640")

    def test_fractional_quantity_is_exact(self) -> None:
        breakdown = compute_commission(Decimal("220"), Decimal("20"), Decimal("0.01"))

        assert breakdown.total_platform_fee == Decimal("2.2")
        assert breakdown.commission_amount == Decimal("0.44")
        assert breakdown.platform_net_revenue == Decimal("1.76")

    def test_zero_quantity(self) -> None:
        breakdown = compute_commission(Decimal("220"), Decimal("20"), Decimal("0"))
        assert breakdown == (Decimal("0"), Decimal("0"), Decimal("0"))

    def test_pure(self) -> None:
        args = (Decimal("175.5"), Decimal("12.5"), Decimal("33.33"))
        assert compute_commission(*args) == compute_commission(*args)


@pytest.fixture
def accepted_bid(
    requirement_handlers, requirement_catalog, bid_handlers, bid_ledger
):
    """Accepted single-item bid in the ledger"""
    events = requirement_handlers.handle_create_requirement(
        CreateRequirement(title="Coal", items=[item_spec("Coal", 100)]), generate_id(), None
    )
    requirement_catalog.apply_event(events[0])
    requirement = requirement_catalog.get(events[0].stream_id)

    events = bid_handlers.handle_submit_bid(
        SubmitBid(
            supplier_id="supplier-x",
            requirement_id=requirement.requirement_id,
            items=[quote(requirement.items[0].requirement_item_id, 5000, 100)],
        ),
        generate_id(),
        None,
        requirement_catalog,
    )
    bid_ledger.apply_event(events[0])
    bid_id = events[0].stream_id
    for event in bid_handlers.handle_accept_bid(
        AcceptBid(bid_id=bid_id), generate_id(), None, bid_ledger
    ):
        bid_ledger.apply_event(event)
    return bid_ledger.get(bid_id)


def provision(commission_handlers, commission_ledger, bid_ledger, bid_id, **kwargs):
    events = commission_handlers.handle_provision_commission(
        ProvisionCommission(bid_id=bid_id, **kwargs),
        generate_id(),
        "referral-flow",
        commission_ledger,
        bid_ledger,
    )
    for event in events:
        commission_ledger.apply_event(event)
    return commission_ledger.get_for_bid(bid_id)


class TestProvisioning:
    def test_defaults_from_policy(
        self, commission_handlers, commission_ledger, bid_ledger, accepted_bid
    ) -> None:
        record = provision(
            commission_handlers,
            commission_ledger,
            bid_ledger,
            accepted_bid.bid_id,
            referrer_id="partner-1",
        )

        assert record.bid_id == accepted_bid.bid_id
        assert record.referrer_id == "partner-1"
        assert record.platform_fee_per_unit == Decimal("220")
        assert record.referral_share_percentage == Decimal("20")
        assert record.commission_amount == Decimal("0")
        assert record.version == 1

    def test_overridden_rates(
        self, commission_handlers, commission_ledger, bid_ledger, accepted_bid
    ) -> None:
        record = provision(
            commission_handlers,
            commission_ledger,
            bid_ledger,
            accepted_bid.bid_id,
            platform_fee_per_unit="150",
            referral_share_percentage=25,
        )
        assert record.platform_fee_per_unit == Decimal("150")
        assert record.referral_share_percentage == Decimal("25")

    def test_one_record_per_bid(
        self, commission_handlers, commission_ledger, bid_ledger, accepted_bid
    ) -> None:
        provision(commission_handlers, commission_ledger, bid_ledger, accepted_bid.bid_id)
        with pytest.raises(CommissionAlreadyProvisioned):
            provision(commission_handlers, commission_ledger, bid_ledger, accepted_bid.bid_id)

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"platform_fee_per_unit": -1}, "platform_fee_per_unit"),
            ({"referral_share_percentage": 120}, "referral_share_percentage"),
            ({"referral_share_percentage": "abc"}, "referral_share_percentage"),
        ],
    )
    def test_bad_rates(
        self, commission_handlers, commission_ledger, bid_ledger, accepted_bid, kwargs, field
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            provision(
                commission_handlers, commission_ledger, bid_ledger, accepted_bid.bid_id, **kwargs
            )
        assert exc_info.value.field == field

    def test_bid_must_exist_and_be_accepted(
        self,
        commission_handlers,
        commission_ledger,
        bid_ledger,
        bid_handlers,
        requirement_catalog,
        accepted_bid,
    ) -> None:
        with pytest.raises(BidNotFound):
            provision(commission_handlers, commission_ledger, bid_ledger, "missing")

        events = bid_handlers.handle_submit_bid(
            SubmitBid(
                supplier_id="supplier-y",
                requirement_id=accepted_bid.requirement_id,
                items=[quote(accepted_bid.items[0].requirement_item_id, 4000, 100)],
            ),
            generate_id(),
            None,
            requirement_catalog,
        )
        bid_ledger.apply_event(events[0])
        with pytest.raises(BidNotAccepted):
            provision(commission_handlers, commission_ledger, bid_ledger, events[0].stream_id)


class TestRecalculation:
    def test_overwrites_amounts_using_record_rates(
        self, commission_handlers, commission_ledger, bid_ledger, accepted_bid
    ) -> None:
        provision(
            commission_handlers,
            commission_ledger,
            bid_ledger,
            accepted_bid.bid_id,
            platform_fee_per_unit=100,
            referral_share_percentage=10,
        )

        for qty, expected_commission in (("40", "400"), ("25.5", "255")):
            events = commission_handlers.handle_recalculate_commission(
                RecalculateCommission(bid_id=accepted_bid.bid_id, total_dispatched_qty=qty),
                generate_id(),
                None,
                commission_ledger,
            )
            commission_ledger.apply_event(events[0])
            record = commission_ledger.get_for_bid(accepted_bid.bid_id)
            assert record.dispatched_qty == Decimal(qty)
            assert record.commission_amount == Decimal(expected_commission)
            assert record.total_platform_fee == Decimal(qty) * 100
            assert record.platform_net_revenue == record.total_platform_fee - Decimal(
                expected_commission
            )

        assert record.version == 3
        assert record.updated_at is not None

    def test_missing_record(self, commission_handlers, commission_ledger) -> None:
        with pytest.raises(CommissionRecordMissing) as exc_info:
            commission_handlers.handle_recalculate_commission(
                RecalculateCommission(bid_id="bid-without-record", total_dispatched_qty=1),
                generate_id(),
                None,
                commission_ledger,
            )
        assert isinstance(exc_info.value, ExternalDependencyError)
        assert exc_info.value.bid_id == "bid-without-record"

"""
Tests for BiddingCore façade

End-to-end flows through the public API over a real SQLite log: L1 across
suppliers, partial dispatch with commission recalculation, and the
all-or-nothing write of multi-stream updates.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from sealed_bidding import BiddingCore
from sealed_bidding.bid.models import BidStatus
from sealed_bidding.kernel.errors import (
    BidNotAccepted,
    BidNotEditable,
    BidNotFound,
    ConflictError,
    InvalidStatusTransition,
    RequirementNotFound,
    RequirementNotOpen,
    SinglePathDispatchRejected,
    ValidationError,
)
from sealed_bidding.kernel.metrics import commission_recalculations_total
from sealed_bidding.requirement.models import RequirementStatus
from tests.helpers import (
    accepted_bid_with_commission,
    create_two_item_requirement,
    item_ids,
    item_spec,
    make_event,
    quote,
    submit_competing_bids,
)


def event_count(core: BiddingCore) -> int:
    return len(core.event_store.load_all_events())


class TestL1AcrossSuppliers:
    def test_each_item_has_its_own_lowest_supplier(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        submit_competing_bids(core, requirement_id, item_a, item_b)

        lines = core.compute_l1(requirement_id)

        assert lines[item_a].supplier_id == "supplier-y"
        assert lines[item_a].lowest.unit_price == Decimal("90")
        assert lines[item_b].supplier_id == "supplier-x"
        assert lines[item_b].lowest.unit_price == Decimal("200")

    def test_service_fee_from_trade_type(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(
            core, trade_type="domestic_india"
        )
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)

        assert bid_x.bid_amount == Decimal("2000")
        assert bid_x.service_fee == Decimal("10")
        assert bid_x.total_amount == sum(item.total for item in bid_x.items)
        assert bid_x.total_with_fee == Decimal("2010")
        assert core.compute_l1(requirement_id)[item_a].inclusive_unit_price == Decimal("90.45")

    def test_summary(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        submit_competing_bids(core, requirement_id, item_a, item_b)

        summary = core.l1_summary(requirement_id)

        # 90 * 10 + 200 * 5
        assert summary.l1_total == Decimal("1900")
        assert summary.uncovered_item_ids == []

    def test_rebid_changes_ranking(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)

        core.update_bid(bid_x.bid_id, [quote(item_a, 85, 10)], expected_version=bid_x.version)

        assert core.compute_l1(requirement_id)[item_a].supplier_id == "supplier-x"

    def test_accepted_only(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)
        core.accept_bid(bid_x.bid_id)

        lines = core.compute_l1(requirement_id, bid_statuses=[BidStatus.ACCEPTED])

        assert lines[item_a].supplier_id == "supplier-x"

    def test_equal_price_goes_to_earlier_bid(self, core, test_time) -> None:
        requirement_id, item_a, _ = create_two_item_requirement(core)
        core.submit_bid("supplier-early", requirement_id, [quote(item_a, 95, 10)])
        test_time.advance_seconds(30)
        core.submit_bid("supplier-late", requirement_id, [quote(item_a, 95, 10)])

        line = core.compute_l1(requirement_id)[item_a]

        assert [r.supplier_id for r in line.ranked] == ["supplier-early", "supplier-late"]

    def test_unknown_requirement(self, core) -> None:
        with pytest.raises(RequirementNotFound):
            core.compute_l1("missing")

    def test_list_requirements_by_status(self, core) -> None:
        open_id, _, _ = create_two_item_requirement(core)
        cancelled_id, _, _ = create_two_item_requirement(core)
        core.cancel_requirement(cancelled_id)

        assert {r.requirement_id for r in core.list_requirements()} == {open_id, cancelled_id}
        assert [r.requirement_id for r in core.list_requirements(RequirementStatus.ACTIVE)] == [
            open_id
        ]


class TestBidLifecycle:
    def test_list_bids_by_supplier_across_requirements(self, core) -> None:
        first_id, item_a, item_b = create_two_item_requirement(core)
        second_id, item_c, _ = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, first_id, item_a, item_b)
        later = core.submit_bid("supplier-x", second_id, [quote(item_c, 95, 10)])

        bids = core.list_bids_by_supplier("supplier-x")

        assert [b.bid_id for b in bids] == [bid_x.bid_id, later.bid_id]
        assert core.list_bids_by_supplier("nobody") == []

    def test_accept_awards_requirement(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, bid_y = submit_competing_bids(core, requirement_id, item_a, item_b)

        accepted = core.accept_bid(bid_x.bid_id)

        assert accepted.status == BidStatus.ACCEPTED
        assert core.get_requirement(requirement_id).status == RequirementStatus.AWARDED
        assert core.get_bid(bid_y.bid_id).status == BidStatus.PENDING

    def test_repeated_accept_is_noop(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)
        core.accept_bid(bid_x.bid_id)
        before = event_count(core)

        core.accept_bid(bid_x.bid_id)

        assert event_count(core) == before

    def test_expired_requirement_can_still_be_awarded(self, core, test_time) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(
            core, deadline=test_time.now() + timedelta(days=1)
        )
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)

        test_time.advance_days(2)
        assert core.expire_requirements() == [requirement_id]
        core.accept_bid(bid_x.bid_id)

        assert core.get_requirement(requirement_id).status == RequirementStatus.AWARDED

    def test_accept_on_cancelled_requirement_writes_nothing(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)
        core.cancel_requirement(requirement_id)
        before = event_count(core)

        with pytest.raises(InvalidStatusTransition):
            core.accept_bid(bid_x.bid_id)

        assert event_count(core) == before
        assert core.get_bid(bid_x.bid_id).status == BidStatus.PENDING

    def test_submit_is_idempotent_per_command_id(self, core) -> None:
        requirement_id, item_a, _ = create_two_item_requirement(core)

        first = core.submit_bid(
            "supplier-x", requirement_id, [quote(item_a, 100, 10)], command_id="cmd-1"
        )
        second = core.submit_bid(
            "supplier-x", requirement_id, [quote(item_a, 100, 10)], command_id="cmd-1"
        )

        assert second.bid_id == first.bid_id
        assert len(core.list_bids(requirement_id)) == 1

    def test_command_id_of_another_command(self, core) -> None:
        requirement_id, item_a, _ = create_two_item_requirement(core)
        core.event_store.append("other-stream", 0, [make_event("other-stream", 1, command_id="cmd-x")])

        with pytest.raises(ValidationError) as exc_info:
            core.submit_bid(
                "supplier-x", requirement_id, [quote(item_a, 100, 10)], command_id="cmd-x"
            )
        assert exc_info.value.field == "command_id"

    def test_malformed_command_reported_as_validation_error(self, core) -> None:
        with pytest.raises(ValidationError):
            core.create_requirement("Steel", "not-a-list")

    def test_huge_quantity_reported_as_validation_error(self, core) -> None:
        before = event_count(core)

        with pytest.raises(ValidationError) as exc_info:
            core.create_requirement("Steel", [item_spec("TMT bar", "1e30")])

        assert exc_info.value.field == "items[0].quantity"
        assert event_count(core) == before


class TestDispatchAndCommission:
    def test_full_dispatch_recalculates_commission(self, core) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, item_b = item_ids(bid)

        updated = core.record_dispatch(bid.bid_id, {item_a: 10, item_b: 5})

        assert updated.dispatched_qty == Decimal("15")
        record = core.get_commission(bid.bid_id)
        assert record.dispatched_qty == Decimal("15")
        assert record.total_platform_fee == Decimal("3300")
        assert record.commission_amount == Decimal("660")
        assert record.platform_net_revenue == Decimal("2640")

    def test_partial_dispatches_overwrite_commission(self, core) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, item_b = item_ids(bid)

        core.record_dispatch(bid.bid_id, {item_a: 4})
        assert core.get_commission(bid.bid_id).commission_amount == Decimal("176")

        core.record_dispatch(bid.bid_id, {item_b: "2.5"})
        record = core.get_commission(bid.bid_id)
        assert record.dispatched_qty == Decimal("6.5")
        assert record.commission_amount == Decimal("286")

    def test_same_dispatch_twice_gives_same_amounts(self, core) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, item_b = item_ids(bid)

        core.record_dispatch(bid.bid_id, {item_a: 10, item_b: 5})
        first = core.get_commission(bid.bid_id)
        core.record_dispatch(bid.bid_id, {item_a: 10, item_b: 5})
        second = core.get_commission(bid.bid_id)

        assert core.get_bid(bid.bid_id).dispatched_qty == Decimal("15")
        assert second.commission_amount == first.commission_amount
        assert second.platform_net_revenue == first.platform_net_revenue

    def test_single_path_rejected_for_multi_item_bid(self, core) -> None:
        bid = accepted_bid_with_commission(core)
        before = event_count(core)

        with pytest.raises(SinglePathDispatchRejected):
            core.record_dispatch_single(bid.bid_id, 15)

        assert event_count(core) == before
        assert core.get_bid(bid.bid_id).dispatched_qty == Decimal("0")
        assert core.get_commission(bid.bid_id).dispatched_qty == Decimal("0")

    def test_single_path_on_single_item_bid(self, core) -> None:
        requirement_id = core.create_requirement("Coal", [item_spec("Coal", 100)])
        item_id = core.get_requirement(requirement_id).items[0].requirement_item_id
        bid = core.submit_bid("supplier-x", requirement_id, [quote(item_id, 5000, 100)])
        core.accept_bid(bid.bid_id)
        core.provision_commission(bid.bid_id, referrer_id="partner-1")

        updated = core.record_dispatch_single(bid.bid_id, 40)

        assert updated.items[0].dispatched_qty == Decimal("40")
        assert core.get_commission(bid.bid_id).commission_amount == Decimal("1760")

    def test_close_requirement_in_same_write(self, core) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, item_b = item_ids(bid)

        core.record_dispatch(bid.bid_id, {item_a: 10, item_b: 5}, close_requirement=True)

        assert core.get_requirement(bid.requirement_id).status == RequirementStatus.CLOSED
        assert core.get_commission(bid.bid_id).dispatched_qty == Decimal("15")

    def test_failed_close_writes_nothing(self, core) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, _ = item_ids(bid)
        core.cancel_requirement(bid.requirement_id)
        before = event_count(core)

        with pytest.raises(InvalidStatusTransition):
            core.record_dispatch(bid.bid_id, {item_a: 3}, close_requirement=True)

        assert event_count(core) == before
        assert core.get_bid(bid.bid_id).dispatched_qty == Decimal("0")
        assert core.get_commission(bid.bid_id).dispatched_qty == Decimal("0")

    def test_missing_commission_record_is_skipped(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)
        core.accept_bid(bid_x.bid_id)
        skipped = commission_recalculations_total.labels(outcome="skipped_missing_record")
        before = skipped._value.get()

        updated = core.record_dispatch(bid_x.bid_id, {item_ids(bid_x)[0]: 7})

        assert updated.dispatched_qty == Decimal("7")
        assert core.get_commission(bid_x.bid_id) is None
        assert skipped._value.get() == before + 1

    def test_dispatch_requires_accepted_bid(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)

        with pytest.raises(BidNotAccepted):
            core.record_dispatch(bid_x.bid_id, {item_ids(bid_x)[0]: 1})

    def test_stale_expected_version(self, core) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, _ = item_ids(bid)
        core.record_dispatch(bid.bid_id, {item_a: 1}, expected_version=bid.version)

        with pytest.raises(ConflictError):
            core.record_dispatch(bid.bid_id, {item_a: 2}, expected_version=bid.version)
        assert core.get_bid(bid.bid_id).items[0].dispatched_qty == Decimal("1")

    def test_concurrent_writer_conflict_then_retry(self, core, temp_db, test_time, policy) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, item_b = item_ids(bid)
        other = BiddingCore(temp_db, policy=policy, time_provider=test_time)

        core.record_dispatch(bid.bid_id, {item_a: 10})
        before = event_count(core)

        # other still holds the pre-dispatch projections
        with pytest.raises(ConflictError):
            other.record_dispatch(bid.bid_id, {item_b: 5})
        assert event_count(core) == before

        updated = other.record_dispatch(bid.bid_id, {item_b: 5})
        assert updated.dispatched_qty == Decimal("15")
        assert other.get_commission(bid.bid_id).commission_amount == Decimal("660")


class TestStaleRequirementReads:
    """A second façade on the same log must not act on a requirement status it no longer sees"""

    def test_submit_after_another_writer_cancelled(self, core, temp_db, test_time, policy) -> None:
        requirement_id, item_a, _ = create_two_item_requirement(core)
        other = BiddingCore(temp_db, policy=policy, time_provider=test_time)
        core.cancel_requirement(requirement_id)
        before = event_count(core)

        with pytest.raises(ConflictError) as exc_info:
            other.submit_bid("supplier-x", requirement_id, [quote(item_a, 100, 10)])
        assert exc_info.value.stream_id == requirement_id
        assert event_count(core) == before

        with pytest.raises(RequirementNotOpen):
            other.submit_bid("supplier-x", requirement_id, [quote(item_a, 100, 10)])
        assert other.list_bids(requirement_id) == []

    def test_rebid_after_another_writer_cancelled(self, core, temp_db, test_time, policy) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)
        other = BiddingCore(temp_db, policy=policy, time_provider=test_time)
        core.cancel_requirement(requirement_id)

        with pytest.raises(ConflictError):
            other.update_bid(bid_x.bid_id, [quote(item_a, 80, 10)])

        with pytest.raises(BidNotEditable):
            other.update_bid(bid_x.bid_id, [quote(item_a, 80, 10)])
        assert other.get_bid(bid_x.bid_id).items[0].unit_price == Decimal("100")

    def test_accept_after_another_writer_closed(self, core, temp_db, test_time, policy) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, bid_y = submit_competing_bids(core, requirement_id, item_a, item_b)
        core.accept_bid(bid_x.bid_id)
        # other sees the requirement as awarded, so accepting adds no requirement event
        other = BiddingCore(temp_db, policy=policy, time_provider=test_time)
        core.close_requirement(requirement_id)
        before = event_count(core)

        with pytest.raises(ConflictError):
            other.accept_bid(bid_y.bid_id)
        assert event_count(core) == before

        with pytest.raises(InvalidStatusTransition):
            other.accept_bid(bid_y.bid_id)
        assert other.get_bid(bid_y.bid_id).status == BidStatus.PENDING

    def test_unchanged_requirement_does_not_conflict(self, core, temp_db, test_time, policy) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        other = BiddingCore(temp_db, policy=policy, time_provider=test_time)
        core.submit_bid("supplier-x", requirement_id, [quote(item_a, 100, 10)])

        bid = other.submit_bid("supplier-y", requirement_id, [quote(item_b, 200, 5)])

        assert bid.status == BidStatus.PENDING


class TestCommissionRecalculation:
    def test_recalculate_directly(self, core) -> None:
        bid = accepted_bid_with_commission(core, platform_fee_per_unit=100, referral_share_percentage=10)

        record = core.recalculate_commission(bid.bid_id, "12")

        assert record.commission_amount == Decimal("120")
        assert record.platform_net_revenue == Decimal("1080")

    def test_recalculate_without_record(self, core) -> None:
        requirement_id, item_a, item_b = create_two_item_requirement(core)
        bid_x, _ = submit_competing_bids(core, requirement_id, item_a, item_b)
        core.accept_bid(bid_x.bid_id)
        before = event_count(core)

        assert core.recalculate_commission(bid_x.bid_id, 5) is None
        assert event_count(core) == before

    def test_recalculate_unknown_bid(self, core) -> None:
        with pytest.raises(BidNotFound):
            core.recalculate_commission("missing", 5)

    def test_get_commission_unknown_bid(self, core) -> None:
        with pytest.raises(BidNotFound):
            core.get_commission("missing")


class TestReplay:
    def test_reopened_core_rebuilds_same_state(self, core, temp_db, test_time, policy) -> None:
        bid = accepted_bid_with_commission(core)
        item_a, item_b = item_ids(bid)
        core.record_dispatch(bid.bid_id, {item_a: 6, item_b: 5})

        reopened = BiddingCore(temp_db, policy=policy, time_provider=test_time)

        assert reopened.get_bid(bid.bid_id) == core.get_bid(bid.bid_id)
        assert reopened.get_commission(bid.bid_id) == core.get_commission(bid.bid_id)
        assert reopened.get_requirement(bid.requirement_id) == core.get_requirement(
            bid.requirement_id
        )
        assert reopened.compute_l1(bid.requirement_id) == core.compute_l1(bid.requirement_id)

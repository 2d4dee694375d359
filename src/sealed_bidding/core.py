"""
BiddingCore - Main façade class

This is the primary interface to the sealed bidding core. It hides the
event log, projections and command handlers behind a small API.

Every mutation is one unit of work: handlers validate against the current
projections and produce events, and the façade appends all of them in a
single transaction. Operations that touch several streams (accepting a bid
awards its requirement; a dispatch update recalculates the commission and
may close the requirement) either commit completely or not at all.

Example:
    >>> from sealed_bidding import BiddingCore
    >>> core = BiddingCore("bidding.db")
    >>> rfq = core.create_requirement("Steel", [{"item_name": "TMT bar", "quantity": 10, "unit": "MT"}])
    >>> item_id = core.get_requirement(rfq).items[0].requirement_item_id
    >>> bid = core.submit_bid("supplier-x", rfq, [{"requirement_item_id": item_id, "unit_price": 100, "quantity": 10}])
    >>> core.compute_l1(rfq)[item_id].supplier_id
    'supplier-x'
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from sealed_bidding.bid.commands import AcceptBid, RejectBid, ReviseBid, SubmitBid
from sealed_bidding.bid.handlers import BidCommandHandlers
from sealed_bidding.bid.l1 import L1Line, L1Summary, compute_l1, summarize_l1
from sealed_bidding.bid.models import Bid, BidStatus
from sealed_bidding.bid.projections import BidLedger
from sealed_bidding.commission.commands import ProvisionCommission, RecalculateCommission
from sealed_bidding.commission.handlers import CommissionCommandHandlers
from sealed_bidding.commission.models import CommissionRecord
from sealed_bidding.commission.projections import CommissionLedger
from sealed_bidding.dispatch.commands import RecordDispatch, RecordSingleDispatch
from sealed_bidding.dispatch.handlers import DispatchCommandHandlers
from sealed_bidding.kernel.errors import (
    BidNotFound,
    CommissionRecordMissing,
    ConflictError,
    RequirementNotFound,
    ValidationError,
)
from sealed_bidding.kernel.event_store import EventStore, SQLiteEventStore, StreamAppend
from sealed_bidding.kernel.events import Event
from sealed_bidding.kernel.ids import generate_id
from sealed_bidding.kernel.logging import LogOperation, get_logger
from sealed_bidding.kernel.metrics import (
    bid_items_per_bid,
    bids_submitted_total,
    commission_recalculations_total,
    dispatches_recorded_total,
    track_command_duration,
)
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.retry import retry_on_sqlite_lock
from sealed_bidding.kernel.time import RealTimeProvider, TimeProvider
from sealed_bidding.requirement.commands import ChangeRequirementStatus, CreateRequirement
from sealed_bidding.requirement.handlers import RequirementCommandHandlers
from sealed_bidding.requirement.models import Requirement, RequirementStatus
from sealed_bidding.requirement.projections import RequirementCatalog

logger = get_logger(__name__)

C = TypeVar("C", bound=BaseModel)


def _build_command(command_cls: type[C], **fields: Any) -> C:
    """Construct a command, reporting malformed input as our ValidationError"""
    try:
        return command_cls(**fields)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or command_cls.__name__
        raise ValidationError(field, error["msg"]) from e


def _stream_appends(
    events: list[Event], reads: dict[str, int] | None = None
) -> list[StreamAppend]:
    """
    Group events by stream; each stream expects the version before its first event

    Streams in reads that receive no events become read guards at the
    version the command validated against.
    """
    grouped: dict[str, list[Event]] = {}
    for event in events:
        grouped.setdefault(event.stream_id, []).append(event)
    appends = [
        StreamAppend(stream_id, stream_events[0].version - 1, stream_events)
        for stream_id, stream_events in grouped.items()
    ]
    for stream_id, version in (reads or {}).items():
        if stream_id not in grouped:
            appends.append(StreamAppend(stream_id, version, []))
    return appends


class BiddingCore:
    """
    Sealed bidding main façade

    Provides a unified API for:
    - Requirement (RFQ) creation and lifecycle
    - Sealed bid submission, re-bid, acceptance and rejection
    - Per-line-item L1 resolution
    - Partial dispatch tracking
    - Commission provisioning and recalculation
    """

    def __init__(
        self,
        sqlite_path: str | Path | None = None,
        *,
        event_store: EventStore | None = None,
        policy: CommercialPolicy | None = None,
        time_provider: TimeProvider | None = None,
    ) -> None:
        """
        Initialize the core

        Args:
            sqlite_path: Path to SQLite database (ignored when event_store given)
            event_store: Injected event store
            policy: Commercial policy (uses defaults if None)
            time_provider: Time provider (uses real time if None)
        """
        if event_store is None:
            if sqlite_path is None:
                raise ValueError("Either sqlite_path or event_store is required")
            event_store = SQLiteEventStore(sqlite_path)

        self.event_store = event_store
        self.policy = policy or CommercialPolicy()
        self.time_provider = time_provider or RealTimeProvider()

        self.requirement_handlers = RequirementCommandHandlers(self.time_provider, self.policy)
        self.bid_handlers = BidCommandHandlers(self.time_provider, self.policy)
        self.dispatch_handlers = DispatchCommandHandlers(self.time_provider, self.policy)
        self.commission_handlers = CommissionCommandHandlers(self.time_provider, self.policy)

        self._rebuild_projections()

    def _rebuild_projections(self) -> None:
        """Rebuild all projections from the event log, in append order"""
        self.requirement_catalog = RequirementCatalog()
        self.bid_ledger = BidLedger()
        self.commission_ledger = CommissionLedger()
        for event in self.event_store.load_all_events():
            self._apply(event)

    def _apply(self, event: Event) -> None:
        if event.stream_type == "Requirement":
            self.requirement_catalog.apply_event(event)
        elif event.stream_type == "Bid":
            self.bid_ledger.apply_event(event)
        elif event.stream_type == "Commission":
            self.commission_ledger.apply_event(event)

    def _commit(
        self,
        events: list[Event],
        *,
        reads: dict[str, int] | None = None,
        retry_lock: bool = False,
    ) -> list[Event]:
        """
        Append events atomically and update projections

        reads maps stream_id to the projected version a command validated
        against; a stream that moved since then fails the write.

        On a version conflict the projections are rebuilt before the error
        propagates, so the caller's retry validates against current state.
        """
        append_batch = self.event_store.append_batch
        if retry_lock:
            append_batch = retry_on_sqlite_lock(
                max_attempts=self.policy.dispatch_lock_retry_attempts
            )(append_batch)

        try:
            stored = append_batch(_stream_appends(events, reads))
        except ConflictError:
            self._rebuild_projections()
            raise

        if {e.event_id for e in stored} == {e.event_id for e in events}:
            for event in stored:
                self._apply(event)
        else:
            # Command was already stored by an earlier call
            self._rebuild_projections()
        return stored

    # Requirement operations

    @track_command_duration("create_requirement")
    def create_requirement(
        self,
        title: str,
        items: list[Any],
        *,
        buyer_id: str | None = None,
        deadline: datetime | None = None,
        trade_type: str | None = None,
        metadata: dict[str, Any] | None = None,
        actor_id: str | None = None,
    ) -> str:
        """
        Create a requirement with its line items

        Args:
            title: Requirement title
            items: Line items (dicts or RequirementItemSpec) with item_name,
                quantity, unit and optional category/description
            buyer_id: Owning buyer
            deadline: Bidding deadline (None = open until closed)
            trade_type: Selects the service fee rate
            metadata: Free-form attributes
            actor_id: Actor creating the requirement

        Returns:
            The new requirement_id
        """
        command = _build_command(
            CreateRequirement,
            title=title,
            items=items,
            buyer_id=buyer_id,
            deadline=deadline,
            trade_type=trade_type,
            metadata=metadata or {},
        )
        with LogOperation(logger, "create_requirement", item_count=len(command.items)):
            events = self.requirement_handlers.handle_create_requirement(
                command, generate_id(), actor_id
            )
            stored = self._commit(events)
        return stored[0].stream_id

    def get_requirement(self, requirement_id: str) -> Requirement | None:
        return self.requirement_catalog.get(requirement_id)

    def list_requirements(self, status: RequirementStatus | None = None) -> list[Requirement]:
        if status is None:
            return self.requirement_catalog.list_all()
        return self.requirement_catalog.list_by_status(status)

    def close_requirement(
        self, requirement_id: str, *, reason: str | None = None, actor_id: str | None = None
    ) -> Requirement:
        """Mark a requirement closed (repeating the close is a no-op)"""
        return self._change_requirement_status(
            requirement_id, RequirementStatus.CLOSED, reason, actor_id
        )

    def cancel_requirement(
        self, requirement_id: str, *, reason: str | None = None, actor_id: str | None = None
    ) -> Requirement:
        return self._change_requirement_status(
            requirement_id, RequirementStatus.CANCELLED, reason, actor_id
        )

    @track_command_duration("change_requirement_status")
    def _change_requirement_status(
        self,
        requirement_id: str,
        target: RequirementStatus,
        reason: str | None,
        actor_id: str | None,
    ) -> Requirement:
        command = ChangeRequirementStatus(
            requirement_id=requirement_id, target_status=target, reason=reason
        )
        with LogOperation(
            logger, "change_requirement_status", requirement_id=requirement_id, target=target.value
        ):
            events = self.requirement_handlers.handle_change_status(
                command, generate_id(), actor_id, self.requirement_catalog
            )
            if events:
                self._commit(events)
        return self.requirement_catalog.get(requirement_id)

    @track_command_duration("expire_requirements")
    def expire_requirements(self) -> list[str]:
        """
        Expire every active requirement whose deadline has passed

        Returns:
            Ids of the requirements expired by this sweep
        """
        with LogOperation(logger, "expire_requirements"):
            events = self.requirement_handlers.handle_expire_requirements(
                generate_id(), self.requirement_catalog
            )
            if events:
                self._commit(events)
        return [event.stream_id for event in events]

    # Bid operations

    @track_command_duration("submit_bid")
    def submit_bid(
        self,
        supplier_id: str,
        requirement_id: str,
        items: list[Any],
        *,
        command_id: str | None = None,
        actor_id: str | None = None,
    ) -> Bid:
        """
        Submit a sealed bid

        Args:
            supplier_id: Submitting supplier
            requirement_id: Requirement bid against
            items: Quotes (dicts or BidItemSpec) with requirement_item_id,
                unit_price and quantity
            command_id: Idempotency key; resubmitting with the same key
                returns the bid created the first time
            actor_id: Actor submitting (defaults to the supplier)

        Returns:
            The submitted Bid
        """
        if command_id is not None:
            existing = self.event_store.load_command_events(command_id)
            if existing:
                return self._bid_for_command(command_id, existing)

        command = _build_command(
            SubmitBid, supplier_id=supplier_id, requirement_id=requirement_id, items=items
        )
        with LogOperation(
            logger, "submit_bid", requirement_id=requirement_id, item_count=len(command.items)
        ):
            events = self.bid_handlers.handle_submit_bid(
                command,
                command_id or generate_id(),
                actor_id or supplier_id,
                self.requirement_catalog,
            )
            stored = self._commit(events, reads=self._requirement_read(requirement_id))

        bids_submitted_total.inc()
        bid_items_per_bid.observe(len(command.items))
        return self.bid_ledger.get(stored[0].stream_id)

    def _requirement_read(self, requirement_id: str) -> dict[str, int]:
        """Read guard for the requirement a bid command was validated against"""
        requirement = self.requirement_catalog.get(requirement_id)
        return {requirement_id: requirement.version} if requirement else {}

    def _bid_for_command(self, command_id: str, existing: list[Event]) -> Bid:
        if existing[0].event_type != "BidSubmitted":
            raise ValidationError(
                "command_id", "already used by another command", value=command_id
            )
        bid_id = existing[0].stream_id
        if self.bid_ledger.get(bid_id) is None:
            self._rebuild_projections()
        logger.info("Bid already submitted for command", command_id=command_id, bid_id=bid_id)
        return self.bid_ledger.get(bid_id)

    @track_command_duration("update_bid")
    def update_bid(
        self,
        bid_id: str,
        items: list[Any],
        *,
        expected_version: int | None = None,
        actor_id: str | None = None,
    ) -> Bid:
        """
        Re-bid: overwrite price/quantity on existing bid items

        Only while the bid is pending and its requirement active.
        """
        command = _build_command(
            ReviseBid, bid_id=bid_id, items=items, expected_version=expected_version
        )
        with LogOperation(logger, "update_bid", bid_id=bid_id):
            events = self.bid_handlers.handle_revise_bid(
                command, generate_id(), actor_id, self.bid_ledger, self.requirement_catalog
            )
            requirement_id = self.bid_ledger.get(bid_id).requirement_id
            self._commit(events, reads=self._requirement_read(requirement_id))
        return self.bid_ledger.get(bid_id)

    @track_command_duration("accept_bid")
    def accept_bid(self, bid_id: str, *, actor_id: str | None = None) -> Bid:
        """
        Accept a pending bid

        An active or expired requirement moves to awarded in the same write.
        """
        command_id = generate_id()
        with LogOperation(logger, "accept_bid", bid_id=bid_id):
            events = self.bid_handlers.handle_accept_bid(
                AcceptBid(bid_id=bid_id), command_id, actor_id, self.bid_ledger
            )
            if events:
                bid = self.bid_ledger.get(bid_id)
                events += self.requirement_handlers.handle_change_status(
                    ChangeRequirementStatus(
                        requirement_id=bid.requirement_id,
                        target_status=RequirementStatus.AWARDED,
                        reason=f"bid {bid_id} accepted",
                    ),
                    command_id,
                    actor_id,
                    self.requirement_catalog,
                )
                self._commit(events, reads=self._requirement_read(bid.requirement_id))
        return self.bid_ledger.get(bid_id)

    @track_command_duration("reject_bid")
    def reject_bid(
        self, bid_id: str, *, reason: str | None = None, actor_id: str | None = None
    ) -> Bid:
        with LogOperation(logger, "reject_bid", bid_id=bid_id):
            events = self.bid_handlers.handle_reject_bid(
                RejectBid(bid_id=bid_id, reason=reason), generate_id(), actor_id, self.bid_ledger
            )
            if events:
                self._commit(events)
        return self.bid_ledger.get(bid_id)

    def get_bid(self, bid_id: str) -> Bid | None:
        return self.bid_ledger.get(bid_id)

    def list_bids(self, requirement_id: str) -> list[Bid]:
        return self.bid_ledger.list_for_requirement(requirement_id)

    def list_bids_by_supplier(self, supplier_id: str) -> list[Bid]:
        """Every bid a supplier has placed, across requirements"""
        return self.bid_ledger.list_by_supplier(supplier_id)

    # L1 resolution

    def compute_l1(
        self, requirement_id: str, *, bid_statuses: Iterable[BidStatus] | None = None
    ) -> dict[str, L1Line]:
        """
        Lowest quote per requirement item, recomputed on every call

        Args:
            requirement_id: Requirement to rank
            bid_statuses: Only rank bids in these statuses (None = all)

        Returns:
            Mapping requirement_item_id -> L1Line
        """
        requirement = self.requirement_catalog.get(requirement_id)
        if requirement is None:
            raise RequirementNotFound(requirement_id)
        return compute_l1(
            requirement,
            self.bid_ledger.list_for_requirement(requirement_id),
            service_fee_rate=self.policy.service_fee_rate(requirement.trade_type),
            bid_statuses=bid_statuses,
        )

    def l1_summary(
        self, requirement_id: str, *, bid_statuses: Iterable[BidStatus] | None = None
    ) -> L1Summary:
        lines = self.compute_l1(requirement_id, bid_statuses=bid_statuses)
        return summarize_l1(self.requirement_catalog.get(requirement_id), lines)

    # Dispatch operations

    @track_command_duration("record_dispatch")
    def record_dispatch(
        self,
        bid_id: str,
        per_item_quantities: dict[str, Any],
        *,
        close_requirement: bool = False,
        expected_version: int | None = None,
        actor_id: str | None = None,
    ) -> Bid:
        """
        Record dispatched quantities per bid item

        The item updates, the commission recalculation and the optional
        requirement close are written atomically. A missing commission
        record is logged and skipped; the dispatch still commits.

        Args:
            bid_id: Accepted bid
            per_item_quantities: bid_item_id -> cumulative dispatched quantity
            close_requirement: Also mark the requirement closed
            expected_version: Bid version the caller read
            actor_id: Actor recording the dispatch

        Returns:
            The updated Bid

        Raises:
            ConflictError: Bid changed since expected_version, or a
                concurrent writer won the race
        """
        command = _build_command(
            RecordDispatch,
            bid_id=bid_id,
            item_quantities=per_item_quantities,
            close_requirement=close_requirement,
            expected_version=expected_version,
        )
        command_id = generate_id()
        with LogOperation(
            logger,
            "record_dispatch",
            bid_id=bid_id,
            item_count=len(command.item_quantities),
            close_requirement=close_requirement,
        ):
            events = self.dispatch_handlers.handle_record_dispatch(
                command, command_id, actor_id, self.bid_ledger
            )
            self._commit_dispatch(events, close_requirement, command_id, actor_id)

        dispatches_recorded_total.labels(path="per_item").inc()
        return self.bid_ledger.get(bid_id)

    @track_command_duration("record_dispatch_single")
    def record_dispatch_single(
        self,
        bid_id: str,
        quantity: Any,
        *,
        close_requirement: bool = False,
        expected_version: int | None = None,
        actor_id: str | None = None,
    ) -> Bid:
        """
        Legacy single-quantity dispatch

        Only for bids with exactly one item; multi-item bids must use
        record_dispatch so the quantity lands on the right item.
        """
        command = _build_command(
            RecordSingleDispatch,
            bid_id=bid_id,
            quantity=quantity,
            close_requirement=close_requirement,
            expected_version=expected_version,
        )
        command_id = generate_id()
        with LogOperation(
            logger, "record_dispatch_single", bid_id=bid_id, close_requirement=close_requirement
        ):
            events = self.dispatch_handlers.handle_record_single_dispatch(
                command, command_id, actor_id, self.bid_ledger
            )
            self._commit_dispatch(events, close_requirement, command_id, actor_id)

        dispatches_recorded_total.labels(path="single").inc()
        return self.bid_ledger.get(bid_id)

    def _commit_dispatch(
        self,
        dispatch_events: list[Event],
        close_requirement: bool,
        command_id: str,
        actor_id: str | None,
    ) -> None:
        """Compose dispatch, commission and close into one atomic write"""
        payload = dispatch_events[0].payload
        events = list(dispatch_events)

        commission_events = self._recalculation_events(
            RecalculateCommission(
                bid_id=payload["bid_id"],
                total_dispatched_qty=Decimal(payload["dispatched_qty"]),
            ),
            command_id,
            actor_id,
        )
        events += commission_events

        if close_requirement:
            events += self.requirement_handlers.handle_change_status(
                ChangeRequirementStatus(
                    requirement_id=payload["requirement_id"],
                    target_status=RequirementStatus.CLOSED,
                    reason=f"closed on dispatch of bid {payload['bid_id']}",
                ),
                command_id,
                actor_id,
                self.requirement_catalog,
            )

        self._commit(events, retry_lock=True)
        if commission_events:
            commission_recalculations_total.labels(outcome="updated").inc()

    def _recalculation_events(
        self,
        command: RecalculateCommission,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        try:
            return self.commission_handlers.handle_recalculate_commission(
                command,
                command_id,
                actor_id,
                self.commission_ledger,
            )
        except CommissionRecordMissing as e:
            logger.warning(
                "Commission record missing, skipping recalculation",
                bid_id=command.bid_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            commission_recalculations_total.labels(outcome="skipped_missing_record").inc()
            return []

    # Commission operations

    @track_command_duration("provision_commission")
    def provision_commission(
        self,
        bid_id: str,
        *,
        referrer_id: str | None = None,
        platform_fee_per_unit: Any = None,
        referral_share_percentage: Any = None,
        actor_id: str | None = None,
    ) -> CommissionRecord:
        """
        Provision the commission record for an accepted bid

        Called by the acceptance/referral flow. Rates default from the
        commercial policy.
        """
        command = _build_command(
            ProvisionCommission,
            bid_id=bid_id,
            referrer_id=referrer_id,
            platform_fee_per_unit=platform_fee_per_unit,
            referral_share_percentage=referral_share_percentage,
        )
        with LogOperation(logger, "provision_commission", bid_id=bid_id):
            events = self.commission_handlers.handle_provision_commission(
                command, generate_id(), actor_id, self.commission_ledger, self.bid_ledger
            )
            self._commit(events)
        return self.commission_ledger.get_for_bid(bid_id)

    @track_command_duration("recalculate_commission")
    def recalculate_commission(
        self,
        bid_id: str,
        total_dispatched_qty: Any,
        *,
        actor_id: str | None = None,
    ) -> CommissionRecord | None:
        """
        Recompute commission amounts from a total dispatched quantity

        Returns:
            The updated record, or None when no record was provisioned

        Raises:
            BidNotFound: If the bid does not exist
        """
        command = _build_command(
            RecalculateCommission, bid_id=bid_id, total_dispatched_qty=total_dispatched_qty
        )
        if self.bid_ledger.get(bid_id) is None:
            raise BidNotFound(bid_id)
        with LogOperation(logger, "recalculate_commission", bid_id=bid_id):
            events = self._recalculation_events(command, generate_id(), actor_id)
            if not events:
                return None
            self._commit(events, retry_lock=True)

        commission_recalculations_total.labels(outcome="updated").inc()
        return self.commission_ledger.get_for_bid(bid_id)

    def get_commission(self, bid_id: str) -> CommissionRecord | None:
        """Commission record for a bid"""
        if self.bid_ledger.get(bid_id) is None:
            raise BidNotFound(bid_id)
        return self.commission_ledger.get_for_bid(bid_id)

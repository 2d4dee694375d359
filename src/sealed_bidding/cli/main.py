"""
Sealed Bidding CLI

Command-line interface for the sealed bidding core.
Provides commands for requirements, bids, L1 resolution, dispatch and
commission.

Usage:
    sealed-bidding init --db bidding.db
    sealed-bidding requirement create --title "Steel" --items '[{"item_name": "TMT", "quantity": 10, "unit": "MT"}]'
    sealed-bidding bid submit --requirement-id <id> --supplier-id acme --items '[...]'
    sealed-bidding l1 --requirement-id <id>
    sealed-bidding bid accept --id <bid_id>
    sealed-bidding commission provision --bid-id <bid_id> --referrer-id partner-1
    sealed-bidding dispatch record --bid-id <bid_id> --quantities '{"<bid_item_id>": 5}'
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from sealed_bidding.bid.models import BidStatus
from sealed_bidding.core import BiddingCore
from sealed_bidding.kernel.errors import BiddingError
from sealed_bidding.kernel.logging import configure_logging

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=False, log_level="INFO")

app = typer.Typer(
    name="sealed-bidding",
    help="Sealed bidding - per-item L1, partial dispatch and commission",
    add_completion=False,
)

# Sub-apps
requirement_app = typer.Typer(help="Requirement (RFQ) commands")
bid_app = typer.Typer(help="Bid commands")
dispatch_app = typer.Typer(help="Dispatch tracking commands")
commission_app = typer.Typer(help="Commission commands")

app.add_typer(requirement_app, name="requirement")
app.add_typer(bid_app, name="bid")
app.add_typer(dispatch_app, name="dispatch")
app.add_typer(commission_app, name="commission")

# Global state
DEFAULT_DB = Path(".sealed_bidding.db")

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Database path")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_core(db_path: Optional[Path] = None) -> BiddingCore:
    """Get BiddingCore instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'sealed-bidding init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return BiddingCore(db)


@contextmanager
def core_errors() -> Iterator[None]:
    """Report core errors as a one-line message and exit code 1"""
    try:
        yield
    except BiddingError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def parse_json(value: str, option: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: {option} is not valid JSON: {e}", err=True)
        raise typer.Exit(1) from e


def echo_json(model) -> None:
    typer.echo(json.dumps(model.model_dump(mode="json"), indent=2))


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new bidding database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    BiddingCore(db)
    typer.echo(f"✓ Initialized bidding database: {db}")


# Requirement commands


@requirement_app.command("create")
def requirement_create(
    title: Annotated[str, typer.Option("--title", help="Requirement title")],
    items: Annotated[str, typer.Option("--items", help="Line items (JSON array)")],
    buyer_id: Annotated[Optional[str], typer.Option("--buyer-id", help="Buyer")] = None,
    deadline: Annotated[
        Optional[datetime],
        typer.Option("--deadline", help="Bidding deadline (ISO 8601, UTC if naive)"),
    ] = None,
    trade_type: Annotated[
        Optional[str],
        typer.Option("--trade-type", help="Trade type (e.g. domestic_india)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Create a requirement with its line items"""
    core = get_core(db)
    items_list = parse_json(items, "--items")

    with core_errors():
        requirement_id = core.create_requirement(
            title,
            items_list,
            buyer_id=buyer_id,
            deadline=deadline,
            trade_type=trade_type,
        )

    requirement = core.get_requirement(requirement_id)
    typer.echo(f"✓ Created requirement: {requirement_id}")
    typer.echo(f"  Title: {requirement.title}")
    for item in requirement.items:
        typer.echo(
            f"  Item {item.requirement_item_id}: {item.item_name} "
            f"{item.quantity} {item.unit}"
        )


@requirement_app.command("show")
def requirement_show(
    requirement_id: Annotated[str, typer.Option("--id", help="Requirement ID")],
    as_json: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show requirement details"""
    core = get_core(db)
    requirement = core.get_requirement(requirement_id)
    if requirement is None:
        typer.echo(f"Error: Requirement not found: {requirement_id}", err=True)
        raise typer.Exit(1)

    if as_json:
        echo_json(requirement)
        return

    typer.echo(f"Requirement: {requirement.requirement_id}")
    typer.echo(f"  Title: {requirement.title}")
    typer.echo(f"  Status: {requirement.status.value}")
    if requirement.deadline:
        typer.echo(f"  Deadline: {requirement.deadline.isoformat()}")
    if requirement.trade_type:
        typer.echo(f"  Trade type: {requirement.trade_type}")
    typer.echo(f"\n  Items ({len(requirement.items)}):")
    for item in requirement.items:
        typer.echo(f"    {item.requirement_item_id}: {item.item_name} {item.quantity} {item.unit}")


@requirement_app.command("close")
def requirement_close(
    requirement_id: Annotated[str, typer.Option("--id", help="Requirement ID")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Audit note")] = None,
    db: DbOption = None,
) -> None:
    """Close a requirement"""
    core = get_core(db)
    with core_errors():
        requirement = core.close_requirement(requirement_id, reason=reason)
    typer.echo(f"✓ Requirement {requirement_id}: {requirement.status.value}")


@requirement_app.command("cancel")
def requirement_cancel(
    requirement_id: Annotated[str, typer.Option("--id", help="Requirement ID")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Audit note")] = None,
    db: DbOption = None,
) -> None:
    """Cancel a requirement"""
    core = get_core(db)
    with core_errors():
        requirement = core.cancel_requirement(requirement_id, reason=reason)
    typer.echo(f"✓ Requirement {requirement_id}: {requirement.status.value}")


@requirement_app.command("expire")
def requirement_expire(db: DbOption = None) -> None:
    """Expire active requirements whose deadline has passed"""
    core = get_core(db)
    with core_errors():
        expired = core.expire_requirements()
    typer.echo(f"✓ Expired {len(expired)} requirement(s)")
    for requirement_id in expired:
        typer.echo(f"  {requirement_id}")


# Bid commands


@bid_app.command("submit")
def bid_submit(
    requirement_id: Annotated[str, typer.Option("--requirement-id", help="Requirement ID")],
    supplier_id: Annotated[str, typer.Option("--supplier-id", help="Supplier ID")],
    items: Annotated[
        str,
        typer.Option(
            "--items",
            help='Quotes (JSON array of {"requirement_item_id", "unit_price", "quantity"})',
        ),
    ],
    command_id: Annotated[
        Optional[str],
        typer.Option("--command-id", help="Idempotency key"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Submit a sealed bid"""
    core = get_core(db)
    items_list = parse_json(items, "--items")

    with core_errors():
        bid = core.submit_bid(supplier_id, requirement_id, items_list, command_id=command_id)

    typer.echo(f"✓ Submitted bid: {bid.bid_id}")
    typer.echo(f"  Bid amount: {bid.bid_amount}")
    typer.echo(f"  Service fee: {bid.service_fee}")
    typer.echo(f"  Total amount: {bid.total_amount}")
    typer.echo(f"  Total with fee: {bid.total_with_fee}")


@bid_app.command("revise")
def bid_revise(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    items: Annotated[str, typer.Option("--items", help="Revised quotes (JSON array)")],
    expected_version: Annotated[
        Optional[int],
        typer.Option("--expected-version", help="Bid version you read"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Re-bid: change prices/quantities on an existing bid"""
    core = get_core(db)
    items_list = parse_json(items, "--items")

    with core_errors():
        bid = core.update_bid(bid_id, items_list, expected_version=expected_version)

    typer.echo(f"✓ Revised bid: {bid.bid_id}")
    typer.echo(f"  Total amount: {bid.total_amount}")
    typer.echo(f"  Version: {bid.version}")


@bid_app.command("accept")
def bid_accept(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    db: DbOption = None,
) -> None:
    """Accept a bid (awards its requirement)"""
    core = get_core(db)
    with core_errors():
        bid = core.accept_bid(bid_id)
    typer.echo(f"✓ Bid {bid.bid_id}: {bid.status.value}")


@bid_app.command("reject")
def bid_reject(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Audit note")] = None,
    db: DbOption = None,
) -> None:
    """Reject a bid"""
    core = get_core(db)
    with core_errors():
        bid = core.reject_bid(bid_id, reason=reason)
    typer.echo(f"✓ Bid {bid.bid_id}: {bid.status.value}")


@bid_app.command("show")
def bid_show(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    as_json: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show bid details"""
    core = get_core(db)
    bid = core.get_bid(bid_id)
    if bid is None:
        typer.echo(f"Error: Bid not found: {bid_id}", err=True)
        raise typer.Exit(1)

    if as_json:
        echo_json(bid)
        return

    typer.echo(f"Bid: {bid.bid_id}")
    typer.echo(f"  Supplier: {bid.supplier_id}")
    typer.echo(f"  Status: {bid.status.value}")
    typer.echo(f"  Total amount: {bid.total_amount}")
    typer.echo(f"  Dispatched: {bid.dispatched_qty}")
    typer.echo(f"\n  Items ({len(bid.items)}):")
    for item in bid.items:
        typer.echo(
            f"    {item.bid_item_id}: {item.quantity} @ {item.unit_price} "
            f"(dispatched {item.dispatched_qty})"
        )


# L1 resolution


@app.command("l1")
def l1(
    requirement_id: Annotated[str, typer.Option("--requirement-id", help="Requirement ID")],
    accepted_only: Annotated[
        bool,
        typer.Option("--accepted-only", help="Rank accepted bids only"),
    ] = False,
    as_json: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show the lowest quote per requirement item"""
    core = get_core(db)
    statuses = [BidStatus.ACCEPTED] if accepted_only else None
    with core_errors():
        summary = core.l1_summary(requirement_id, bid_statuses=statuses)

    if as_json:
        echo_json(summary)
        return

    typer.echo(f"L1 for requirement {requirement_id}:")
    for line in summary.lines.values():
        name = line.requirement_item.item_name
        if line.lowest is None:
            typer.echo(f"  {name}: no bids")
            continue
        typer.echo(
            f"  {name}: {line.supplier_id} @ {line.lowest.unit_price} "
            f"(incl. fee {line.inclusive_unit_price}, {len(line.ranked)} bid(s))"
        )
    typer.echo(f"  L1 total: {summary.l1_total} (incl. fee {summary.l1_total_inclusive})")


# Dispatch commands


@dispatch_app.command("record")
def dispatch_record(
    bid_id: Annotated[str, typer.Option("--bid-id", help="Bid ID")],
    quantities: Annotated[
        str,
        typer.Option("--quantities", help="Dispatched quantity per bid item (JSON object)"),
    ],
    close_requirement: Annotated[
        bool,
        typer.Option("--close-requirement", help="Also close the requirement"),
    ] = False,
    expected_version: Annotated[
        Optional[int],
        typer.Option("--expected-version", help="Bid version you read"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Record dispatched quantities per bid item"""
    core = get_core(db)
    quantities_dict = parse_json(quantities, "--quantities")

    with core_errors():
        bid = core.record_dispatch(
            bid_id,
            quantities_dict,
            close_requirement=close_requirement,
            expected_version=expected_version,
        )

    typer.echo(f"✓ Dispatch recorded for bid {bid.bid_id}")
    typer.echo(f"  Dispatched: {bid.dispatched_qty}")


@dispatch_app.command("single")
def dispatch_single(
    bid_id: Annotated[str, typer.Option("--bid-id", help="Bid ID")],
    quantity: Annotated[str, typer.Option("--quantity", help="Dispatched quantity")],
    close_requirement: Annotated[
        bool,
        typer.Option("--close-requirement", help="Also close the requirement"),
    ] = False,
    db: DbOption = None,
) -> None:
    """Record dispatch for a single-item bid"""
    core = get_core(db)
    with core_errors():
        bid = core.record_dispatch_single(bid_id, quantity, close_requirement=close_requirement)

    typer.echo(f"✓ Dispatch recorded for bid {bid.bid_id}")
    typer.echo(f"  Dispatched: {bid.dispatched_qty}")


# Commission commands


@commission_app.command("provision")
def commission_provision(
    bid_id: Annotated[str, typer.Option("--bid-id", help="Accepted bid ID")],
    referrer_id: Annotated[
        Optional[str], typer.Option("--referrer-id", help="Referral partner")
    ] = None,
    fee_per_unit: Annotated[
        Optional[str],
        typer.Option("--fee-per-unit", help="Platform fee per unit"),
    ] = None,
    share: Annotated[
        Optional[str],
        typer.Option("--share", help="Referral share percentage"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Provision the commission record for an accepted bid"""
    core = get_core(db)
    with core_errors():
        record = core.provision_commission(
            bid_id,
            referrer_id=referrer_id,
            platform_fee_per_unit=fee_per_unit,
            referral_share_percentage=share,
        )

    typer.echo(f"✓ Provisioned commission: {record.commission_id}")
    typer.echo(f"  Fee per unit: {record.platform_fee_per_unit}")
    typer.echo(f"  Referral share: {record.referral_share_percentage}%")


@commission_app.command("recalculate")
def commission_recalculate(
    bid_id: Annotated[str, typer.Option("--bid-id", help="Bid ID")],
    quantity: Annotated[str, typer.Option("--quantity", help="Total dispatched quantity")],
    db: DbOption = None,
) -> None:
    """Recalculate commission from a total dispatched quantity"""
    core = get_core(db)
    with core_errors():
        record = core.recalculate_commission(bid_id, quantity)

    if record is None:
        typer.echo(f"No commission record for bid {bid_id}; nothing recalculated")
        return
    typer.echo(f"✓ Commission for bid {bid_id}: {record.commission_amount}")
    typer.echo(f"  Platform net revenue: {record.platform_net_revenue}")


@commission_app.command("show")
def commission_show(
    bid_id: Annotated[str, typer.Option("--bid-id", help="Bid ID")],
    as_json: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show the commission record for a bid"""
    core = get_core(db)
    with core_errors():
        record = core.get_commission(bid_id)

    if record is None:
        typer.echo(f"Error: No commission record for bid {bid_id}", err=True)
        raise typer.Exit(1)

    if as_json:
        echo_json(record)
        return

    typer.echo(f"Commission: {record.commission_id}")
    typer.echo(f"  Bid: {record.bid_id}")
    typer.echo(f"  Dispatched: {record.dispatched_qty}")
    typer.echo(f"  Total platform fee: {record.total_platform_fee}")
    typer.echo(f"  Commission: {record.commission_amount}")
    typer.echo(f"  Platform net revenue: {record.platform_net_revenue}")


if __name__ == "__main__":
    app()

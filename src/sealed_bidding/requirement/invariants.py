"""
Requirement Invariants

Pure validation functions for requirement creation and lifecycle.
"""

from datetime import datetime
from decimal import Decimal

from sealed_bidding.kernel.amounts import parse_quantity
from sealed_bidding.kernel.errors import (
    InvalidStatusTransition,
    RequirementNotOpen,
    ValidationError,
)
from sealed_bidding.requirement.commands import RequirementItemSpec
from sealed_bidding.requirement.models import (
    ALLOWED_TRANSITIONS,
    Requirement,
    RequirementStatus,
)


def validate_title(title: str) -> str:
    """Title must be non-empty; returns the stripped title"""
    if not title or not title.strip():
        raise ValidationError("title", "cannot be empty")
    return title.strip()


def validate_item_spec(spec: RequirementItemSpec, index: int, places: int) -> Decimal:
    """
    Validate one line item and return its parsed quantity

    Raises:
        ValidationError: On empty item_name/unit or a quantity that is not > 0
    """
    field_prefix = f"items[{index}]"
    if not spec.item_name or not spec.item_name.strip():
        raise ValidationError(f"{field_prefix}.item_name", "cannot be empty")
    if not spec.unit or not spec.unit.strip():
        raise ValidationError(f"{field_prefix}.unit", "cannot be empty")
    return parse_quantity(spec.quantity, f"{field_prefix}.quantity", places)


def validate_items_present(items: list[RequirementItemSpec]) -> None:
    if not items:
        raise ValidationError("items", "at least one line item is required")


def validate_status_transition(
    requirement: Requirement, target: RequirementStatus
) -> None:
    """
    Raises:
        InvalidStatusTransition: If the lifecycle does not allow current → target
    """
    if target not in ALLOWED_TRANSITIONS[requirement.status]:
        raise InvalidStatusTransition(
            requirement.requirement_id, requirement.status.value, target.value
        )


def validate_open_for_bids(requirement: Requirement, now: datetime) -> None:
    """
    Bids may be placed or revised only while the requirement is active and
    its deadline (if any) has not passed.

    Raises:
        RequirementNotOpen: Otherwise
    """
    if requirement.status != RequirementStatus.ACTIVE:
        raise RequirementNotOpen(
            requirement.requirement_id, f"status is {requirement.status.value}"
        )
    if requirement.deadline is not None and now > requirement.deadline:
        raise RequirementNotOpen(
            requirement.requirement_id,
            f"deadline {requirement.deadline.isoformat()} has passed",
        )


def is_past_deadline(requirement: Requirement, now: datetime) -> bool:
    """True for active requirements whose deadline has passed"""
    return (
        requirement.status == RequirementStatus.ACTIVE
        and requirement.deadline is not None
        and now > requirement.deadline
    )

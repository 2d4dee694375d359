"""
Requirement Command Handlers

Transform requirement commands into events after validating invariants.
Handlers are stateless: current state arrives as a projection argument.
"""

from datetime import datetime, timezone

from sealed_bidding.kernel.errors import RequirementNotFound
from sealed_bidding.kernel.events import Event, create_event
from sealed_bidding.kernel.ids import generate_id
from sealed_bidding.kernel.policy import CommercialPolicy
from sealed_bidding.kernel.time import TimeProvider
from sealed_bidding.requirement import commands, events, invariants
from sealed_bidding.requirement.models import Requirement, RequirementStatus
from sealed_bidding.requirement.projections import RequirementCatalog


def _as_utc(value: datetime | None) -> datetime | None:
    """Naive deadlines are taken to be UTC"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class RequirementCommandHandlers:
    """Command handlers for the requirement catalog"""

    def __init__(self, time_provider: TimeProvider, policy: CommercialPolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_create_requirement(
        self,
        command: commands.CreateRequirement,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        """
        Create requirement and its line items as a single event

        Validates:
        - Title non-empty
        - At least one item
        - Every item: non-empty name and unit, quantity > 0

        Returns:
            List containing RequirementCreated event
        """
        now = self.time_provider.now()

        title = invariants.validate_title(command.title)
        invariants.validate_items_present(command.items)

        requirement_id = generate_id()
        item_dicts = []
        for index, spec in enumerate(command.items):
            quantity = invariants.validate_item_spec(
                spec, index, self.policy.quantity_decimal_places
            )
            item_dicts.append(
                {
                    "requirement_item_id": generate_id(),
                    "item_name": spec.item_name.strip(),
                    "quantity": str(quantity),
                    "unit": spec.unit.strip(),
                    "category": spec.category.strip(),
                    "description": spec.description,
                }
            )

        event_payload = events.RequirementCreated(
            requirement_id=requirement_id,
            buyer_id=command.buyer_id,
            title=title,
            items=item_dicts,
            deadline=_as_utc(command.deadline),
            trade_type=command.trade_type,
            metadata=command.metadata,
            created_at=now,
            created_by=actor_id,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="RequirementCreated",
                stream_id=requirement_id,
                stream_type="Requirement",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=event_payload,
                version=1,
            )
        ]

    def handle_change_status(
        self,
        command: commands.ChangeRequirementStatus,
        command_id: str,
        actor_id: str | None,
        requirement_catalog: RequirementCatalog,
    ) -> list[Event]:
        """
        Move a requirement to a new status

        Moving to the status it already has is a no-op (empty event list),
        so repeating a close is harmless.

        Raises:
            RequirementNotFound: Unknown requirement
            InvalidStatusTransition: Lifecycle forbids the move
        """
        requirement = requirement_catalog.get(command.requirement_id)
        if requirement is None:
            raise RequirementNotFound(command.requirement_id)

        if requirement.status == command.target_status:
            return []

        invariants.validate_status_transition(requirement, command.target_status)
        return [
            self.status_change_event(
                requirement, command.target_status, command_id, actor_id, command.reason
            )
        ]

    def handle_expire_requirements(
        self,
        command_id: str,
        requirement_catalog: RequirementCatalog,
    ) -> list[Event]:
        """
        Expire every active requirement whose deadline has passed

        Returns:
            One RequirementStatusChanged event per expired requirement
        """
        now = self.time_provider.now()
        return [
            self.status_change_event(
                requirement,
                RequirementStatus.EXPIRED,
                command_id,
                None,
                "bidding deadline passed",
            )
            for requirement in requirement_catalog.list_by_status(RequirementStatus.ACTIVE)
            if invariants.is_past_deadline(requirement, now)
        ]

    def status_change_event(
        self,
        requirement: Requirement,
        target: RequirementStatus,
        command_id: str,
        actor_id: str | None,
        reason: str | None = None,
    ) -> Event:
        """Build the RequirementStatusChanged event (caller has validated the move)"""
        now = self.time_provider.now()
        event_payload = events.RequirementStatusChanged(
            requirement_id=requirement.requirement_id,
            from_status=requirement.status,
            to_status=target,
            reason=reason,
            changed_at=now,
            changed_by=actor_id,
        ).model_dump(mode="json")

        return create_event(
            event_id=generate_id(),
            event_type="RequirementStatusChanged",
            stream_id=requirement.requirement_id,
            stream_type="Requirement",
            occurred_at=now,
            actor_id=actor_id,
            command_id=command_id,
            payload=event_payload,
            version=requirement.version + 1,
        )

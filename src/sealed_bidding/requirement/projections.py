"""
Requirement Projections

RequirementCatalog is the source of truth readers use for what is being
procured. Rebuilt from RequirementCreated and RequirementStatusChanged.
"""

from datetime import datetime
from decimal import Decimal

from sealed_bidding.kernel.events import Event
from sealed_bidding.requirement.models import (
    Requirement,
    RequirementItem,
    RequirementStatus,
)


class RequirementCatalog:
    """Requirement registry projection"""

    def __init__(self) -> None:
        self.requirements: dict[str, Requirement] = {}

    def apply_event(self, event: Event) -> None:
        if event.event_type == "RequirementCreated":
            self._apply_requirement_created(event)
        elif event.event_type == "RequirementStatusChanged":
            self._apply_status_changed(event)

    def _apply_requirement_created(self, event: Event) -> None:
        payload = event.payload
        requirement_id = payload["requirement_id"]
        deadline = payload.get("deadline")

        self.requirements[requirement_id] = Requirement(
            requirement_id=requirement_id,
            buyer_id=payload.get("buyer_id"),
            title=payload["title"],
            status=RequirementStatus.ACTIVE,
            deadline=datetime.fromisoformat(deadline) if deadline else None,
            trade_type=payload.get("trade_type"),
            items=[
                RequirementItem(
                    requirement_item_id=item["requirement_item_id"],
                    requirement_id=requirement_id,
                    item_name=item["item_name"],
                    quantity=Decimal(item["quantity"]),
                    unit=item["unit"],
                    category=item.get("category", ""),
                    description=item.get("description"),
                )
                for item in payload["items"]
            ],
            created_at=datetime.fromisoformat(payload["created_at"]),
            version=event.version,
        )

    def _apply_status_changed(self, event: Event) -> None:
        payload = event.payload
        requirement = self.requirements.get(payload["requirement_id"])
        if requirement is None:
            return
        self.requirements[requirement.requirement_id] = requirement.model_copy(
            update={
                "status": RequirementStatus(payload["to_status"]),
                "version": event.version,
            }
        )

    def get(self, requirement_id: str) -> Requirement | None:
        return self.requirements.get(requirement_id)

    def list_all(self) -> list[Requirement]:
        return list(self.requirements.values())

    def list_by_status(self, status: RequirementStatus) -> list[Requirement]:
        return [r for r in self.requirements.values() if r.status == status]

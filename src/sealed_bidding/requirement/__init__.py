"""
Requirement Catalog

Owns Requirements (RFQs) and their line items - the source of truth for
what is being procured.
"""

from sealed_bidding.requirement.commands import (
    ChangeRequirementStatus,
    CreateRequirement,
    RequirementItemSpec,
)
from sealed_bidding.requirement.handlers import RequirementCommandHandlers
from sealed_bidding.requirement.models import (
    Requirement,
    RequirementItem,
    RequirementStatus,
)
from sealed_bidding.requirement.projections import RequirementCatalog

__all__ = [
    "Requirement",
    "RequirementItem",
    "RequirementStatus",
    "CreateRequirement",
    "RequirementItemSpec",
    "ChangeRequirementStatus",
    "RequirementCommandHandlers",
    "RequirementCatalog",
]

from campaignops.domain.models import (
    ActivityEntry,
    Campaign,
    CampaignState,
    Prospect,
    Roster,
    TeamMember,
    Week,
)
from campaignops.domain.rules import ConflictError, ValidationError

__all__ = [
    "ActivityEntry",
    "Campaign",
    "CampaignState",
    "ConflictError",
    "Prospect",
    "Roster",
    "TeamMember",
    "ValidationError",
    "Week",
]

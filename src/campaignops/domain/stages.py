from __future__ import annotations

from enum import Enum


class Tier(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class MemberRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"
    VIEWER = "viewer"


class CampaignStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ProspectStatus(str, Enum):
    PROSPECT = "prospect"
    NO_INTEREST = "no_interest"
    FOLLOW_UP = "follow_up"
    NEW_OPP = "new_opp"
    DEAD = "dead"


class NextAction(str, Enum):
    NONE = "none"
    FOLLOW_30 = "follow_30"
    OPP_INCOMING = "opp_incoming"
    NO_FOLLOW = "no_follow"


class ActivityType(str, Enum):
    CAMPAIGN_CREATED = "campaign_created"
    WEEKS_GENERATED = "weeks_generated"
    PLAN_REGENERATED = "plan_regenerated"
    PROSPECTS_DISTRIBUTED = "prospects_distributed"
    PROSPECTS_TRANSFERRED = "prospects_transferred"
    ORPHANS_RESOLVED = "orphans_resolved"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"
    OWNER_CHANGED = "owner_changed"
    PROSPECT_ADDED = "prospect_added"
    PROSPECTS_IMPORTED = "prospects_imported"
    STATUS_CHANGE = "status_change"
    ACTION_CHANGE = "action_change"
    NOTE = "note"

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

from campaignops.domain.stages import MemberRole

ACTIVE_ROLES = (MemberRole.OWNER.value, MemberRole.MEMBER.value)


@dataclass(frozen=True)
class Campaign:
    campaign_id: str
    name: str
    description: str | None
    status: str
    start_date: date
    end_date: date
    target_touchpoints: int
    target_opportunities: int
    target_estimates: int
    target_awards: int
    target_pipeline_value: float
    goal_description: str | None
    version: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TeamMember:
    member_id: str
    display_name: str
    role: str

    @property
    def is_active(self) -> bool:
        return self.role in ACTIVE_ROLES

    def matches(self, ref: str | None) -> bool:
        return ref is not None and ref in (self.member_id, self.display_name)


@dataclass(frozen=True)
class Prospect:
    prospect_id: str
    name: str
    tier: str
    score: int
    assigned_to: str | None
    target_week: int | None
    status: str = "prospect"
    next_action: str = "none"
    sector: str | None = None
    address: str | None = None
    phone: str | None = None
    website: str | None = None


@dataclass(frozen=True)
class Week:
    week_number: int
    start_date: date
    end_date: date
    label: str


@dataclass(frozen=True)
class ActivityEntry:
    activity_type: str
    description: str
    prospect_id: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class Roster:
    """Ordered team roster; the owner is always listed first."""

    members: tuple[TeamMember, ...] = ()

    def __iter__(self) -> Iterator[TeamMember]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    @property
    def owner(self) -> TeamMember | None:
        for member in self.members:
            if member.role == MemberRole.OWNER.value:
                return member
        return None

    def get(self, member_id: str) -> TeamMember | None:
        for member in self.members:
            if member.member_id == member_id:
                return member
        return None

    def resolve(self, ref: str | None) -> TeamMember | None:
        """Find the member a prospect reference points at, by id first, then by name."""
        if ref is None:
            return None
        return self.get(ref) or next((m for m in self.members if m.matches(ref)), None)

    def active(self) -> list[TeamMember]:
        return [member for member in self.members if member.is_active]

    def with_member(self, member: TeamMember) -> Roster:
        return Roster(members=_owner_first([*self.members, member]))

    def without(self, member_id: str) -> Roster:
        return Roster(members=tuple(m for m in self.members if m.member_id != member_id))

    def with_role(self, member_id: str, role: str) -> Roster:
        members = [replace(m, role=role) if m.member_id == member_id else m for m in self.members]
        return Roster(members=_owner_first(members))


@dataclass(frozen=True)
class CampaignState:
    """One campaign's roster, prospects and calendar at a given version."""

    campaign: Campaign
    roster: Roster
    prospects: tuple[Prospect, ...]
    weeks: tuple[Week, ...] = field(default=())

    @property
    def campaign_id(self) -> str:
        return self.campaign.campaign_id

    @property
    def version(self) -> int:
        return self.campaign.version

    @property
    def week_count(self) -> int:
        return len(self.weeks)

    def prospect(self, prospect_id: str) -> Prospect | None:
        for prospect in self.prospects:
            if prospect.prospect_id == prospect_id:
                return prospect
        return None

    def assigned_to(self, member: TeamMember) -> list[Prospect]:
        return [p for p in self.prospects if member.matches(p.assigned_to)]

    def with_prospects(self, prospects: Iterable[Prospect]) -> CampaignState:
        return replace(self, prospects=tuple(prospects))

    def with_roster(self, roster: Roster) -> CampaignState:
        return replace(self, roster=roster)


def _owner_first(members: Iterable[TeamMember]) -> tuple[TeamMember, ...]:
    members = list(members)
    owners = [m for m in members if m.role == MemberRole.OWNER.value]
    return tuple(owners + [m for m in members if m.role != MemberRole.OWNER.value])

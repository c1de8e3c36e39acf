"""Weekly plan allocation.

Prospects are bucketed by their assigned member and each bucket is spread over the
campaign weeks in priority order (tier A first, then by descending score). Buckets
are scheduled independently; the plan never balances load across members.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from campaignops.domain.models import CampaignState, Prospect, Roster, TeamMember
from campaignops.domain.rules import ConflictError, ValidationError
from campaignops.domain.stages import Tier

UNASSIGNED = "Unassigned"

TIER_RANK = {Tier.A.value: 0, Tier.B.value: 1, Tier.C.value: 2}


@dataclass(frozen=True)
class WeekChange:
    prospect_id: str
    old_week: int | None
    new_week: int


@dataclass(frozen=True)
class PlanProposal:
    """A computed weekly plan waiting for explicit confirmation."""

    campaign_id: str
    base_version: int
    week_count: int
    assignments: dict[str, int]
    changes: tuple[WeekChange, ...]

    @property
    def changed_count(self) -> int:
        return len(self.changes)

    def week_totals(self) -> dict[int, int]:
        totals = {week: 0 for week in range(1, self.week_count + 1)}
        for week in self.assignments.values():
            totals[week] += 1
        return totals


def priority_key(prospect: Prospect) -> tuple[int, int]:
    return TIER_RANK[prospect.tier], -prospect.score


def bucket_prospects(
    prospects: Iterable[Prospect], roster: Roster
) -> dict[str, list[Prospect]]:
    """Group prospects by the member their reference resolves to.

    Stale references keep a bucket of their own; empty ones share the Unassigned bucket.
    """
    buckets: dict[str, list[Prospect]] = {}
    for prospect in prospects:
        member = roster.resolve(prospect.assigned_to)
        key = member.member_id if member else prospect.assigned_to or UNASSIGNED
        buckets.setdefault(key, []).append(prospect)
    return buckets


def week_for_index(index: int, per_week: int, week_count: int) -> int:
    return min(index // per_week + 1, week_count)


def allocate_weeks(
    prospects: Sequence[Prospect], roster: Roster, week_count: int
) -> dict[str, int]:
    if week_count < 1:
        raise ValidationError("week_count must be at least 1.")
    assignments: dict[str, int] = {}
    for bucket in bucket_prospects(prospects, roster).values():
        ordered = sorted(bucket, key=priority_key)
        per_week = -(-len(ordered) // week_count)
        for index, prospect in enumerate(ordered):
            assignments[prospect.prospect_id] = week_for_index(index, per_week, week_count)
    return assignments


def propose_weekly_plan(state: CampaignState) -> PlanProposal:
    assignments = allocate_weeks(state.prospects, state.roster, state.week_count)
    changes = tuple(
        WeekChange(p.prospect_id, p.target_week, assignments[p.prospect_id])
        for p in state.prospects
        if p.target_week != assignments[p.prospect_id]
    )
    return PlanProposal(
        campaign_id=state.campaign_id,
        base_version=state.version,
        week_count=state.week_count,
        assignments=assignments,
        changes=changes,
    )


def apply_plan(state: CampaignState, proposal: PlanProposal) -> CampaignState:
    if proposal.campaign_id != state.campaign_id:
        raise ValidationError("Plan proposal belongs to a different campaign.")
    if proposal.base_version != state.version:
        current = None
        if state.week_count:
            current = allocate_weeks(state.prospects, state.roster, state.week_count)
        if current != proposal.assignments:
            raise ConflictError(
                "Campaign changed since the plan was proposed; regenerate the plan."
            )
    missing = [p.prospect_id for p in state.prospects if p.prospect_id not in proposal.assignments]
    if missing:
        raise ConflictError(f"Plan proposal does not cover prospects: {', '.join(missing)}")
    return state.with_prospects(
        replace(p, target_week=proposal.assignments[p.prospect_id]) for p in state.prospects
    )


def distribute_unassigned(
    prospects: Sequence[Prospect], members: Sequence[TeamMember]
) -> list[Prospect]:
    """Deal Unassigned prospects round-robin to members, highest priority first."""
    if not members:
        raise ConflictError("No active team members to distribute prospects to.")
    unassigned = sorted((p for p in prospects if not p.assigned_to), key=priority_key)
    dealt = {
        prospect.prospect_id: members[index % len(members)].member_id
        for index, prospect in enumerate(unassigned)
    }
    return [
        replace(p, assigned_to=dealt[p.prospect_id]) if p.prospect_id in dealt else p
        for p in prospects
    ]

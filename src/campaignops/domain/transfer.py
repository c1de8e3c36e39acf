from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace

from campaignops.domain.models import CampaignState, Prospect, TeamMember
from campaignops.domain.rules import ConflictError, ValidationError, positive_int, require
from campaignops.domain.stages import Tier

# Lowest priority sheds first: C before B before A, then lowest score.
SHED_RANK = {Tier.C.value: 0, Tier.B.value: 1, Tier.A.value: 2}


@dataclass(frozen=True)
class ReassignResult:
    state: CampaignState
    moved: tuple[str, ...]
    target: TeamMember


def shed_key(prospect: Prospect) -> tuple[int, int]:
    return SHED_RANK[prospect.tier], prospect.score


def prospects_for(state: CampaignState, ref: str) -> list[Prospect]:
    member = state.roster.resolve(ref)
    if member is not None:
        return state.assigned_to(member)
    return [p for p in state.prospects if p.assigned_to == ref]


def require_active_target(state: CampaignState, ref: str | None, field: str) -> TeamMember:
    require(ref, field)
    member = state.roster.resolve(ref)
    if member is None or not member.is_active:
        raise ConflictError(f"{field} {ref!r} is not an active team member.")
    return member


def select_for_transfer(prospects: Iterable[Prospect], count: int) -> list[Prospect]:
    return sorted(prospects, key=shed_key)[:count]


def reassign(state: CampaignState, prospect_ids: Iterable[str], target: TeamMember) -> CampaignState:
    moving = set(prospect_ids)
    return state.with_prospects(
        replace(p, assigned_to=target.member_id) if p.prospect_id in moving else p
        for p in state.prospects
    )


def transfer_prospects(
    state: CampaignState, from_member: str, to_member: str, count: int
) -> ReassignResult:
    require(from_member, "from_member")
    require(to_member, "to_member")
    count = positive_int(count, "count")
    target = require_active_target(state, to_member, "to_member")
    source = state.roster.resolve(from_member)
    if target.matches(from_member) or (source is not None and source == target):
        raise ValidationError("from_member and to_member must differ.")

    available = prospects_for(state, from_member)
    if count > len(available):
        raise ConflictError(
            f"{from_member} has {len(available)} prospects assigned; cannot transfer {count}."
        )
    moved = tuple(p.prospect_id for p in select_for_transfer(available, count))
    return ReassignResult(state=reassign(state, moved, target), moved=moved, target=target)

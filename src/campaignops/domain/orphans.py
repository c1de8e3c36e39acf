from __future__ import annotations

from dataclasses import dataclass

from campaignops.domain.models import CampaignState, Prospect
from campaignops.domain.transfer import ReassignResult, reassign, require_active_target


@dataclass(frozen=True)
class OrphanReport:
    prospects: tuple[Prospect, ...]
    stale_names: tuple[str, ...]

    def __bool__(self) -> bool:
        return bool(self.prospects)


def is_orphan(state: CampaignState, prospect: Prospect) -> bool:
    return bool(prospect.assigned_to) and state.roster.resolve(prospect.assigned_to) is None


def find_orphans(state: CampaignState) -> OrphanReport:
    orphans = tuple(p for p in state.prospects if is_orphan(state, p))
    stale: list[str] = []
    for prospect in orphans:
        if prospect.assigned_to not in stale:
            stale.append(prospect.assigned_to)
    return OrphanReport(prospects=orphans, stale_names=tuple(stale))


def resolve_orphans(state: CampaignState, target_member: str) -> ReassignResult:
    """Hand every orphaned prospect, whatever stale name it carries, to one member."""
    target = require_active_target(state, target_member, "target_member")
    moved = tuple(p.prospect_id for p in find_orphans(state).prospects)
    return ReassignResult(state=reassign(state, moved, target), moved=moved, target=target)

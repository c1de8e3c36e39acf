"""Campaign scheduling and team allocation operations.

Each operation loads the campaign aggregate, runs the pure engine from
``campaignops.domain`` and commits the resulting state together with its
activity-log entries. Nothing is written when the engine rejects the request.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from campaignops.domain import allocation, membership, orphans, transfer
from campaignops.domain.allocation import PlanProposal
from campaignops.domain.membership import RemovalCheck
from campaignops.domain.models import ActivityEntry, CampaignState, TeamMember
from campaignops.domain.orphans import OrphanReport
from campaignops.domain.rules import ConflictError
from campaignops.domain.stages import ActivityType
from campaignops.services.events import EventLogger
from campaignops.store.repository import CampaignRepository


@dataclass(frozen=True)
class GenerationProposal:
    """Member distribution for Unassigned prospects plus the resulting weekly plan."""

    campaign_id: str
    base_version: int
    distributed: dict[str, str]
    plan: PlanProposal


def request_weekly_plan(repo: CampaignRepository, campaign_id: str) -> PlanProposal:
    return allocation.propose_weekly_plan(repo.load(campaign_id))


def confirm_weekly_plan(
    repo: CampaignRepository, proposal: PlanProposal, logger: EventLogger | None = None
) -> dict[str, int]:
    state = repo.load(proposal.campaign_id)
    planned = allocation.apply_plan(state, proposal)
    if planned.prospects == state.prospects and proposal.base_version != state.version:
        # Already applied by an earlier confirmation.
        return dict(proposal.assignments)
    changed = [p.prospect_id for p, q in zip(state.prospects, planned.prospects) if p != q]
    repo.commit(
        state,
        planned,
        [
            ActivityEntry(
                activity_type=ActivityType.PLAN_REGENERATED.value,
                description=(
                    f"Weekly plan regenerated over {proposal.week_count} weeks "
                    f"({len(changed)} prospects rescheduled)"
                ),
                metadata={"week_count": proposal.week_count, "changed": changed},
            )
        ],
    )
    _emit(logger, "plan_regenerated", state, changed, {"week_count": proposal.week_count})
    return dict(proposal.assignments)


def request_generation(repo: CampaignRepository, campaign_id: str) -> GenerationProposal:
    state = repo.load(campaign_id)
    distributed_state = _distribute(state)
    distributed = {
        after.prospect_id: after.assigned_to
        for before, after in zip(state.prospects, distributed_state.prospects)
        if before.assigned_to != after.assigned_to
    }
    return GenerationProposal(
        campaign_id=campaign_id,
        base_version=state.version,
        distributed=distributed,
        plan=allocation.propose_weekly_plan(distributed_state),
    )


def confirm_generation(
    repo: CampaignRepository, proposal: GenerationProposal, logger: EventLogger | None = None
) -> dict[str, int]:
    state = repo.load(proposal.campaign_id)
    if state.version != proposal.base_version:
        raise ConflictError("Campaign changed since generation was proposed; generate again.")
    distributed = _distribute(state)
    planned = allocation.apply_plan(distributed, proposal.plan)
    activities = []
    if proposal.distributed:
        activities.append(
            ActivityEntry(
                activity_type=ActivityType.PROSPECTS_DISTRIBUTED.value,
                description=f"Distributed {len(proposal.distributed)} unassigned prospects to the team",
                metadata={"assignments": proposal.distributed},
            )
        )
    activities.append(
        ActivityEntry(
            activity_type=ActivityType.PLAN_REGENERATED.value,
            description=f"Weekly plan generated over {proposal.plan.week_count} weeks",
            metadata={"week_count": proposal.plan.week_count},
        )
    )
    repo.commit(state, planned, activities)
    _emit(
        logger,
        "campaign_generated",
        state,
        list(proposal.plan.assignments),
        {"distributed": len(proposal.distributed), "week_count": proposal.plan.week_count},
    )
    return dict(proposal.plan.assignments)


def transfer_prospects(
    repo: CampaignRepository,
    campaign_id: str,
    from_member: str,
    to_member: str,
    count: int,
    logger: EventLogger | None = None,
) -> list[str]:
    state = repo.load(campaign_id)
    result = transfer.transfer_prospects(state, from_member, to_member, count)
    repo.commit(
        state,
        result.state,
        [
            ActivityEntry(
                activity_type=ActivityType.PROSPECTS_TRANSFERRED.value,
                description=(
                    f"Transferred {len(result.moved)} prospects from {from_member} "
                    f"to {result.target.display_name}"
                ),
                metadata={
                    "from": from_member,
                    "to": result.target.member_id,
                    "prospect_ids": list(result.moved),
                },
            )
        ],
    )
    _emit(logger, "prospects_transferred", state, result.moved, {"to": result.target.member_id})
    return list(result.moved)


def list_orphans(repo: CampaignRepository, campaign_id: str) -> OrphanReport:
    return orphans.find_orphans(repo.load(campaign_id))


def resolve_orphans(
    repo: CampaignRepository,
    campaign_id: str,
    target_member: str,
    logger: EventLogger | None = None,
) -> list[str]:
    state = repo.load(campaign_id)
    report = orphans.find_orphans(state)
    result = orphans.resolve_orphans(state, target_member)
    if not result.moved:
        return []
    repo.commit(
        state,
        result.state,
        [
            ActivityEntry(
                activity_type=ActivityType.ORPHANS_RESOLVED.value,
                description=(
                    f"Reassigned {len(result.moved)} orphaned prospects "
                    f"to {result.target.display_name}"
                ),
                metadata={
                    "stale_names": list(report.stale_names),
                    "to": result.target.member_id,
                    "prospect_ids": list(result.moved),
                },
            )
        ],
    )
    _emit(logger, "orphans_resolved", state, result.moved, {"to": result.target.member_id})
    return list(result.moved)


def add_member(
    repo: CampaignRepository,
    campaign_id: str,
    member_id: str,
    role: str = "member",
    display_name: str | None = None,
    logger: EventLogger | None = None,
) -> TeamMember:
    state = repo.load(campaign_id)
    updated, member = membership.add_member(state, member_id, role, display_name)
    repo.commit(
        state,
        updated,
        [
            ActivityEntry(
                activity_type=ActivityType.MEMBER_ADDED.value,
                description=f"{member.display_name} joined the team as {member.role}",
                metadata={"member_id": member.member_id, "role": member.role},
            )
        ],
    )
    _emit(logger, "member_added", state, [member.member_id], {"role": member.role}, "member")
    return member


def check_removal(repo: CampaignRepository, campaign_id: str, member_id: str) -> RemovalCheck:
    return membership.check_removal(repo.load(campaign_id), member_id)


def remove_member(
    repo: CampaignRepository,
    campaign_id: str,
    member_id: str,
    reassign_to: str | None = None,
    logger: EventLogger | None = None,
) -> list[str]:
    state = repo.load(campaign_id)
    result = membership.remove_member(state, member_id, reassign_to)
    description = f"{result.member.display_name} removed from the team"
    if result.reassigned_to is not None:
        description += (
            f"; {len(result.moved)} prospects reassigned to {result.reassigned_to.display_name}"
        )
    repo.commit(
        state,
        result.state,
        [
            ActivityEntry(
                activity_type=ActivityType.MEMBER_REMOVED.value,
                description=description,
                metadata={
                    "member_id": result.member.member_id,
                    "reassigned_to": result.reassigned_to.member_id if result.reassigned_to else None,
                    "prospect_ids": list(result.moved),
                },
            )
        ],
    )
    _emit(
        logger,
        "member_removed",
        state,
        [result.member.member_id],
        {"moved": len(result.moved)},
        "member",
    )
    return list(result.moved)


def transfer_ownership(
    repo: CampaignRepository,
    campaign_id: str,
    member_id: str,
    logger: EventLogger | None = None,
) -> TeamMember:
    state = repo.load(campaign_id)
    previous = state.roster.owner
    updated, owner = membership.transfer_ownership(state, member_id)
    if updated is state:
        return owner
    repo.commit(
        state,
        updated,
        [
            ActivityEntry(
                activity_type=ActivityType.OWNER_CHANGED.value,
                description=f"Ownership transferred to {owner.display_name}",
                metadata={
                    "from": previous.member_id if previous else None,
                    "to": owner.member_id,
                },
            )
        ],
    )
    _emit(logger, "owner_changed", state, [owner.member_id], None, "member")
    return owner


def _distribute(state: CampaignState) -> CampaignState:
    if all(p.assigned_to for p in state.prospects):
        return state
    return state.with_prospects(
        allocation.distribute_unassigned(state.prospects, state.roster.active())
    )


def _emit(
    logger: EventLogger | None,
    event_type: str,
    state: CampaignState,
    entity_ids: Iterable[str],
    details: dict | None = None,
    entity_type: str = "prospect",
) -> None:
    if logger is None:
        return
    logger.log(
        event_type=event_type,
        campaign_id=state.campaign_id,
        entity_type=entity_type,
        entity_ids=entity_ids,
        details=details,
    )

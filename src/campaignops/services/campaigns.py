from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from datetime import date
from uuid import uuid4

from campaignops.domain import allocation, calendar, rules
from campaignops.domain.models import ActivityEntry, Campaign, CampaignState, Roster, TeamMember
from campaignops.domain.stages import ActivityType, CampaignStatus, MemberRole, ProspectStatus
from campaignops.services.events import EventLogger
from campaignops.services.utils import clean, utc_now
from campaignops.store.repository import CampaignRepository


@dataclass(frozen=True)
class CampaignGoals:
    touchpoints: int = 0
    opportunities: int = 0
    estimates: int = 0
    awards: int = 0
    pipeline_value: float = 0.0
    description: str | None = None


@dataclass(frozen=True)
class WeekStats:
    week_number: int
    label: str
    total: int
    contacted: int
    opportunities: int


@dataclass(frozen=True)
class MemberStats:
    member_id: str
    display_name: str
    role: str
    assigned: int
    contacted: int


@dataclass(frozen=True)
class CampaignStats:
    by_status: dict[str, int]
    weeks: list[WeekStats]
    members: list[MemberStats]
    touchpoints: int
    opportunities: int
    target_touchpoints: int
    target_opportunities: int


def create_campaign(
    repo: CampaignRepository,
    name: str,
    start_date: date | None,
    end_date: date | None,
    owner_id: str,
    owner_name: str | None = None,
    description: str | None = None,
    status: str = CampaignStatus.PLANNING.value,
    goals: CampaignGoals | None = None,
    logger: EventLogger | None = None,
) -> CampaignState:
    rules.require(name, "name")
    rules.require(owner_id, "owner")
    if start_date is None or end_date is None:
        raise rules.ValidationError("start_date and end_date are required.")
    rules.validate_enum(status, [s.value for s in CampaignStatus], "status")
    goals = goals or CampaignGoals()
    for field in ("touchpoints", "opportunities", "estimates", "awards", "pipeline_value"):
        if getattr(goals, field) < 0:
            raise rules.ValidationError(f"target {field} cannot be negative.")
    weeks = calendar.generate_weeks(start_date, end_date)

    now = utc_now()
    campaign = Campaign(
        campaign_id=str(uuid4()),
        name=name.strip(),
        description=clean(description),
        status=status,
        start_date=start_date,
        end_date=end_date,
        target_touchpoints=goals.touchpoints,
        target_opportunities=goals.opportunities,
        target_estimates=goals.estimates,
        target_awards=goals.awards,
        target_pipeline_value=float(goals.pipeline_value),
        goal_description=clean(goals.description),
        version=1,
        created_at=now,
        updated_at=now,
    )
    owner = TeamMember(
        member_id=owner_id, display_name=owner_name or owner_id, role=MemberRole.OWNER.value
    )
    state = CampaignState(
        campaign=campaign, roster=Roster(members=(owner,)), prospects=(), weeks=weeks
    )
    repo.create(
        state,
        [
            ActivityEntry(
                activity_type=ActivityType.CAMPAIGN_CREATED.value,
                description=f"Campaign created: {campaign.name}",
                metadata={"owner": owner_id},
            ),
            ActivityEntry(
                activity_type=ActivityType.WEEKS_GENERATED.value,
                description=f"Generated {len(weeks)} weekly periods",
                metadata={"week_count": len(weeks)},
            ),
        ],
    )
    if logger is not None:
        logger.log(
            event_type="campaign_created",
            campaign_id=campaign.campaign_id,
            entity_type="campaign",
            entity_ids=[campaign.campaign_id],
            details={"week_count": len(weeks)},
        )
    return state


def reschedule(
    repo: CampaignRepository,
    campaign_id: str,
    start_date: date,
    end_date: date,
    logger: EventLogger | None = None,
) -> CampaignState:
    """Regenerate the week calendar for new dates and re-plan every prospect."""
    state = repo.load(campaign_id)
    weeks = calendar.generate_weeks(start_date, end_date)
    rescheduled = replace(
        state,
        campaign=replace(state.campaign, start_date=start_date, end_date=end_date),
        weeks=weeks,
    )
    proposal = allocation.propose_weekly_plan(rescheduled)
    planned = allocation.apply_plan(rescheduled, proposal)
    committed = repo.commit(
        state,
        planned,
        [
            ActivityEntry(
                activity_type=ActivityType.WEEKS_GENERATED.value,
                description=(
                    f"Rescheduled to {start_date.isoformat()} - {end_date.isoformat()}; "
                    f"regenerated {len(weeks)} weekly periods"
                ),
                metadata={"week_count": len(weeks), "changed": proposal.changed_count},
            )
        ],
    )
    if logger is not None:
        logger.log(
            event_type="campaign_rescheduled",
            campaign_id=campaign_id,
            entity_type="campaign",
            entity_ids=[campaign_id],
            details={"week_count": len(weeks)},
        )
    return committed


def campaign_stats(state: CampaignState) -> CampaignStats:
    prospect_status = ProspectStatus.PROSPECT.value
    by_status = Counter(p.status for p in state.prospects)
    weeks = [
        WeekStats(
            week_number=week.week_number,
            label=week.label,
            total=sum(1 for p in state.prospects if p.target_week == week.week_number),
            contacted=sum(
                1
                for p in state.prospects
                if p.target_week == week.week_number and p.status != prospect_status
            ),
            opportunities=sum(
                1
                for p in state.prospects
                if p.target_week == week.week_number and p.status == ProspectStatus.NEW_OPP.value
            ),
        )
        for week in state.weeks
    ]
    members = []
    for member in state.roster:
        assigned = state.assigned_to(member)
        members.append(
            MemberStats(
                member_id=member.member_id,
                display_name=member.display_name,
                role=member.role,
                assigned=len(assigned),
                contacted=sum(1 for p in assigned if p.status != prospect_status),
            )
        )
    return CampaignStats(
        by_status={s.value: by_status.get(s.value, 0) for s in ProspectStatus},
        weeks=weeks,
        members=members,
        touchpoints=sum(1 for p in state.prospects if p.status != prospect_status),
        opportunities=by_status.get(ProspectStatus.NEW_OPP.value, 0),
        target_touchpoints=state.campaign.target_touchpoints,
        target_opportunities=state.campaign.target_opportunities,
    )

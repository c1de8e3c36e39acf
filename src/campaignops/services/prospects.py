from __future__ import annotations

import csv
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

from campaignops.domain import rules
from campaignops.domain.models import ActivityEntry, CampaignState, Prospect
from campaignops.domain.rules import ValidationError
from campaignops.domain.stages import ActivityType, NextAction, ProspectStatus, Tier
from campaignops.services.events import EventLogger
from campaignops.services.utils import clean
from campaignops.store.repository import CampaignRepository

DEFAULT_TIER = Tier.B.value
DEFAULT_SCORE = 70

CSV_COLUMNS = [
    "name",
    "sector",
    "address",
    "phone",
    "website",
    "tier",
    "score",
    "assigned_to",
    "target_week",
]


def build_prospect(
    state: CampaignState,
    name: str,
    tier: str | None = None,
    score: int | str | None = None,
    assigned_to: str | None = None,
    target_week: int | str | None = None,
    sector: str | None = None,
    address: str | None = None,
    phone: str | None = None,
    website: str | None = None,
    default_tier: str = DEFAULT_TIER,
    default_score: int = DEFAULT_SCORE,
) -> Prospect:
    rules.require(name, "name")
    tier = clean(tier) or default_tier
    rules.validate_enum(tier, [t.value for t in Tier], "tier")
    parsed_score = rules.parse_score(score)
    week = _parse_week(target_week, state.week_count)
    member = None
    if clean(assigned_to):
        member = state.roster.resolve(clean(assigned_to))
        if member is None:
            raise ValidationError(f"assigned_to {assigned_to!r} is not on the team.")
    return Prospect(
        prospect_id=str(uuid4()),
        name=name.strip(),
        tier=tier,
        score=default_score if parsed_score is None else parsed_score,
        assigned_to=member.member_id if member else None,
        target_week=week,
        sector=clean(sector),
        address=clean(address),
        phone=clean(phone),
        website=clean(website),
    )


def add_prospect(
    repo: CampaignRepository,
    campaign_id: str,
    name: str,
    logger: EventLogger | None = None,
    **fields,
) -> Prospect:
    state = repo.load(campaign_id)
    prospect = build_prospect(state, name, **fields)
    repo.commit(
        state,
        state.with_prospects([*state.prospects, prospect]),
        [
            ActivityEntry(
                activity_type=ActivityType.PROSPECT_ADDED.value,
                description="New prospect added",
                prospect_id=prospect.prospect_id,
            )
        ],
    )
    if logger is not None:
        logger.log(
            event_type="prospect_added",
            campaign_id=campaign_id,
            entity_type="prospect",
            entity_ids=[prospect.prospect_id],
        )
    return prospect


def import_csv(
    repo: CampaignRepository,
    campaign_id: str,
    csv_path: Path,
    default_tier: str = DEFAULT_TIER,
    default_score: int = DEFAULT_SCORE,
    logger: EventLogger | None = None,
) -> list[Prospect]:
    """Import prospects from CSV; any invalid row rejects the whole file."""
    state = repo.load(campaign_id)
    with csv_path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames or "name" not in reader.fieldnames:
            raise ValidationError("CSV must have a header row with a 'name' column.")
        unknown = set(reader.fieldnames) - set(CSV_COLUMNS)
        if unknown:
            raise ValidationError(f"Unknown CSV columns: {', '.join(sorted(unknown))}")
        imported: list[Prospect] = []
        for line_no, row in enumerate(reader, start=2):
            try:
                imported.append(
                    build_prospect(
                        state,
                        default_tier=default_tier,
                        default_score=default_score,
                        **{column: row.get(column) for column in CSV_COLUMNS},
                    )
                )
            except ValidationError as exc:
                raise ValidationError(f"{csv_path.name} line {line_no}: {exc}") from exc
    if not imported:
        return []
    repo.commit(
        state,
        state.with_prospects([*state.prospects, *imported]),
        [
            ActivityEntry(
                activity_type=ActivityType.PROSPECTS_IMPORTED.value,
                description=f"Imported {len(imported)} prospects from {csv_path.name}",
                metadata={"count": len(imported), "file": csv_path.name},
            )
        ],
    )
    if logger is not None:
        logger.log(
            event_type="prospects_imported",
            campaign_id=campaign_id,
            entity_type="prospect",
            entity_ids=[p.prospect_id for p in imported],
        )
    return imported


def list_prospects(
    state: CampaignState,
    assigned_to: str | None = None,
    status: str | None = None,
    tier: str | None = None,
    target_week: int | None = None,
) -> list[Prospect]:
    rules.validate_enum(status, [s.value for s in ProspectStatus], "status")
    rules.validate_enum(tier, [t.value for t in Tier], "tier")
    member = state.roster.resolve(assigned_to) if assigned_to else None
    results = []
    for prospect in state.prospects:
        if assigned_to:
            owned = member.matches(prospect.assigned_to) if member else prospect.assigned_to == assigned_to
            if not owned:
                continue
        if status and prospect.status != status:
            continue
        if tier and prospect.tier != tier:
            continue
        if target_week is not None and prospect.target_week != target_week:
            continue
        results.append(prospect)
    # Same ordering as the weekly plan: tier, then score, then name.
    return sorted(results, key=lambda p: (p.tier, -p.score, p.name))


def update_status(
    repo: CampaignRepository,
    campaign_id: str,
    prospect_id: str,
    status: str | None = None,
    next_action: str | None = None,
) -> Prospect:
    rules.validate_enum(status, [s.value for s in ProspectStatus], "status")
    rules.validate_enum(next_action, [a.value for a in NextAction], "next_action")
    if status is None and next_action is None:
        raise ValidationError("status or next_action is required.")
    state = repo.load(campaign_id)
    prospect = _require_prospect(state, prospect_id)
    updated = replace(
        prospect,
        status=status or prospect.status,
        next_action=next_action or prospect.next_action,
    )
    activities = []
    if status is not None:
        activities.append(
            ActivityEntry(
                activity_type=ActivityType.STATUS_CHANGE.value,
                description=f"Status changed to: {status}",
                prospect_id=prospect_id,
            )
        )
    if next_action is not None:
        activities.append(
            ActivityEntry(
                activity_type=ActivityType.ACTION_CHANGE.value,
                description=f"Next action set to: {next_action}",
                prospect_id=prospect_id,
            )
        )
    repo.commit(
        state,
        state.with_prospects(updated if p.prospect_id == prospect_id else p for p in state.prospects),
        activities,
    )
    return updated


def add_note(repo: CampaignRepository, campaign_id: str, prospect_id: str, note: str) -> None:
    rules.require(note, "note")
    state = repo.load(campaign_id)
    _require_prospect(state, prospect_id)
    repo.log_activity(
        campaign_id,
        [
            ActivityEntry(
                activity_type=ActivityType.NOTE.value,
                description=note.strip(),
                prospect_id=prospect_id,
            )
        ],
    )


def list_activity(
    repo: CampaignRepository,
    campaign_id: str,
    prospect_id: str | None = None,
    limit: int = 100,
) -> list[dict[str, str]]:
    params: list[object] = [campaign_id]
    where = "WHERE cal.campaign_id = ?"
    if prospect_id:
        where += " AND cal.prospect_id = ?"
        params.append(prospect_id)
    params.append(limit)
    query = (
        "SELECT cal.created_at, cal.activity_type, cal.description, cal.actor, "
        "cal.prospect_id, cc.name AS company_name "
        "FROM campaign_activity_logs cal "
        "LEFT JOIN campaign_companies cc ON cal.prospect_id = cc.prospect_id "
        f"{where} ORDER BY cal.created_at DESC, cal.rowid DESC LIMIT ?"
    )
    return [dict(row) for row in repo.store.fetch_all(query, params)]


def _require_prospect(state: CampaignState, prospect_id: str) -> Prospect:
    prospect = state.prospect(prospect_id)
    if prospect is None:
        raise ValidationError(f"Prospect not found: {prospect_id}")
    return prospect


def _parse_week(value: int | str | None, week_count: int) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        week = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("target_week must be an integer.") from exc
    if week < 1 or week > week_count:
        raise ValidationError(f"target_week must be between 1 and {week_count}.")
    return week

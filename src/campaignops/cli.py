from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import NoReturn

import typer

from campaignops import __version__
from campaignops.config import (
    WorkspaceConfig,
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from campaignops.domain import rules
from campaignops.domain.allocation import PlanProposal
from campaignops.domain.rules import ConflictError, ValidationError
from campaignops.domain.stages import MemberRole
from campaignops.services import campaigns, exports, planner, prospects
from campaignops.services.events import EventLogger
from campaignops.services.utils import today_iso
from campaignops.store.repository import CampaignNotFound, CampaignRepository, PersistenceError
from campaignops.store.sqlite import SqliteStore

app = typer.Typer(help="Campaign prospect scheduling and team allocation")
workspace_app = typer.Typer(help="Workspace management")
schema_app = typer.Typer(help="Schema operations")
campaign_app = typer.Typer(help="Campaigns and their week calendar")
team_app = typer.Typer(help="Campaign team roster")
prospect_app = typer.Typer(help="Campaign prospects")
plan_app = typer.Typer(help="Weekly plan and workload rebalancing")
orphans_app = typer.Typer(help="Prospects assigned to members no longer on the team")
activity_app = typer.Typer(help="Campaign activity log")
export_app = typer.Typer(help="Exports")

app.add_typer(workspace_app, name="workspace")
app.add_typer(schema_app, name="schema")
app.add_typer(campaign_app, name="campaign")
app.add_typer(team_app, name="team")
app.add_typer(prospect_app, name="prospect")
app.add_typer(plan_app, name="plan")
app.add_typer(orphans_app, name="orphans")
app.add_typer(activity_app, name="activity")
app.add_typer(export_app, name="export")

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "resources" / "schema" / "canonical.yaml"

ERRORS = (ValidationError, ConflictError, PersistenceError, CampaignNotFound)


@app.callback()
def version_callback(version: bool = typer.Option(False, "--version", help="Show version and exit.")):
    if version:
        typer.echo(__version__)
        raise typer.Exit()


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and outputs."""
    ensure_workspaces_dir()
    Path("data").mkdir(exist_ok=True)
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized campaignops directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@schema_app.command("apply")
def schema_apply() -> None:
    ws = _load_workspace()
    SqliteStore(ws.store.sqlite_path).apply_schema(SCHEMA_PATH)
    typer.echo("Applied schema to local SQLite.")


@campaign_app.command("create")
def campaign_create(
    name: str = typer.Argument(...),
    start: str = typer.Option(..., "--start", help="YYYY-MM-DD"),
    end: str = typer.Option(..., "--end", help="YYYY-MM-DD"),
    owner: str = typer.Option(..., "--owner", help="Owner member id."),
    owner_name: str | None = typer.Option(None, "--owner-name"),
    description: str | None = typer.Option(None, "--description"),
    status: str = typer.Option("planning", "--status"),
    touchpoints: int = typer.Option(0, "--touchpoints"),
    opportunities: int = typer.Option(0, "--opportunities"),
    estimates: int = typer.Option(0, "--estimates"),
    awards: int = typer.Option(0, "--awards"),
    pipeline_value: float = typer.Option(0.0, "--pipeline-value"),
    goal: str | None = typer.Option(None, "--goal"),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        state = campaigns.create_campaign(
            repo,
            name=name,
            start_date=rules.parse_date(start, "start"),
            end_date=rules.parse_date(end, "end"),
            owner_id=owner,
            owner_name=owner_name,
            description=description,
            status=status,
            goals=campaigns.CampaignGoals(
                touchpoints=touchpoints,
                opportunities=opportunities,
                estimates=estimates,
                awards=awards,
                pipeline_value=pipeline_value,
                description=goal,
            ),
            logger=_event_logger(ws),
        )
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created campaign: {state.campaign_id} ({state.week_count} weeks)")


@campaign_app.command("list")
def campaign_list() -> None:
    ws = _load_workspace()
    for campaign in _repository(ws).list_campaigns():
        typer.echo(
            f"{campaign.campaign_id} | {campaign.name} | {campaign.status} | "
            f"{campaign.start_date.isoformat()} - {campaign.end_date.isoformat()}"
        )


@campaign_app.command("show")
def campaign_show(campaign: str = typer.Argument(..., help="Campaign id or name.")) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        state = repo.load(repo.resolve_id(campaign))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    c = state.campaign
    typer.echo(f"{c.name} ({c.status}) v{c.version}")
    typer.echo(f"{c.start_date.isoformat()} - {c.end_date.isoformat()}: {state.week_count} weeks")
    for week in state.weeks:
        typer.echo(f"  week {week.week_number}: {week.label}")
    typer.echo("Team:")
    for member in state.roster:
        typer.echo(f"  {member.member_id} | {member.display_name} | {member.role}")
    typer.echo(f"Prospects: {len(state.prospects)}")


@campaign_app.command("reschedule")
def campaign_reschedule(
    campaign: str = typer.Argument(...),
    start: str = typer.Option(..., "--start"),
    end: str = typer.Option(..., "--end"),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Regenerate weeks for new dates and re-plan every prospect."""
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        campaign_id = repo.resolve_id(campaign)
        start_date = rules.parse_date(start, "start")
        end_date = rules.parse_date(end, "end")
        if start_date is None or end_date is None:
            raise ValidationError("start and end are required.")
        if not yes:
            typer.confirm(
                "Rescheduling regenerates all weeks and overwrites manual week overrides. Continue?",
                abort=True,
            )
        state = campaigns.reschedule(repo, campaign_id, start_date, end_date, _event_logger(ws))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Rescheduled to {state.week_count} weeks.")


@campaign_app.command("generate")
def campaign_generate(
    campaign: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Distribute unassigned prospects to the team and build the weekly plan."""
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        proposal = planner.request_generation(repo, repo.resolve_id(campaign))
        typer.echo(f"Unassigned prospects to distribute: {len(proposal.distributed)}")
        _echo_plan(proposal.plan)
        if not yes:
            typer.confirm("Apply this plan?", abort=True)
        planner.confirm_generation(repo, proposal, _event_logger(ws))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo("Campaign generated.")


@campaign_app.command("stats")
def campaign_stats(campaign: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        stats = campaigns.campaign_stats(repo.load(repo.resolve_id(campaign)))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"touchpoints {stats.touchpoints}/{stats.target_touchpoints}")
    typer.echo(f"opportunities {stats.opportunities}/{stats.target_opportunities}")
    for status, count in stats.by_status.items():
        typer.echo(f"status {status}: {count}")
    for week in stats.weeks:
        typer.echo(
            f"week {week.week_number} ({week.label}): total={week.total} "
            f"contacted={week.contacted} opportunities={week.opportunities}"
        )
    for member in stats.members:
        typer.echo(
            f"member {member.display_name} ({member.role}): "
            f"assigned={member.assigned} contacted={member.contacted}"
        )


@team_app.command("add")
def team_add(
    campaign: str = typer.Argument(...),
    member_id: str = typer.Argument(...),
    name: str | None = typer.Option(None, "--name", help="Display name."),
    role: str = typer.Option(MemberRole.MEMBER.value, "--role"),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        member = planner.add_member(
            repo, repo.resolve_id(campaign), member_id, role, name, _event_logger(ws)
        )
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Added {member.display_name} as {member.role}.")


@team_app.command("list")
def team_list(campaign: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        state = repo.load(repo.resolve_id(campaign))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    for member in state.roster:
        typer.echo(
            f"{member.member_id} | {member.display_name} | {member.role} | "
            f"{len(state.assigned_to(member))} prospects"
        )


@team_app.command("remove")
def team_remove(
    campaign: str = typer.Argument(...),
    member_id: str = typer.Argument(...),
    reassign_to: str | None = typer.Option(
        None, "--reassign-to", help="Member who takes over the removed member's prospects."
    ),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        campaign_id = repo.resolve_id(campaign)
        check = planner.check_removal(repo, campaign_id, member_id)
        if check.requires_reassignment and not reassign_to:
            _exit_with_error(
                f"{member_id} has {check.assigned_count} prospects assigned; "
                "pass --reassign-to <member>."
            )
        moved = planner.remove_member(repo, campaign_id, member_id, reassign_to, _event_logger(ws))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Removed {member_id}; reassigned {len(moved)} prospects.")


@team_app.command("owner")
def team_owner(campaign: str = typer.Argument(...), member_id: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        owner = planner.transfer_ownership(repo, repo.resolve_id(campaign), member_id, _event_logger(ws))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Owner is now {owner.display_name}.")


@prospect_app.command("add")
def prospect_add(
    campaign: str = typer.Argument(...),
    name: str = typer.Option(..., "--name"),
    tier: str | None = typer.Option(None, "--tier"),
    score: int | None = typer.Option(None, "--score"),
    assigned_to: str | None = typer.Option(None, "--assign"),
    week: int | None = typer.Option(None, "--week"),
    sector: str | None = typer.Option(None, "--sector"),
    address: str | None = typer.Option(None, "--address"),
    phone: str | None = typer.Option(None, "--phone"),
    website: str | None = typer.Option(None, "--website"),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        prospect = prospects.add_prospect(
            repo,
            repo.resolve_id(campaign),
            name,
            logger=_event_logger(ws),
            tier=tier,
            score=score,
            assigned_to=assigned_to,
            target_week=week,
            sector=sector,
            address=address,
            phone=phone,
            website=website,
            default_tier=ws.planner.default_tier,
            default_score=ws.planner.default_score,
        )
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created prospect: {prospect.prospect_id}")


@prospect_app.command("import")
def prospect_import(campaign: str = typer.Argument(...), csv_path: Path = typer.Argument(...)) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    if not csv_path.exists():
        raise typer.BadParameter(f"File not found: {csv_path}")
    try:
        imported = prospects.import_csv(
            repo,
            repo.resolve_id(campaign),
            csv_path,
            default_tier=ws.planner.default_tier,
            default_score=ws.planner.default_score,
            logger=_event_logger(ws),
        )
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Imported {len(imported)} prospects.")


@prospect_app.command("list")
def prospect_list(
    campaign: str = typer.Argument(...),
    assigned_to: str | None = typer.Option(None, "--assigned"),
    status: str | None = typer.Option(None, "--status"),
    tier: str | None = typer.Option(None, "--tier"),
    week: int | None = typer.Option(None, "--week"),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        state = repo.load(repo.resolve_id(campaign))
        rows = prospects.list_prospects(state, assigned_to, status, tier, week)
    except ERRORS as exc:
        _exit_with_error(str(exc))
    for p in rows:
        typer.echo(
            f"{p.prospect_id} | {p.name} | {p.tier}/{p.score} | {p.assigned_to or 'Unassigned'} | "
            f"week {p.target_week or '-'} | {p.status} | {p.next_action}"
        )


@prospect_app.command("status")
def prospect_status(
    campaign: str = typer.Argument(...),
    prospect_id: str = typer.Argument(...),
    status: str | None = typer.Option(None, "--status"),
    next_action: str | None = typer.Option(None, "--next"),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        prospect = prospects.update_status(
            repo, repo.resolve_id(campaign), prospect_id, status, next_action
        )
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"{prospect.name}: {prospect.status} / {prospect.next_action}")


@prospect_app.command("note")
def prospect_note(
    campaign: str = typer.Argument(...),
    prospect_id: str = typer.Argument(...),
    note: str = typer.Argument(...),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        prospects.add_note(repo, repo.resolve_id(campaign), prospect_id, note)
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo("Note added.")


@plan_app.command("regenerate")
def plan_regenerate(
    campaign: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Recompute every prospect's target week from tier and score."""
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        proposal = planner.request_weekly_plan(repo, repo.resolve_id(campaign))
        _echo_plan(proposal)
        if not yes:
            typer.confirm(
                "Regenerating overwrites manual week overrides. Apply this plan?", abort=True
            )
        planner.confirm_weekly_plan(repo, proposal, _event_logger(ws))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo("Weekly plan applied.")


@plan_app.command("transfer")
def plan_transfer(
    campaign: str = typer.Argument(...),
    from_member: str = typer.Option(..., "--from"),
    to_member: str = typer.Option(..., "--to"),
    count: int = typer.Option(..., "--count"),
) -> None:
    """Move the lowest-priority prospects from one member to another."""
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        moved = planner.transfer_prospects(
            repo, repo.resolve_id(campaign), from_member, to_member, count, _event_logger(ws)
        )
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Transferred {len(moved)} prospects from {from_member} to {to_member}.")


@orphans_app.command("list")
def orphans_list(campaign: str = typer.Argument(...)) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        report = planner.list_orphans(repo, repo.resolve_id(campaign))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    if not report:
        typer.echo("No orphaned prospects.")
        return
    typer.echo(f"Stale members: {', '.join(report.stale_names)}")
    for p in report.prospects:
        typer.echo(f"{p.prospect_id} | {p.name} | {p.assigned_to}")


@orphans_app.command("resolve")
def orphans_resolve(
    campaign: str = typer.Argument(...),
    to_member: str = typer.Option(..., "--to"),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        moved = planner.resolve_orphans(repo, repo.resolve_id(campaign), to_member, _event_logger(ws))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Reassigned {len(moved)} orphaned prospects to {to_member}.")


@activity_app.command("list")
def activity_list(
    campaign: str = typer.Argument(...),
    prospect_id: str | None = typer.Option(None, "--prospect"),
    limit: int = typer.Option(100, "--limit"),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    try:
        rows = prospects.list_activity(repo, repo.resolve_id(campaign), prospect_id, limit)
    except ERRORS as exc:
        _exit_with_error(str(exc))
    for row in rows:
        typer.echo(
            f"{row['created_at']} | {row['activity_type']} | {row['company_name'] or '-'} | "
            f"{row['description']}"
        )


@export_app.command("excel")
def export_excel(
    out: str = typer.Option(..., "--out"),
    campaign: str | None = typer.Option(None, "--campaign", help="Limit to one campaign."),
) -> None:
    ws = _load_workspace()
    repo = _repository(ws)
    state = None
    try:
        if campaign:
            state = repo.load(repo.resolve_id(campaign))
    except ERRORS as exc:
        _exit_with_error(str(exc))
    exports.export_excel(repo.store, Path(out), state)
    typer.echo(f"Exported Excel to {out}")


@app.command("snapshot")
def snapshot() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    snapshot_dir = Path("data") / "snapshots" / today_iso()
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    if ws.store.sqlite_path.exists():
        shutil.copy2(ws.store.sqlite_path, snapshot_dir / "local.sqlite")
    exports.export_csv_tables(store, snapshot_dir)
    typer.echo(f"Snapshot created at {snapshot_dir}")


def _echo_plan(proposal: PlanProposal) -> None:
    typer.echo(
        f"Plan over {proposal.week_count} weeks: {len(proposal.assignments)} prospects, "
        f"{proposal.changed_count} changing week"
    )
    for week, total in proposal.week_totals().items():
        typer.echo(f"  week {week}: {total}")


def _load_workspace() -> WorkspaceConfig:
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _repository(ws: WorkspaceConfig) -> CampaignRepository:
    return CampaignRepository(
        SqliteStore(ws.store.sqlite_path), actor=os.getenv("CAMPAIGNOPS_ACTOR")
    )


def _exit_with_error(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _event_logger(ws: WorkspaceConfig) -> EventLogger:
    return EventLogger(path=ws.events_path, workspace=ws.name, enabled=ws.planner.events)


if __name__ == "__main__":
    app()

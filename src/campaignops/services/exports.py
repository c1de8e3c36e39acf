from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from openpyxl import Workbook

from campaignops.domain.allocation import priority_key
from campaignops.domain.models import CampaignState
from campaignops.store.sqlite import SqliteStore

TABLES = [
    "campaigns",
    "campaign_weeks",
    "campaign_team_members",
    "campaign_companies",
    "campaign_activity_logs",
]

PLAN_HEADERS = ["week", "week_label", "member", "tier", "score", "company", "status", "next_action"]


def export_excel(store: SqliteStore, out_path: Path, state: CampaignState | None = None) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)

    if state is not None:
        ws = wb.create_sheet(title="Weekly Plan")
        ws.append(PLAN_HEADERS)
        for row in weekly_plan_rows(state):
            ws.append(row)

    for table in TABLES:
        if state is not None:
            rows = store.fetch_all(
                f"SELECT * FROM {table} WHERE campaign_id = ?", (state.campaign_id,)
            )
        else:
            rows = store.fetch_all(f"SELECT * FROM {table}")
        ws = wb.create_sheet(title=table)
        _write_sheet(ws, rows)

    wb.save(out_path)


def export_csv_tables(store: SqliteStore, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for table in TABLES:
        rows = store.fetch_all(f"SELECT * FROM {table}")
        if not rows:
            headers: list[str] = []
        else:
            headers = list(rows[0].keys())
        csv_path = out_dir / f"{table}.csv"
        with csv_path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(headers)
            for row in rows:
                writer.writerow([row[h] for h in headers])


def weekly_plan_rows(state: CampaignState) -> list[list]:
    labels = {week.week_number: week.label for week in state.weeks}
    names = {}
    for prospect in state.prospects:
        member = state.roster.resolve(prospect.assigned_to)
        names[prospect.prospect_id] = member.display_name if member else prospect.assigned_to

    def sort_key(prospect):
        week = prospect.target_week if prospect.target_week is not None else len(labels) + 1
        return (week, names[prospect.prospect_id] or "", *priority_key(prospect))

    return [
        [
            p.target_week,
            labels.get(p.target_week, "Unscheduled"),
            names[p.prospect_id] or "Unassigned",
            p.tier,
            p.score,
            p.name,
            p.status,
            p.next_action,
        ]
        for p in sorted(state.prospects, key=sort_key)
    ]


def _write_sheet(ws, rows: Iterable) -> None:
    rows = list(rows)
    if not rows:
        return
    headers = list(rows[0].keys())
    ws.append(headers)
    for row in rows:
        ws.append([row[h] for h in headers])

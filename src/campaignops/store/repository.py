"""Campaign aggregate persistence.

The repository loads one campaign's roster, prospects and weeks as a
``CampaignState`` and commits a new state in a single SQLite transaction. Commits
for one campaign are serialized in-process and guarded by a compare-and-swap on
``campaigns.version``.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import weakref
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date, datetime
from uuid import uuid4

from campaignops.domain.models import (
    ActivityEntry,
    Campaign,
    CampaignState,
    Prospect,
    Roster,
    TeamMember,
    Week,
)
from campaignops.domain.rules import ConflictError
from campaignops.services.utils import utc_now_iso
from campaignops.store.sqlite import SqliteSession, SqliteStore

PROSPECT_FIELDS = (
    "name",
    "sector",
    "address",
    "phone",
    "website",
    "tier",
    "score",
    "assigned_to",
    "target_week",
    "status",
    "next_action",
)

CAMPAIGN_FIELDS = (
    "name",
    "description",
    "status",
    "start_date",
    "end_date",
    "target_touchpoints",
    "target_opportunities",
    "target_estimates",
    "target_awards",
    "target_pipeline_value",
    "goal_description",
)


class CampaignLock:
    """Commit lock for one campaign; dropped from the registry once no caller holds it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __enter__(self) -> CampaignLock:
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self._lock.release()


_LOCKS: weakref.WeakValueDictionary[tuple[str, str], CampaignLock] = (
    weakref.WeakValueDictionary()
)
_LOCKS_GUARD = threading.Lock()


class PersistenceError(RuntimeError):
    pass


class CampaignNotFound(LookupError):
    pass


def _campaign_lock(db_path: str, campaign_id: str) -> CampaignLock:
    with _LOCKS_GUARD:
        lock = _LOCKS.get((db_path, campaign_id))
        if lock is None:
            lock = CampaignLock()
            _LOCKS[(db_path, campaign_id)] = lock
        return lock


class CampaignRepository:
    def __init__(self, store: SqliteStore, actor: str | None = None) -> None:
        self.store = store
        self.actor = actor

    def resolve_id(self, ref: str) -> str:
        row = self.store.fetch_one(
            "SELECT campaign_id FROM campaigns WHERE campaign_id = ? OR name = ?", (ref, ref)
        )
        if row is None:
            raise CampaignNotFound(f"Campaign not found: {ref}")
        return row["campaign_id"]

    def list_campaigns(self) -> list[Campaign]:
        rows = self.store.fetch_all("SELECT * FROM campaigns ORDER BY created_at DESC")
        return [_campaign_from_row(row) for row in rows]

    def load(self, campaign_id: str) -> CampaignState:
        with self.store.session() as session:
            return self._load(session, campaign_id)

    def create(self, state: CampaignState, activities: Iterable[ActivityEntry] = ()) -> CampaignState:
        campaign = state.campaign
        try:
            with self.store.session(immediate=True) as session:
                session.execute(
                    "INSERT INTO campaigns (campaign_id, version, created_at, updated_at, "
                    f"{', '.join(CAMPAIGN_FIELDS)}) VALUES (?, ?, ?, ?, {_marks(CAMPAIGN_FIELDS)})",
                    (
                        campaign.campaign_id,
                        campaign.version,
                        campaign.created_at.isoformat(),
                        campaign.updated_at.isoformat(),
                        *_campaign_values(campaign),
                    ),
                )
                self._write_roster(session, campaign.campaign_id, Roster(), state.roster)
                self._write_weeks(session, campaign.campaign_id, state.weeks)
                self._insert_prospects(session, campaign.campaign_id, state.prospects, start=0)
                self._log(session, campaign.campaign_id, activities)
        except sqlite3.IntegrityError as exc:
            raise ConflictError(f"Campaign could not be created: {exc}") from exc
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to create campaign: {exc}") from exc
        return state

    def commit(
        self,
        before: CampaignState,
        after: CampaignState,
        activities: Iterable[ActivityEntry] = (),
    ) -> CampaignState:
        if before.campaign_id != after.campaign_id:
            raise ValueError("Cannot commit a state for a different campaign.")
        campaign_id = before.campaign_id
        missing = {p.prospect_id for p in before.prospects} - {
            p.prospect_id for p in after.prospects
        }
        if missing:
            raise ConflictError(f"Prospects cannot be dropped by a commit: {', '.join(sorted(missing))}")

        now = utc_now_iso()
        lock = _campaign_lock(str(self.store.db_path.resolve()), campaign_id)
        with lock:
            try:
                with self.store.session(immediate=True) as session:
                    updated = session.execute(
                        "UPDATE campaigns SET version = version + 1, updated_at = ?, "
                        f"{', '.join(f'{name} = ?' for name in CAMPAIGN_FIELDS)} "
                        "WHERE campaign_id = ? AND version = ?",
                        (now, *_campaign_values(after.campaign), campaign_id, before.version),
                    )
                    if updated != 1:
                        raise ConflictError(
                            "Campaign was modified by another operation; reload and retry."
                        )
                    self._write_roster(session, campaign_id, before.roster, after.roster)
                    if before.weeks != after.weeks:
                        self._write_weeks(session, campaign_id, after.weeks, replace_all=True)
                    self._write_prospects(session, campaign_id, before.prospects, after.prospects)
                    self._log(session, campaign_id, activities)
            except sqlite3.Error as exc:
                raise PersistenceError(f"Failed to commit campaign {campaign_id}: {exc}") from exc

        campaign = replace(
            after.campaign,
            version=before.version + 1,
            updated_at=datetime.fromisoformat(now),
        )
        return replace(after, campaign=campaign)

    def log_activity(self, campaign_id: str, activities: Iterable[ActivityEntry]) -> None:
        try:
            with self.store.session() as session:
                self._log(session, campaign_id, activities)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to write activity log: {exc}") from exc

    def _load(self, session: SqliteSession, campaign_id: str) -> CampaignState:
        row = session.fetch_one("SELECT * FROM campaigns WHERE campaign_id = ?", (campaign_id,))
        if row is None:
            raise CampaignNotFound(f"Campaign not found: {campaign_id}")
        members = session.fetch_all(
            "SELECT member_id, display_name, role FROM campaign_team_members "
            "WHERE campaign_id = ? ORDER BY position, created_at",
            (campaign_id,),
        )
        weeks = session.fetch_all(
            "SELECT week_number, start_date, end_date, label FROM campaign_weeks "
            "WHERE campaign_id = ? ORDER BY week_number",
            (campaign_id,),
        )
        prospects = session.fetch_all(
            f"SELECT prospect_id, {', '.join(PROSPECT_FIELDS)} FROM campaign_companies "
            "WHERE campaign_id = ? ORDER BY position, rowid",
            (campaign_id,),
        )
        roster = Roster(
            members=tuple(
                TeamMember(
                    member_id=m["member_id"], display_name=m["display_name"], role=m["role"]
                )
                for m in members
            )
        )
        return CampaignState(
            campaign=_campaign_from_row(row),
            roster=roster,
            prospects=tuple(_prospect_from_row(p) for p in prospects),
            weeks=tuple(
                Week(
                    week_number=w["week_number"],
                    start_date=date.fromisoformat(w["start_date"]),
                    end_date=date.fromisoformat(w["end_date"]),
                    label=w["label"],
                )
                for w in weeks
            ),
        )

    def _write_roster(
        self, session: SqliteSession, campaign_id: str, before: Roster, after: Roster
    ) -> None:
        after_ids = {m.member_id for m in after}
        for member in before:
            if member.member_id not in after_ids:
                session.execute(
                    "DELETE FROM campaign_team_members WHERE campaign_id = ? AND member_id = ?",
                    (campaign_id, member.member_id),
                )
        now = utc_now_iso()
        for position, member in enumerate(after):
            previous = before.get(member.member_id)
            if previous is None:
                session.execute(
                    "INSERT INTO campaign_team_members (campaign_id, member_id, display_name, role, "
                    "position, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                    (campaign_id, member.member_id, member.display_name, member.role, position, now),
                )
            else:
                session.execute(
                    "UPDATE campaign_team_members SET display_name = ?, role = ?, position = ? "
                    "WHERE campaign_id = ? AND member_id = ?",
                    (member.display_name, member.role, position, campaign_id, member.member_id),
                )

    def _write_weeks(
        self,
        session: SqliteSession,
        campaign_id: str,
        weeks: Sequence[Week],
        replace_all: bool = False,
    ) -> None:
        if replace_all:
            session.execute("DELETE FROM campaign_weeks WHERE campaign_id = ?", (campaign_id,))
        session.execute_many(
            "INSERT INTO campaign_weeks (campaign_id, week_number, start_date, end_date, label) "
            "VALUES (?, ?, ?, ?, ?)",
            [
                (
                    campaign_id,
                    week.week_number,
                    week.start_date.isoformat(),
                    week.end_date.isoformat(),
                    week.label,
                )
                for week in weeks
            ],
        )

    def _write_prospects(
        self,
        session: SqliteSession,
        campaign_id: str,
        before: Sequence[Prospect],
        after: Sequence[Prospect],
    ) -> None:
        previous = {p.prospect_id: p for p in before}
        now = utc_now_iso()
        added: list[Prospect] = []
        for prospect in after:
            old = previous.get(prospect.prospect_id)
            if old is None:
                added.append(prospect)
                continue
            changed = [f for f in PROSPECT_FIELDS if getattr(old, f) != getattr(prospect, f)]
            if not changed:
                continue
            session.execute(
                f"UPDATE campaign_companies SET {', '.join(f'{f} = ?' for f in changed)}, "
                "updated_at = ? WHERE prospect_id = ? AND campaign_id = ?",
                (*(getattr(prospect, f) for f in changed), now, prospect.prospect_id, campaign_id),
            )
        if added:
            row = session.fetch_one(
                "SELECT COALESCE(MAX(position), -1) AS last FROM campaign_companies "
                "WHERE campaign_id = ?",
                (campaign_id,),
            )
            self._insert_prospects(session, campaign_id, added, start=row["last"] + 1)

    def _insert_prospects(
        self,
        session: SqliteSession,
        campaign_id: str,
        prospects: Sequence[Prospect],
        start: int,
    ) -> None:
        now = utc_now_iso()
        session.execute_many(
            f"INSERT INTO campaign_companies (prospect_id, campaign_id, {', '.join(PROSPECT_FIELDS)}, "
            f"position, created_at, updated_at) VALUES (?, ?, {_marks(PROSPECT_FIELDS)}, ?, ?, ?)",
            [
                (
                    p.prospect_id,
                    campaign_id,
                    *(getattr(p, f) for f in PROSPECT_FIELDS),
                    start + offset,
                    now,
                    now,
                )
                for offset, p in enumerate(prospects)
            ],
        )

    def _log(
        self, session: SqliteSession, campaign_id: str, activities: Iterable[ActivityEntry]
    ) -> None:
        now = utc_now_iso()
        session.execute_many(
            "INSERT INTO campaign_activity_logs (activity_id, campaign_id, prospect_id, actor, "
            "activity_type, description, metadata, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    str(uuid4()),
                    campaign_id,
                    entry.prospect_id,
                    self.actor,
                    entry.activity_type,
                    entry.description,
                    json.dumps(entry.metadata, sort_keys=True) if entry.metadata else None,
                    now,
                )
                for entry in activities
            ],
        )


def _marks(fields: Sequence[str]) -> str:
    return ", ".join("?" for _ in fields)


def _campaign_values(campaign: Campaign) -> tuple:
    values = []
    for name in CAMPAIGN_FIELDS:
        value = getattr(campaign, name)
        values.append(value.isoformat() if isinstance(value, date) else value)
    return tuple(values)


def _campaign_from_row(row: sqlite3.Row) -> Campaign:
    return Campaign(
        campaign_id=row["campaign_id"],
        name=row["name"],
        description=row["description"],
        status=row["status"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        target_touchpoints=row["target_touchpoints"],
        target_opportunities=row["target_opportunities"],
        target_estimates=row["target_estimates"],
        target_awards=row["target_awards"],
        target_pipeline_value=row["target_pipeline_value"],
        goal_description=row["goal_description"],
        version=row["version"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _prospect_from_row(row: sqlite3.Row) -> Prospect:
    return Prospect(prospect_id=row["prospect_id"], **{f: row[f] for f in PROSPECT_FIELDS})

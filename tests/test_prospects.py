from datetime import date
from pathlib import Path

import pytest

from campaignops.domain.rules import ValidationError
from campaignops.services import campaigns, planner, prospects
from campaignops.store.repository import CampaignRepository
from campaignops.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def _setup(tmp_path: Path) -> tuple[CampaignRepository, str]:
    repo = CampaignRepository(_store(tmp_path))
    state = campaigns.create_campaign(
        repo,
        name="Phoenix",
        start_date=date(2025, 2, 2),
        end_date=date(2025, 2, 22),
        owner_id="ann",
        owner_name="Ann Lee",
    )
    planner.add_member(repo, state.campaign_id, "bob", display_name="Bob")
    return repo, state.campaign_id


def test_import_csv_applies_defaults(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    csv_path = tmp_path / "prospects.csv"
    csv_path.write_text(
        "name,sector,tier,score,assigned_to,target_week\n"
        "SK Food,Food,A,90,Ann Lee,1\n"
        "Romac,Industrial,,,,\n",
        encoding="utf-8",
    )
    imported = prospects.import_csv(repo, campaign_id, csv_path, default_score=55)
    assert [p.name for p in imported] == ["SK Food", "Romac"]
    assert imported[0].assigned_to == "ann"
    assert (imported[1].tier, imported[1].score, imported[1].assigned_to) == ("B", 55, None)
    assert len(repo.load(campaign_id).prospects) == 2


def test_import_csv_rejects_whole_file_on_bad_row(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    csv_path = tmp_path / "prospects.csv"
    csv_path.write_text("name,tier,score\nSK Food,A,90\nRomac,Z,40\n", encoding="utf-8")
    with pytest.raises(ValidationError, match="line 3"):
        prospects.import_csv(repo, campaign_id, csv_path)
    assert repo.load(campaign_id).prospects == ()


def test_import_csv_rejects_unknown_columns(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    csv_path = tmp_path / "prospects.csv"
    csv_path.write_text("name,revenue\nSK Food,10\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        prospects.import_csv(repo, campaign_id, csv_path)


def test_add_prospect_validates_fields(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    with pytest.raises(ValidationError):
        prospects.add_prospect(repo, campaign_id, "SK Food", score=101)
    with pytest.raises(ValidationError):
        prospects.add_prospect(repo, campaign_id, "SK Food", target_week=4)
    with pytest.raises(ValidationError):
        prospects.add_prospect(repo, campaign_id, "SK Food", assigned_to="carol")
    with pytest.raises(ValidationError):
        prospects.add_prospect(repo, campaign_id, " ")
    assert repo.load(campaign_id).prospects == ()


def test_update_status_and_activity(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    prospect = prospects.add_prospect(repo, campaign_id, "SK Food", tier="A", score=90)
    updated = prospects.update_status(
        repo, campaign_id, prospect.prospect_id, status="follow_up", next_action="follow_30"
    )
    assert (updated.status, updated.next_action) == ("follow_up", "follow_30")
    prospects.add_note(repo, campaign_id, prospect.prospect_id, "Left a voicemail")

    rows = prospects.list_activity(repo, campaign_id, prospect_id=prospect.prospect_id)
    assert [row["activity_type"] for row in rows] == [
        "note",
        "action_change",
        "status_change",
        "prospect_added",
    ]
    assert rows[0]["company_name"] == "SK Food"

    with pytest.raises(ValidationError):
        prospects.update_status(repo, campaign_id, prospect.prospect_id, status="won")
    with pytest.raises(ValidationError):
        prospects.update_status(repo, campaign_id, "missing", status="dead")


def test_list_prospects_filters(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    prospects.add_prospect(repo, campaign_id, "SK Food", tier="A", score=90, assigned_to="ann")
    prospects.add_prospect(repo, campaign_id, "Romac", tier="C", score=40, assigned_to="bob")
    prospects.add_prospect(repo, campaign_id, "Shamrock", tier="A", score=95, assigned_to="ann")
    state = repo.load(campaign_id)

    assert [p.name for p in prospects.list_prospects(state, assigned_to="Ann Lee")] == [
        "Shamrock",
        "SK Food",
    ]
    assert [p.name for p in prospects.list_prospects(state, tier="C")] == ["Romac"]
    with pytest.raises(ValidationError):
        prospects.list_prospects(state, status="won")


def test_campaign_stats(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    first = prospects.add_prospect(repo, campaign_id, "SK Food", assigned_to="ann", target_week=1)
    prospects.add_prospect(repo, campaign_id, "Romac", assigned_to="bob", target_week=2)
    prospects.update_status(repo, campaign_id, first.prospect_id, status="new_opp")

    stats = campaigns.campaign_stats(repo.load(campaign_id))
    assert stats.by_status["new_opp"] == 1
    assert stats.by_status["prospect"] == 1
    assert stats.touchpoints == 1
    assert [(w.total, w.opportunities) for w in stats.weeks] == [(1, 1), (1, 0), (0, 0)]
    assert [(m.member_id, m.assigned, m.contacted) for m in stats.members] == [
        ("ann", 1, 1),
        ("bob", 1, 0),
    ]


def test_reschedule_replans_into_new_calendar(tmp_path: Path) -> None:
    repo, campaign_id = _setup(tmp_path)
    for name, score in [("a", 90), ("b", 80), ("c", 70), ("d", 60)]:
        prospects.add_prospect(
            repo, campaign_id, name, tier="A", score=score, assigned_to="ann", target_week=3
        )
    state = campaigns.reschedule(repo, campaign_id, date(2025, 3, 2), date(2025, 3, 15))
    assert state.week_count == 2
    reloaded = repo.load(campaign_id)
    assert reloaded.weeks == state.weeks
    assert {p.name: p.target_week for p in reloaded.prospects} == {"a": 1, "b": 1, "c": 2, "d": 2}

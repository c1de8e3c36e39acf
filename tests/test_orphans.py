from datetime import date, datetime

import pytest

from campaignops.domain import orphans
from campaignops.domain.models import Campaign, CampaignState, Prospect, Roster, TeamMember
from campaignops.domain.rules import ConflictError, ValidationError


def _state(prospects: list[Prospect]) -> CampaignState:
    now = datetime(2025, 1, 1)
    campaign = Campaign(
        campaign_id="c-1",
        name="Phoenix",
        description=None,
        status="active",
        start_date=date(2025, 2, 2),
        end_date=date(2025, 2, 15),
        target_touchpoints=0,
        target_opportunities=0,
        target_estimates=0,
        target_awards=0,
        target_pipeline_value=0.0,
        goal_description=None,
        version=1,
        created_at=now,
        updated_at=now,
    )
    roster = Roster(
        members=(TeamMember("ann", "Ann", "owner"), TeamMember("dave", "Dave", "member"))
    )
    return CampaignState(campaign=campaign, roster=roster, prospects=tuple(prospects))


def test_orphans_listed_with_stale_names() -> None:
    state = _state(
        [
            Prospect("p1", "Boeing Mesa", "A", 85, "Carol", 1),
            Prospect("p2", "First Solar", "A", 80, "ann", 1),
            Prospect("p3", "Sub-Zero", "B", 70, "Carol", 2),
        ]
    )
    report = orphans.find_orphans(state)
    assert [p.prospect_id for p in report.prospects] == ["p1", "p3"]
    assert report.stale_names == ("Carol",)


def test_display_name_references_are_not_orphans() -> None:
    state = _state([Prospect("p1", "Boeing Mesa", "A", 85, "Dave", 1)])
    assert not orphans.find_orphans(state)


def test_unassigned_prospects_are_not_orphans() -> None:
    state = _state([Prospect("p1", "Boeing Mesa", "A", 85, None, None)])
    assert not orphans.find_orphans(state)


def test_resolve_moves_every_stale_name_to_target() -> None:
    state = _state(
        [
            Prospect("p1", "Boeing Mesa", "A", 85, "Carol", 1),
            Prospect("p2", "First Solar", "A", 80, "ann", 1),
            Prospect("p3", "Sub-Zero", "B", 70, "Eve", 2),
        ]
    )
    result = orphans.resolve_orphans(state, "Dave")
    assert result.moved == ("p1", "p3")
    assert {p.prospect_id: p.assigned_to for p in result.state.prospects} == {
        "p1": "dave",
        "p2": "ann",
        "p3": "dave",
    }
    assert not orphans.find_orphans(result.state)
    assert len(result.state.prospects) == 3


def test_resolve_requires_target_on_roster() -> None:
    state = _state([Prospect("p1", "Boeing Mesa", "A", 85, "Carol", 1)])
    with pytest.raises(ValidationError):
        orphans.resolve_orphans(state, "")
    with pytest.raises(ConflictError):
        orphans.resolve_orphans(state, "Carol")

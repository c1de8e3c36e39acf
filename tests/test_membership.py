from datetime import date, datetime

import pytest

from campaignops.domain import membership, orphans
from campaignops.domain.models import Campaign, CampaignState, Prospect, Roster, TeamMember
from campaignops.domain.rules import ConflictError, ValidationError


def _state(prospects: list[Prospect] | None = None) -> CampaignState:
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
        members=(
            TeamMember("owner", "Olive", "owner"),
            TeamMember("ann", "Ann", "member"),
            TeamMember("bob", "Bob", "member"),
        )
    )
    return CampaignState(campaign=campaign, roster=roster, prospects=tuple(prospects or ()))


def _ann_prospects() -> list[Prospect]:
    return [
        Prospect("p1", "SK Food", "A", 90, "ann", 1),
        Prospect("p2", "Huss Brewing", "B", 70, "ann", 2),
        Prospect("p3", "Romac", "C", 40, "Ann", 2),
        Prospect("p4", "Shamrock", "A", 85, "bob", 1),
    ]


def test_remove_with_reassignment() -> None:
    result = membership.remove_member(_state(_ann_prospects()), "ann", reassign_to="bob")
    assert result.moved == ("p1", "p2", "p3")
    assert result.state.roster.get("ann") is None
    assert all(p.assigned_to == "bob" for p in result.state.prospects)
    assert not orphans.find_orphans(result.state)


def test_remove_without_prospects_commits_immediately() -> None:
    result = membership.remove_member(_state(), "ann")
    assert result.moved == ()
    assert result.reassigned_to is None
    assert [m.member_id for m in result.state.roster] == ["owner", "bob"]


def test_remove_with_prospects_requires_target() -> None:
    state = _state(_ann_prospects())
    check = membership.check_removal(state, "ann")
    assert check.assigned_count == 3
    assert check.requires_reassignment
    with pytest.raises(ValidationError):
        membership.remove_member(state, "ann")


def test_remove_rejects_target_off_roster_or_self() -> None:
    state = _state(_ann_prospects())
    with pytest.raises(ConflictError):
        membership.remove_member(state, "ann", reassign_to="carol")
    with pytest.raises(ValidationError):
        membership.remove_member(state, "ann", reassign_to="Ann")


def test_owner_cannot_be_removed() -> None:
    with pytest.raises(ValidationError):
        membership.remove_member(_state(), "owner", reassign_to="bob")


def test_remove_unknown_member() -> None:
    with pytest.raises(ConflictError):
        membership.remove_member(_state(), "zed")


def test_add_member() -> None:
    state, member = membership.add_member(_state(), "cory", "member", "Cory Wile")
    assert member.display_name == "Cory Wile"
    assert state.roster.get("cory") == member


def test_add_member_rejects_duplicates_and_second_owner() -> None:
    with pytest.raises(ConflictError):
        membership.add_member(_state(), "ann", "member")
    with pytest.raises(ConflictError):
        membership.add_member(_state(), "ann2", "member", "Ann")
    with pytest.raises(ValidationError):
        membership.add_member(_state(), "cory", "owner")
    with pytest.raises(ValidationError):
        membership.add_member(_state(), "cory", "boss")


def test_transfer_ownership_demotes_previous_owner() -> None:
    state, owner = membership.transfer_ownership(_state(), "bob")
    assert owner.role == "owner"
    assert state.roster.owner.member_id == "bob"
    assert state.roster.get("owner").role == "member"
    assert [m.member_id for m in state.roster][0] == "bob"


def test_add_member_rejects_id_matching_a_display_name() -> None:
    state = _state([Prospect("p1", "SK Food", "A", 90, "ann", 1)])
    with pytest.raises(ConflictError):
        membership.add_member(state, "Ann", "member", "Zed")
    assert len(state.roster) == 3


def test_removal_only_moves_the_removed_members_prospects() -> None:
    state, _ = membership.add_member(_state(_ann_prospects()), "zed", "member", "Zed")
    state = state.with_prospects([*state.prospects, Prospect("p9", "Romac", "B", 60, "zed", 1)])
    result = membership.remove_member(state, "ann", reassign_to="bob")
    assert "p9" not in result.moved
    assert result.state.prospect("p9").assigned_to == "zed"

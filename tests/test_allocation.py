from dataclasses import replace
from datetime import date, datetime

import pytest

from campaignops.domain import allocation
from campaignops.domain.calendar import generate_weeks
from campaignops.domain.models import Campaign, CampaignState, Prospect, Roster, TeamMember
from campaignops.domain.rules import ConflictError, ValidationError


ROSTER = Roster(
    members=(
        TeamMember("ann", "Ann", "owner"),
        TeamMember("bob", "Bob", "member"),
    )
)


def _state(prospects: list[Prospect], weeks: int = 2, version: int = 1) -> CampaignState:
    start = date(2025, 2, 2)
    end = date.fromordinal(start.toordinal() + weeks * 7 - 1)
    now = datetime(2025, 1, 1)
    campaign = Campaign(
        campaign_id="c-1",
        name="Phoenix",
        description=None,
        status="active",
        start_date=start,
        end_date=end,
        target_touchpoints=0,
        target_opportunities=0,
        target_estimates=0,
        target_awards=0,
        target_pipeline_value=0.0,
        goal_description=None,
        version=version,
        created_at=now,
        updated_at=now,
    )
    return CampaignState(
        campaign=campaign,
        roster=ROSTER,
        prospects=tuple(prospects),
        weeks=generate_weeks(start, end),
    )


def _p(pid: str, tier: str, score: int, member: str | None = "ann", week: int | None = None) -> Prospect:
    return Prospect(
        prospect_id=pid, name=pid, tier=tier, score=score, assigned_to=member, target_week=week
    )


def test_priority_buckets_fill_weeks_in_order() -> None:
    prospects = [_p("a90", "A", 90), _p("b70", "B", 70), _p("c40", "C", 40), _p("a85", "A", 85)]
    assert allocation.allocate_weeks(prospects, ROSTER, 2) == {
        "a90": 1,
        "a85": 1,
        "b70": 2,
        "c40": 2,
    }


def test_every_prospect_lands_inside_the_calendar() -> None:
    prospects = [_p(f"p{i}", "ABC"[i % 3], (i * 37) % 101) for i in range(23)]
    for weeks in (1, 2, 5, 7, 40):
        plan = allocation.allocate_weeks(prospects, ROSTER, weeks)
        assert set(plan) == {p.prospect_id for p in prospects}
        assert all(1 <= week <= weeks for week in plan.values())


def test_higher_priority_never_scheduled_later() -> None:
    prospects = [_p(f"p{i}", "ABC"[(i * 7) % 3], (i * 53) % 101) for i in range(17)]
    plan = allocation.allocate_weeks(prospects, ROSTER, 4)
    for p in prospects:
        for q in prospects:
            if allocation.priority_key(p) < allocation.priority_key(q):
                assert plan[p.prospect_id] <= plan[q.prospect_id]


def test_buckets_are_scheduled_independently() -> None:
    prospects = [
        _p("ann-1", "C", 10, "ann"),
        _p("bob-1", "A", 99, "bob"),
        _p("bob-2", "A", 98, "bob"),
        _p("bob-3", "A", 97, "bob"),
        _p("free", "B", 50, None),
    ]
    plan = allocation.allocate_weeks(prospects, ROSTER, 3)
    assert plan["ann-1"] == 1
    assert plan["free"] == 1
    assert [plan["bob-1"], plan["bob-2"], plan["bob-3"]] == [1, 2, 3]


def test_id_and_display_name_share_one_bucket() -> None:
    prospects = [
        _p("a90", "A", 90, "ann"),
        _p("c10", "C", 10, "Ann"),
        _p("a85", "A", 85, "ann"),
        _p("c5", "C", 5, "Ann"),
    ]
    plan = allocation.allocate_weeks(prospects, ROSTER, 2)
    assert plan == {"a90": 1, "a85": 1, "c10": 2, "c5": 2}


def test_stale_names_keep_their_own_bucket() -> None:
    prospects = [_p("ann-1", "A", 90, "ann"), _p("carol-1", "C", 10, "Carol")]
    plan = allocation.allocate_weeks(prospects, ROSTER, 2)
    assert plan == {"ann-1": 1, "carol-1": 1}


def test_ties_keep_original_order() -> None:
    prospects = [_p("first", "B", 70), _p("second", "B", 70), _p("third", "B", 70)]
    plan = allocation.allocate_weeks(prospects, ROSTER, 3)
    assert [plan["first"], plan["second"], plan["third"]] == [1, 2, 3]


def test_fewer_prospects_than_weeks_front_loads() -> None:
    plan = allocation.allocate_weeks([_p("only", "C", 1)], ROSTER, 6)
    assert plan == {"only": 1}
    plan = allocation.allocate_weeks([_p("x", "A", 1), _p("y", "B", 1)], ROSTER, 6)
    assert plan == {"x": 1, "y": 2}


def test_empty_prospects_give_empty_plan() -> None:
    assert allocation.allocate_weeks([], ROSTER, 3) == {}


def test_zero_weeks_rejected() -> None:
    with pytest.raises(ValidationError):
        allocation.allocate_weeks([_p("a", "A", 1)], ROSTER, 0)


def test_proposal_is_repeatable() -> None:
    state = _state([_p("a90", "A", 90), _p("c40", "C", 40), _p("b70", "B", 70, "bob")])
    first = allocation.propose_weekly_plan(state)
    second = allocation.propose_weekly_plan(state)
    assert first == second
    applied = allocation.apply_plan(state, first)
    assert allocation.propose_weekly_plan(applied).assignments == first.assignments


def test_proposal_lists_only_changed_weeks() -> None:
    state = _state([_p("a90", "A", 90, week=1), _p("c40", "C", 40, week=1)])
    proposal = allocation.propose_weekly_plan(state)
    assert [c.prospect_id for c in proposal.changes] == ["c40"]
    assert proposal.week_totals() == {1: 1, 2: 1}


def test_apply_plan_rejects_stale_proposal() -> None:
    state = _state([_p("a90", "A", 90), _p("c40", "C", 40)])
    proposal = allocation.propose_weekly_plan(state)
    changed = replace(
        state,
        campaign=replace(state.campaign, version=2),
        prospects=(*state.prospects, _p("a99", "A", 99)),
    )
    with pytest.raises(ConflictError):
        allocation.apply_plan(changed, proposal)


def test_apply_plan_accepts_stale_but_identical_proposal() -> None:
    state = _state([_p("a90", "A", 90), _p("c40", "C", 40)])
    proposal = allocation.propose_weekly_plan(state)
    bumped = replace(state, campaign=replace(state.campaign, version=5))
    planned = allocation.apply_plan(bumped, proposal)
    assert {p.prospect_id: p.target_week for p in planned.prospects} == proposal.assignments


def test_distribute_unassigned_round_robin_by_priority() -> None:
    prospects = [_p("c", "C", 10, None), _p("a", "A", 90, None), _p("b", "B", 50, None), _p("kept", "A", 1, "bob")]
    members = [TeamMember("ann", "Ann", "owner"), TeamMember("bob", "Bob", "member")]
    result = {p.prospect_id: p.assigned_to for p in allocation.distribute_unassigned(prospects, members)}
    assert result == {"a": "ann", "b": "bob", "c": "ann", "kept": "bob"}


def test_distribute_requires_members() -> None:
    with pytest.raises(ConflictError):
        allocation.distribute_unassigned([_p("a", "A", 1, None)], [])

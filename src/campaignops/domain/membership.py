"""Roster membership changes.

A roster entry moves ``absent -> member`` on add and ``member -> removed`` on
removal. Removal of a member who still carries prospects reassigns all of them to
another active member first; the roster change and the reassignment form one new
state, so a removal never leaves prospects pointing at the removed member.
"""

from __future__ import annotations

from dataclasses import dataclass

from campaignops.domain import rules
from campaignops.domain.models import CampaignState, TeamMember
from campaignops.domain.rules import ConflictError, ValidationError
from campaignops.domain.stages import MemberRole
from campaignops.domain.transfer import reassign, require_active_target


@dataclass(frozen=True)
class RemovalCheck:
    member: TeamMember
    assigned_count: int

    @property
    def requires_reassignment(self) -> bool:
        return self.assigned_count > 0


@dataclass(frozen=True)
class RemovalResult:
    state: CampaignState
    member: TeamMember
    moved: tuple[str, ...]
    reassigned_to: TeamMember | None


def add_member(
    state: CampaignState, member_id: str, role: str, display_name: str | None = None
) -> tuple[CampaignState, TeamMember]:
    rules.require(member_id, "member_id")
    rules.validate_enum(role, [r.value for r in MemberRole], "role")
    taken = state.roster.resolve(member_id)
    if taken is not None:
        raise ConflictError(f"{member_id} is already on the team as {taken.member_id}.")
    if role == MemberRole.OWNER.value and state.roster.owner is not None:
        raise ValidationError("Campaign already has an owner; transfer ownership instead.")
    member = TeamMember(member_id=member_id, display_name=display_name or member_id, role=role)
    clash = state.roster.resolve(member.display_name)
    if clash is not None:
        raise ConflictError(f"Display name {member.display_name!r} is used by {clash.member_id}.")
    return state.with_roster(state.roster.with_member(member)), member


def check_removal(state: CampaignState, member_id: str) -> RemovalCheck:
    rules.require(member_id, "member_id")
    member = state.roster.get(member_id)
    if member is None:
        raise ConflictError(f"{member_id} is not on the team.")
    if member.role == MemberRole.OWNER.value:
        raise ValidationError("The campaign owner cannot be removed; transfer ownership first.")
    return RemovalCheck(member=member, assigned_count=len(state.assigned_to(member)))


def remove_member(
    state: CampaignState, member_id: str, reassign_to: str | None = None
) -> RemovalResult:
    check = check_removal(state, member_id)
    if not check.requires_reassignment:
        return RemovalResult(
            state=state.with_roster(state.roster.without(member_id)),
            member=check.member,
            moved=(),
            reassigned_to=None,
        )

    if not reassign_to:
        raise ValidationError(
            f"{member_id} has {check.assigned_count} prospects assigned; "
            "a reassignment target is required."
        )
    target = require_active_target(state, reassign_to, "reassign_to")
    if target.member_id == check.member.member_id:
        raise ValidationError("reassign_to must be a different team member.")

    moved = tuple(p.prospect_id for p in state.assigned_to(check.member))
    reassigned = reassign(state, moved, target)
    return RemovalResult(
        state=reassigned.with_roster(reassigned.roster.without(member_id)),
        member=check.member,
        moved=moved,
        reassigned_to=target,
    )


def transfer_ownership(state: CampaignState, member_id: str) -> tuple[CampaignState, TeamMember]:
    """Promote a member to owner and demote the previous owner to member."""
    rules.require(member_id, "member_id")
    member = state.roster.get(member_id)
    if member is None:
        raise ConflictError(f"{member_id} is not on the team.")
    if member.role == MemberRole.OWNER.value:
        return state, member
    roster = state.roster
    previous = roster.owner
    if previous is not None:
        roster = roster.with_role(previous.member_id, MemberRole.MEMBER.value)
    roster = roster.with_role(member_id, MemberRole.OWNER.value)
    return state.with_roster(roster), roster.get(member_id)

"""
Binding employees to rotation patterns.

All checks run before anything is added to the session, so a rejected bulk
request leaves no partial assignments behind.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shiftrota.core.errors import (
    RotationConflictError, RotationNotFoundError, RotationValidationError, field_error,
)
from shiftrota.models.rotation import RotationAssignment, RotationHistory
from shiftrota.models.team import Team, TeamMember
from shiftrota.models.user import User
from shiftrota.services.cycle_calculator import rotation_order_for_group
from shiftrota.services.pattern_model import ShiftType, pattern_from_model
from shiftrota.services.pattern_service import get_pattern

logger = logging.getLogger(__name__)


@dataclass
class AssignmentRequest:
    user_ids: list[uuid.UUID]
    shift_groups: dict[uuid.UUID, ShiftType]
    starts_at: date
    ends_at: date | None = None
    team_id: uuid.UUID | None = None
    default_shift_group: ShiftType | None = None
    rotation_orders: dict[uuid.UUID, int] = field(default_factory=dict)
    can_override: bool = True
    override_dates: dict[uuid.UUID, dict[date, ShiftType | None]] = field(default_factory=dict)


def ranges_overlap(
    a_start: date, a_end: date | None,
    b_start: date, b_end: date | None,
) -> bool:
    """Half-open ``[start, end)`` ranges, ``None`` meaning open-ended."""
    a_before_b_ends = b_end is None or a_start < b_end
    b_before_a_ends = a_end is None or b_start < a_end
    return a_before_b_ends and b_before_a_ends


def serialize_overrides(overrides: dict[date, ShiftType | None]) -> dict[str, str | None]:
    return {
        d.isoformat(): (ShiftType(v).value if v is not None else None)
        for d, v in sorted(overrides.items())
    }


async def get_assignment(
    assignment_id: uuid.UUID, tenant_id: uuid.UUID, db: AsyncSession
) -> RotationAssignment:
    result = await db.execute(
        select(RotationAssignment).where(
            RotationAssignment.id == assignment_id,
            RotationAssignment.tenant_id == tenant_id,
        )
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise RotationNotFoundError("ASSIGNMENT_NOT_FOUND", "Rotation assignment not found")
    return assignment


async def list_assignments(
    pattern_id: uuid.UUID,
    tenant_id: uuid.UUID,
    db: AsyncSession,
    active_only: bool = True,
) -> list[RotationAssignment]:
    conditions = [
        RotationAssignment.pattern_id == pattern_id,
        RotationAssignment.tenant_id == tenant_id,
    ]
    if active_only:
        conditions.append(RotationAssignment.is_active == True)
    result = await db.execute(
        select(RotationAssignment)
        .where(*conditions)
        .order_by(RotationAssignment.rotation_order, RotationAssignment.assigned_at)
    )
    return list(result.scalars().all())


async def _resolve_user_ids(
    req: AssignmentRequest, tenant_id: uuid.UUID, db: AsyncSession
) -> list[uuid.UUID]:
    if req.team_id is not None:
        team = await db.execute(
            select(Team.id).where(Team.id == req.team_id, Team.tenant_id == tenant_id)
        )
        if team.scalar_one_or_none() is None:
            raise RotationNotFoundError("TEAM_NOT_FOUND", "Team not found")

    user_ids = list(req.user_ids)
    if not user_ids and req.team_id is not None:
        members = await db.execute(
            select(TeamMember.user_id).where(
                TeamMember.team_id == req.team_id,
                TeamMember.tenant_id == tenant_id,
            )
        )
        user_ids = list(members.scalars().all())
    elif req.team_id is not None:
        members = await db.execute(
            select(TeamMember.user_id).where(
                TeamMember.team_id == req.team_id,
                TeamMember.tenant_id == tenant_id,
                TeamMember.user_id.in_(user_ids),
            )
        )
        in_team = set(members.scalars().all())
        outsiders = [uid for uid in user_ids if uid not in in_team]
        if outsiders:
            raise RotationValidationError(
                "USER_NOT_IN_TEAM",
                f"{len(outsiders)} user(s) are not members of the team",
                [field_error("user_ids", str(uid)) for uid in outsiders],
            )

    if not user_ids:
        raise RotationValidationError(
            "BAD_REQUEST",
            "No users to assign",
            [field_error("user_ids", "provide user_ids or a team with members")],
        )

    seen: set[uuid.UUID] = set()
    for uid in user_ids:
        if uid in seen:
            raise RotationConflictError(
                "DUPLICATE_ASSIGNMENT",
                f"User {uid} appears more than once in the request",
            )
        seen.add(uid)

    found = await db.execute(
        select(User.id).where(
            User.id.in_(user_ids),
            User.tenant_id == tenant_id,
            User.is_active == True,
        )
    )
    known = set(found.scalars().all())
    missing = [uid for uid in user_ids if uid not in known]
    if missing:
        raise RotationNotFoundError(
            "USER_NOT_FOUND",
            f"{len(missing)} user(s) not found in this tenant",
            [field_error("user_ids", str(uid)) for uid in missing],
        )
    return user_ids


async def assign_users(
    pattern_id: uuid.UUID,
    req: AssignmentRequest,
    tenant_id: uuid.UUID,
    assigned_by: uuid.UUID | None,
    db: AsyncSession,
) -> list[RotationAssignment]:
    """Create one assignment per user; all-or-nothing."""
    pattern = await get_pattern(pattern_id, tenant_id, db)
    definition = pattern_from_model(pattern)

    if req.ends_at is not None and req.ends_at <= req.starts_at:
        raise RotationValidationError(
            "INVALID_DATE_RANGE",
            "ends_at must be after starts_at",
            [field_error("ends_at", "must be after starts_at")],
        )
    if req.override_dates and not req.can_override:
        raise RotationValidationError(
            "OVERRIDE_NOT_ALLOWED",
            "override_dates require can_override=true",
            [field_error("override_dates", "not allowed when can_override is false")],
        )

    user_ids = await _resolve_user_ids(req, tenant_id, db)

    groups: dict[uuid.UUID, ShiftType] = {}
    for uid in user_ids:
        group = req.shift_groups.get(uid, req.default_shift_group)
        if group is None:
            raise RotationValidationError(
                "MISSING_SHIFT_GROUP",
                f"Shift group not specified for user {uid}",
                [field_error(f"shift_groups.{uid}", "required")],
            )
        groups[uid] = ShiftType(group)

    existing = await db.execute(
        select(RotationAssignment).where(
            RotationAssignment.pattern_id == pattern.id,
            RotationAssignment.tenant_id == tenant_id,
            RotationAssignment.user_id.in_(user_ids),
            RotationAssignment.is_active == True,
        )
    )
    for current in existing.scalars().all():
        if ranges_overlap(current.starts_at, current.ends_at, req.starts_at, req.ends_at):
            raise RotationConflictError(
                "DUPLICATE_ASSIGNMENT",
                f"User {current.user_id} already has an overlapping assignment on this pattern",
                [field_error("user_ids", str(current.user_id))],
            )

    created: list[RotationAssignment] = []
    for uid in user_ids:
        group = groups[uid]
        order = req.rotation_orders.get(uid)
        if order is None:
            order = rotation_order_for_group(definition, group)
        assignment = RotationAssignment(
            tenant_id=tenant_id,
            pattern_id=pattern.id,
            user_id=uid,
            team_id=req.team_id if req.team_id is not None else pattern.team_id,
            shift_group=group.value,
            rotation_order=order,
            can_override=req.can_override,
            override_dates=serialize_overrides(req.override_dates.get(uid, {})),
            is_active=True,
            starts_at=req.starts_at,
            ends_at=req.ends_at,
            assigned_by=assigned_by,
        )
        db.add(assignment)
        created.append(assignment)

    await db.commit()
    for a in created:
        await db.refresh(a)
    logger.info("Assigned %d user(s) to rotation pattern %s", len(created), pattern.id)
    return created


async def deactivate_assignment(
    assignment_id: uuid.UUID,
    effective_date: date,
    tenant_id: uuid.UUID,
    db: AsyncSession,
) -> RotationAssignment:
    """End an assignment at ``effective_date`` (exclusive); history stays as is."""
    assignment = await get_assignment(assignment_id, tenant_id, db)
    if effective_date < assignment.starts_at:
        raise RotationValidationError(
            "INVALID_DATE_RANGE",
            "effective_date must not be before the assignment start",
            [field_error("effective_date", "must be on or after starts_at")],
        )
    assignment.ends_at = effective_date
    if effective_date <= assignment.starts_at:
        assignment.is_active = False
    await db.commit()
    await db.refresh(assignment)
    return assignment


async def set_overrides(
    assignment_id: uuid.UUID,
    overrides: dict[date, ShiftType | None],
    tenant_id: uuid.UUID,
    db: AsyncSession,
) -> RotationAssignment:
    assignment = await get_assignment(assignment_id, tenant_id, db)
    if overrides and not assignment.can_override:
        raise RotationValidationError(
            "OVERRIDE_NOT_ALLOWED",
            "This assignment does not allow overrides",
            [field_error("override_dates", "not allowed when can_override is false")],
        )
    assignment.override_dates = serialize_overrides(overrides)
    await db.commit()
    await db.refresh(assignment)
    return assignment


async def delete_assignment(assignment_id: uuid.UUID, tenant_id: uuid.UUID, db: AsyncSession) -> None:
    """Remove an assignment; its history rows stay and lose the back reference."""
    assignment = await get_assignment(assignment_id, tenant_id, db)
    await db.execute(
        update(RotationHistory)
        .where(RotationHistory.assignment_id == assignment.id)
        .values(assignment_id=None)
    )
    await db.delete(assignment)
    await db.commit()

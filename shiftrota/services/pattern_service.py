import logging
import uuid
from datetime import date
from typing import Any

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from shiftrota.core.errors import RotationNotFoundError, RotationValidationError
from shiftrota.models.rotation import RotationAssignment, RotationHistory, RotationPattern
from shiftrota.models.team import Team
from shiftrota.services.pattern_model import build_pattern, dump_config

logger = logging.getLogger(__name__)

_UNSET = object()


async def get_pattern(pattern_id: uuid.UUID, tenant_id: uuid.UUID, db: AsyncSession) -> RotationPattern:
    result = await db.execute(
        select(RotationPattern).where(
            RotationPattern.id == pattern_id,
            RotationPattern.tenant_id == tenant_id,
        )
    )
    pattern = result.scalar_one_or_none()
    if pattern is None:
        raise RotationNotFoundError("PATTERN_NOT_FOUND", "Rotation pattern not found")
    return pattern


async def list_patterns(tenant_id: uuid.UUID, db: AsyncSession, active_only: bool = True) -> list[RotationPattern]:
    conditions = [RotationPattern.tenant_id == tenant_id]
    if active_only:
        conditions.append(RotationPattern.is_active == True)
    result = await db.execute(
        select(RotationPattern).where(*conditions).order_by(RotationPattern.created_at.desc())
    )
    return list(result.scalars().all())


async def _check_team(team_id: uuid.UUID | None, tenant_id: uuid.UUID, db: AsyncSession) -> None:
    if team_id is None:
        return
    result = await db.execute(select(Team.id).where(Team.id == team_id, Team.tenant_id == tenant_id))
    if result.scalar_one_or_none() is None:
        raise RotationNotFoundError("TEAM_NOT_FOUND", "Team not found")


async def create_pattern(
    *,
    tenant_id: uuid.UUID,
    created_by: uuid.UUID | None,
    name: str,
    pattern_type: str,
    pattern_config: dict[str, Any] | None,
    starts_at: date,
    cycle_length_weeks: int | None = None,
    ends_at: date | None = None,
    description: str | None = None,
    team_id: uuid.UUID | None = None,
    is_active: bool = True,
    db: AsyncSession,
) -> RotationPattern:
    # validation happens before anything touches the session
    definition = build_pattern(pattern_type, pattern_config, cycle_length_weeks, starts_at, ends_at)
    await _check_team(team_id, tenant_id, db)

    pattern = RotationPattern(
        tenant_id=tenant_id,
        team_id=team_id,
        name=name,
        description=description,
        pattern_type=definition.pattern_type.value,
        pattern_config=dump_config(definition.config),
        cycle_length_weeks=definition.cycle_length_weeks,
        starts_at=starts_at,
        ends_at=ends_at,
        is_active=is_active,
        created_by=created_by,
    )
    db.add(pattern)
    await db.commit()
    await db.refresh(pattern)
    logger.info("Created rotation pattern %s (%s) for tenant %s", pattern.id, pattern.pattern_type, tenant_id)
    return pattern


def _stored_if_null(changes: dict[str, Any], key: str, stored: Any) -> Any:
    value = changes.get(key)
    return stored if value is None else value


async def update_pattern(
    pattern_id: uuid.UUID,
    tenant_id: uuid.UUID,
    changes: dict[str, Any],
    db: AsyncSession,
) -> RotationPattern:
    """
    Partial update. Structural fields are merged with the stored values and the
    resulting pattern is re-validated as a whole.
    """
    pattern = await get_pattern(pattern_id, tenant_id, db)
    if not changes:
        raise RotationValidationError("BAD_REQUEST", "No fields to update")

    # not nullable: an explicit null keeps the stored value
    pattern_type = _stored_if_null(changes, "pattern_type", pattern.pattern_type)
    pattern_config = _stored_if_null(changes, "pattern_config", pattern.pattern_config)
    cycle = changes.get("cycle_length_weeks", _UNSET)
    if cycle is _UNSET:
        # a new type or template implies its own cycle length
        structural = changes.get("pattern_type") is not None or changes.get("pattern_config") is not None
        cycle = None if structural else pattern.cycle_length_weeks
    starts_at = _stored_if_null(changes, "starts_at", pattern.starts_at)
    ends_at = changes.get("ends_at", pattern.ends_at)

    definition = build_pattern(pattern_type, pattern_config, cycle, starts_at, ends_at)
    if "team_id" in changes:
        await _check_team(changes["team_id"], tenant_id, db)

    pattern.pattern_type = definition.pattern_type.value
    pattern.pattern_config = dump_config(definition.config)
    pattern.cycle_length_weeks = definition.cycle_length_weeks
    pattern.starts_at = starts_at
    pattern.ends_at = ends_at
    for field in ("description", "team_id"):
        if field in changes:
            setattr(pattern, field, changes[field])
    # not nullable: an explicit null leaves the stored value alone
    for field in ("name", "is_active"):
        if changes.get(field) is not None:
            setattr(pattern, field, changes[field])

    await db.commit()
    await db.refresh(pattern)
    return pattern


async def delete_pattern(pattern_id: uuid.UUID, tenant_id: uuid.UUID, db: AsyncSession) -> None:
    """Administrative deletion of a pattern together with its assignments and history."""
    pattern = await get_pattern(pattern_id, tenant_id, db)
    await db.execute(delete(RotationHistory).where(RotationHistory.pattern_id == pattern.id))
    await db.execute(delete(RotationAssignment).where(RotationAssignment.pattern_id == pattern.id))
    await db.delete(pattern)
    await db.commit()
    logger.info("Deleted rotation pattern %s for tenant %s", pattern_id, tenant_id)

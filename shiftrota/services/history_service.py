"""
Lifecycle of generated rotation occurrences.

generated ──► confirmed   (terminal)
          ├─► modified    (terminal, needs a reason and the new shift type)
          └─► cancelled   (terminal, needs a reason)
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from shiftrota.core.errors import (
    RotationConflictError, RotationNotFoundError, RotationValidationError, field_error,
)
from shiftrota.models.rotation import RotationHistory
from shiftrota.services.pattern_model import ShiftType

logger = logging.getLogger(__name__)


class HistoryStatus(str, Enum):
    GENERATED = "generated"
    CONFIRMED = "confirmed"
    MODIFIED = "modified"
    CANCELLED = "cancelled"


TRANSITIONS: dict[HistoryStatus, frozenset[HistoryStatus]] = {
    HistoryStatus.GENERATED: frozenset(
        {HistoryStatus.CONFIRMED, HistoryStatus.MODIFIED, HistoryStatus.CANCELLED}
    ),
    HistoryStatus.CONFIRMED: frozenset(),
    HistoryStatus.MODIFIED: frozenset(),
    HistoryStatus.CANCELLED: frozenset(),
}

REASON_REQUIRED = frozenset({HistoryStatus.MODIFIED, HistoryStatus.CANCELLED})


def is_terminal(status: str | HistoryStatus) -> bool:
    return not TRANSITIONS[HistoryStatus(status)]


def can_transition(current: str | HistoryStatus, target: str | HistoryStatus) -> bool:
    return HistoryStatus(target) in TRANSITIONS[HistoryStatus(current)]


def transition(
    entry: RotationHistory,
    target: HistoryStatus,
    *,
    actor_id: uuid.UUID | None = None,
    reason: str | None = None,
    shift_type: ShiftType | None = None,
) -> RotationHistory:
    """Apply one state change to ``entry`` in place (no commit)."""
    current = HistoryStatus(entry.status)
    if not can_transition(current, target):
        raise RotationConflictError(
            "INVALID_STATUS_TRANSITION",
            f"Cannot change rotation entry from '{current.value}' to '{target.value}'",
        )
    if target in REASON_REQUIRED and not (reason and reason.strip()):
        raise RotationValidationError(
            "MODIFIED_REASON_REQUIRED",
            f"A reason is required to mark an entry as {target.value}",
            [field_error("reason", "must not be empty")],
        )

    if target is HistoryStatus.CONFIRMED:
        entry.confirmed_at = datetime.now(timezone.utc)
        entry.confirmed_by = actor_id
    elif target is HistoryStatus.MODIFIED:
        if shift_type is None:
            raise RotationValidationError(
                "BAD_REQUEST",
                "A modified entry needs the new shift type",
                [field_error("shift_type", "required")],
            )
        entry.shift_type = ShiftType(shift_type).value
        entry.modified_reason = reason.strip()
    else:
        entry.modified_reason = reason.strip()

    entry.status = target.value
    return entry


def reset_to_generated(entry: RotationHistory) -> RotationHistory:
    """Administrative reset used by forced regeneration only."""
    entry.status = HistoryStatus.GENERATED.value
    entry.modified_reason = None
    entry.confirmed_at = None
    entry.confirmed_by = None
    return entry


# ── Persistence helpers ──────────────────────────────────────────────────────

@dataclass
class HistoryFilters:
    pattern_id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None
    team_id: uuid.UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: HistoryStatus | None = None


async def get_entry(entry_id: uuid.UUID, tenant_id: uuid.UUID, db: AsyncSession) -> RotationHistory:
    result = await db.execute(
        select(RotationHistory).where(
            RotationHistory.id == entry_id,
            RotationHistory.tenant_id == tenant_id,
        )
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise RotationNotFoundError("HISTORY_NOT_FOUND", "Rotation history entry not found")
    return entry


async def list_history(
    tenant_id: uuid.UUID,
    filters: HistoryFilters,
    db: AsyncSession,
) -> list[RotationHistory]:
    conditions = [RotationHistory.tenant_id == tenant_id]
    if filters.pattern_id:
        conditions.append(RotationHistory.pattern_id == filters.pattern_id)
    if filters.user_id:
        conditions.append(RotationHistory.user_id == filters.user_id)
    if filters.team_id:
        conditions.append(RotationHistory.team_id == filters.team_id)
    if filters.start_date:
        conditions.append(RotationHistory.shift_date >= filters.start_date)
    if filters.end_date:
        conditions.append(RotationHistory.shift_date <= filters.end_date)
    if filters.status:
        conditions.append(RotationHistory.status == filters.status.value)

    result = await db.execute(
        select(RotationHistory)
        .where(and_(*conditions))
        .order_by(RotationHistory.shift_date.desc(), RotationHistory.user_id)
    )
    return list(result.scalars().all())


async def delete_history(
    tenant_id: uuid.UUID,
    db: AsyncSession,
    *,
    pattern_id: uuid.UUID | None = None,
    team_id: uuid.UUID | None = None,
) -> int:
    """Explicit administrative deletion; at least one scope filter is required."""
    if pattern_id is None and team_id is None:
        raise RotationValidationError(
            "BAD_REQUEST",
            "pattern_id or team_id is required",
            [field_error("pattern_id", "pattern_id or team_id is required")],
        )
    conditions = [RotationHistory.tenant_id == tenant_id]
    if pattern_id is not None:
        conditions.append(RotationHistory.pattern_id == pattern_id)
    if team_id is not None:
        conditions.append(RotationHistory.team_id == team_id)

    result = await db.execute(delete(RotationHistory).where(and_(*conditions)))
    await db.commit()
    logger.info(
        "Deleted %d rotation history rows (tenant=%s pattern=%s team=%s)",
        result.rowcount, tenant_id, pattern_id, team_id,
    )
    return result.rowcount

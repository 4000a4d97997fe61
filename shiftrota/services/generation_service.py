"""
Preview and commit orchestration around the rotation generator.

Preview runs the generator and returns. Commit upserts every occurrence into
``rotation_history`` inside one transaction: either the whole range is
written or nothing is.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import select, and_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shiftrota.core.config import settings
from shiftrota.core.errors import (
    RotationConflictError, RotationStorageError, RotationValidationError, field_error,
)
from shiftrota.models.rotation import RotationAssignment, RotationHistory, RotationPattern
from shiftrota.models.shift import Shift
from shiftrota.services.history_service import HistoryStatus, is_terminal, reset_to_generated
from shiftrota.services.pattern_model import pattern_from_model
from shiftrota.services.pattern_service import get_pattern
from shiftrota.services.rotation_generator import Occurrence, generate_occurrences

logger = logging.getLogger(__name__)

INACTIVE_MANUAL_STATUSES = ("cancelled",)

_UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}


@dataclass
class GenerationResult:
    pattern_id: uuid.UUID
    start_date: date
    end_date: date
    preview: bool
    occurrences: list[Occurrence]
    history: list[RotationHistory] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    preserved: int = 0

    @property
    def collisions(self) -> list[Occurrence]:
        return [o for o in self.occurrences if o.collision]


def validate_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise RotationValidationError(
            "INVALID_DATE_RANGE",
            "start_date must not be after end_date",
            [field_error("end_date", "must be on or after start_date")],
        )
    days = (end_date - start_date).days + 1
    if days > settings.MAX_GENERATION_DAYS:
        raise RotationValidationError(
            "RANGE_TOO_LARGE",
            f"Date range spans {days} days, the maximum is {settings.MAX_GENERATION_DAYS}",
            [field_error("end_date", f"range must not exceed {settings.MAX_GENERATION_DAYS} days")],
        )


async def _load_assignments(
    pattern: RotationPattern, start_date: date, end_date: date, db: AsyncSession
) -> list[RotationAssignment]:
    result = await db.execute(
        select(RotationAssignment).where(
            RotationAssignment.pattern_id == pattern.id,
            RotationAssignment.tenant_id == pattern.tenant_id,
            RotationAssignment.is_active == True,
            RotationAssignment.starts_at <= end_date,
            (RotationAssignment.ends_at.is_(None)) | (RotationAssignment.ends_at > start_date),
        )
    )
    return list(result.scalars().all())


async def _load_collisions(
    tenant_id: uuid.UUID,
    user_ids: list[uuid.UUID],
    start_date: date,
    end_date: date,
    db: AsyncSession,
) -> set[tuple[uuid.UUID, date]]:
    """(user, day) pairs that already carry a manually planned shift."""
    if not user_ids:
        return set()
    result = await db.execute(
        select(Shift.user_id, Shift.date).where(
            and_(
                Shift.tenant_id == tenant_id,
                Shift.user_id.in_(user_ids),
                Shift.date >= start_date,
                Shift.date <= end_date,
                Shift.status.notin_(INACTIVE_MANUAL_STATUSES),
            )
        )
    )
    return {(row.user_id, row.date) for row in result.all()}


async def compute(
    pattern: RotationPattern,
    start_date: date,
    end_date: date,
    db: AsyncSession,
) -> list[Occurrence]:
    """Read-only part shared by preview and commit."""
    definition = pattern_from_model(pattern)
    assignments = await _load_assignments(pattern, start_date, end_date, db)
    collisions = await _load_collisions(
        pattern.tenant_id, sorted({a.user_id for a in assignments}, key=str), start_date, end_date, db
    )
    return generate_occurrences(definition, assignments, start_date, end_date, collisions)


def _upsert_statement(dialect_name: str):
    """
    INSERT .. ON CONFLICT on the occurrence key. A row a concurrent run wrote
    first is refreshed only while it is still ``generated``.
    """
    insert = _UPSERT_DIALECTS.get(dialect_name)
    if insert is None:
        return None
    stmt = insert(RotationHistory)
    return stmt.on_conflict_do_update(
        index_elements=["pattern_id", "user_id", "shift_date"],
        set_={
            "assignment_id": stmt.excluded.assignment_id,
            "team_id": stmt.excluded.team_id,
            "shift_type": stmt.excluded.shift_type,
            "week_number": stmt.excluded.week_number,
            "generated_at": stmt.excluded.generated_at,
            "updated_at": stmt.excluded.updated_at,
        },
        where=RotationHistory.status == HistoryStatus.GENERATED.value,
    )


def _new_row(pattern: RotationPattern, occ: Occurrence, now: datetime) -> dict:
    return {
        "id": uuid.uuid4(),
        "tenant_id": pattern.tenant_id,
        "pattern_id": pattern.id,
        "assignment_id": occ.assignment_id,
        "user_id": occ.user_id,
        "team_id": occ.team_id,
        "shift_date": occ.date,
        "shift_type": occ.shift_type.value,
        "week_number": occ.week_number,
        "status": HistoryStatus.GENERATED.value,
        "generated_at": now,
        "updated_at": now,
    }


async def _commit(
    pattern: RotationPattern,
    occurrences: list[Occurrence],
    result: GenerationResult,
    force: bool,
    db: AsyncSession,
) -> None:
    existing_rows = await db.execute(
        select(RotationHistory).where(
            RotationHistory.pattern_id == pattern.id,
            RotationHistory.tenant_id == pattern.tenant_id,
            RotationHistory.shift_date >= result.start_date,
            RotationHistory.shift_date <= result.end_date,
        )
    )
    existing = {(row.user_id, row.shift_date): row for row in existing_rows.scalars().all()}
    now = datetime.now(timezone.utc)

    # Rows no longer produced are left alone; only explicit deletion removes history.
    new_rows: list[dict] = []
    for occ in occurrences:
        row = existing.get(occ.key)
        if row is None:
            new_rows.append(_new_row(pattern, occ, now))
            result.created += 1
        elif is_terminal(row.status) and not force:
            result.preserved += 1
        else:
            same = (
                row.status == HistoryStatus.GENERATED.value
                and row.shift_type == occ.shift_type.value
                and row.week_number == occ.week_number
                and row.assignment_id == occ.assignment_id
            )
            if same:
                result.unchanged += 1
            else:
                reset_to_generated(row)
                row.assignment_id = occ.assignment_id
                row.team_id = occ.team_id
                row.shift_type = occ.shift_type.value
                row.week_number = occ.week_number
                row.generated_at = now
                result.updated += 1

    if new_rows:
        stmt = _upsert_statement(db.get_bind().dialect.name)
        if stmt is None:
            db.add_all(RotationHistory(**values) for values in new_rows)
        else:
            await db.flush()
            await db.execute(stmt, new_rows)

    await db.commit()

    stored = await db.execute(
        select(RotationHistory)
        .where(
            RotationHistory.pattern_id == pattern.id,
            RotationHistory.tenant_id == pattern.tenant_id,
            RotationHistory.shift_date >= result.start_date,
            RotationHistory.shift_date <= result.end_date,
        )
        .execution_options(populate_existing=True)
    )
    by_key = {(row.user_id, row.shift_date): row for row in stored.scalars().all()}
    result.history = [by_key[occ.key] for occ in occurrences if occ.key in by_key]


async def run_generation(
    pattern_id: uuid.UUID,
    tenant_id: uuid.UUID,
    start_date: date,
    end_date: date,
    db: AsyncSession,
    *,
    preview: bool = False,
    force: bool = False,
) -> GenerationResult:
    validate_range(start_date, end_date)
    pattern = await get_pattern(pattern_id, tenant_id, db)
    if not pattern.is_active:
        raise RotationConflictError("PATTERN_INACTIVE", "Rotation pattern is inactive")

    occurrences = await compute(pattern, start_date, end_date, db)
    result = GenerationResult(
        pattern_id=pattern.id,
        start_date=start_date,
        end_date=end_date,
        preview=preview,
        occurrences=occurrences,
    )

    if result.collisions:
        logger.warning(
            "Rotation pattern %s: %d occurrence(s) collide with manually planned shifts",
            pattern.id, len(result.collisions),
        )

    if not preview:
        try:
            await _commit(pattern, occurrences, result, force, db)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(
                "Rotation generation for pattern %s (%s..%s) rolled back", pattern_id, start_date, end_date
            )
            raise RotationStorageError()

    logger.info(
        "Rotation pattern %s %s..%s preview=%s: %d occurrence(s), created=%d updated=%d "
        "unchanged=%d preserved=%d",
        pattern.id, start_date, end_date, preview, len(occurrences),
        result.created, result.updated, result.unchanged, result.preserved,
    )
    return result

"""
Expands a pattern and its assignments into dated per-employee occurrences.

Pure computation: callers load the pattern, the assignments and the set of
manually planned (user, day) pairs and decide what to do with the result.
"""
from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator, Protocol

from shiftrota.services.cycle_calculator import cycle_week, resolve_shift
from shiftrota.services.pattern_model import PatternDefinition, ShiftType


class AssignmentLike(Protocol):
    id: uuid.UUID
    user_id: uuid.UUID
    team_id: uuid.UUID | None
    rotation_order: int
    can_override: bool
    override_dates: dict
    is_active: bool
    starts_at: date
    ends_at: date | None


@dataclass(frozen=True)
class Occurrence:
    user_id: uuid.UUID
    date: date
    shift_type: ShiftType
    week_number: int
    assignment_id: uuid.UUID | None = None
    team_id: uuid.UUID | None = None
    overridden: bool = False
    collision: bool = False

    @property
    def key(self) -> tuple[uuid.UUID, date]:
        return self.user_id, self.date


def iter_days(start: date, end: date) -> Iterator[date]:
    """All calendar days in ``[start, end]``."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def effective_range(
    pattern: PatternDefinition,
    assignment: AssignmentLike,
    start_date: date,
    end_date: date,
) -> tuple[date, date] | None:
    """Inclusive intersection of request, pattern and assignment ranges."""
    first = max(start_date, pattern.starts_at, assignment.starts_at)
    last = end_date
    # pattern/assignment ends are exclusive
    for ends_at in (pattern.ends_at, assignment.ends_at):
        if ends_at is not None:
            last = min(last, ends_at - timedelta(days=1))
    if first > last:
        return None
    return first, last


def _override_for(assignment: AssignmentLike, day: date) -> tuple[bool, ShiftType | None]:
    if not assignment.can_override or not assignment.override_dates:
        return False, None
    key = day.isoformat()
    if key not in assignment.override_dates:
        return False, None
    value = assignment.override_dates[key]
    return True, (ShiftType(value) if value else None)


def expand_assignment(
    pattern: PatternDefinition,
    assignment: AssignmentLike,
    start_date: date,
    end_date: date,
    collisions: set[tuple[uuid.UUID, date]] | None = None,
) -> list[Occurrence]:
    if not assignment.is_active:
        return []
    window = effective_range(pattern, assignment, start_date, end_date)
    if window is None:
        return []

    collisions = collisions or set()
    result: list[Occurrence] = []
    for day in iter_days(*window):
        shift = resolve_shift(pattern, assignment.rotation_order, day)
        overridden, override = _override_for(assignment, day)
        if overridden:
            shift = override
        if shift is None:
            continue
        result.append(
            Occurrence(
                user_id=assignment.user_id,
                date=day,
                shift_type=shift,
                week_number=cycle_week(pattern, assignment.rotation_order, day),
                assignment_id=assignment.id,
                team_id=assignment.team_id,
                overridden=overridden,
                collision=(assignment.user_id, day) in collisions,
            )
        )
    return result


def generate_occurrences(
    pattern: PatternDefinition,
    assignments: Iterable[AssignmentLike],
    start_date: date,
    end_date: date,
    collisions: set[tuple[uuid.UUID, date]] | None = None,
) -> list[Occurrence]:
    """All occurrences of the range, ordered by date then user id."""
    occurrences: list[Occurrence] = []
    for assignment in assignments:
        occurrences.extend(expand_assignment(pattern, assignment, start_date, end_date, collisions))
    occurrences.sort(key=lambda o: (o.date, str(o.user_id)))
    return occurrences


def group_by_date(occurrences: Iterable[Occurrence]) -> dict[date, list[Occurrence]]:
    calendar: dict[date, list[Occurrence]] = defaultdict(list)
    for occ in occurrences:
        calendar[occ.date].append(occ)
    return dict(calendar)

"""
Pure date → shift resolution for rotation patterns.

Nothing here touches the database; the same inputs always yield the same
label, which is what keeps regeneration idempotent.
"""
from datetime import date

from shiftrota.services.pattern_model import PatternDefinition, PatternType, ShiftType

SATURDAY = 5


def weeks_since_start(pattern: PatternDefinition, day: date) -> int:
    return (day - pattern.starts_at).days // 7


def cycle_week(pattern: PatternDefinition, rotation_order: int, day: date) -> int:
    """1-based week of the cycle that ``day`` falls in for the given phase offset."""
    return ((weeks_since_start(pattern, day) + rotation_order) % pattern.cycle_length_weeks) + 1


def _label_for_week(pattern: PatternDefinition, week: int, weekday: int) -> ShiftType | None:
    if pattern.pattern_type is PatternType.ALTERNATE_FS:
        return ShiftType.EARLY if week == pattern.config.week_type else ShiftType.LATE
    if pattern.pattern_type is PatternType.FIXED_N:
        return ShiftType.NIGHT
    entry = pattern.week_table[week - 1] if week <= len(pattern.week_table) else None
    if entry is None:
        return None
    return entry.shift_on(weekday)


def resolve_shift(pattern: PatternDefinition, rotation_order: int, day: date) -> ShiftType | None:
    """
    Shift label for one participant on one day, or None for "no shift".

    None is returned outside the pattern's validity range, on weekends when
    ``skipWeekends`` is set, for unmapped custom weeks/days, and for night
    slots when ``ignoreNightShift`` is set.
    """
    if not pattern.covers(day):
        return None
    weekday = day.weekday()
    if pattern.skip_weekends and weekday >= SATURDAY:
        return None

    label = _label_for_week(pattern, cycle_week(pattern, rotation_order, day), weekday)
    if label is ShiftType.NIGHT and pattern.ignore_night_shift:
        return None
    return label


def rotation_order_for_group(pattern: PatternDefinition, shift_group: ShiftType | str) -> int:
    """
    Smallest phase offset whose first cycle week puts a cohort on ``shift_group``.

    Lets callers seed cohorts by starting group alone. Falls back to 0 when no
    week of the cycle produces that group (e.g. an ``S`` cohort on ``fixed_n``).
    """
    group = ShiftType(shift_group)
    for offset in range(pattern.cycle_length_weeks):
        # at weeks_since_start == 0 the cohort sits in cycle week offset + 1
        if any(_label_for_week(pattern, offset + 1, wd) is group for wd in range(7)):
            return offset
    return 0

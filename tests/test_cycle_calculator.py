"""
Pure date → shift resolution. 2025-01-06 is a Monday, so cycle week 1 runs
Jan 6–12, week 2 Jan 13–19, week 3 (= week 1 again) Jan 20–26.
"""
from datetime import date, timedelta

import pytest

from shiftrota.services.cycle_calculator import (
    cycle_week, resolve_shift, rotation_order_for_group, weeks_since_start,
)
from shiftrota.services.pattern_model import ShiftType, build_pattern

START = date(2025, 1, 6)
F, S, N = ShiftType.EARLY, ShiftType.LATE, ShiftType.NIGHT


def _days(first: date, count: int):
    return [first + timedelta(days=i) for i in range(count)]


@pytest.fixture
def alternating():
    return build_pattern("alternate_fs", {"weekType": "F"}, 2, START)


# ── Cycle arithmetic ──────────────────────────────────────────────────────────

def test_weeks_since_start_floors(alternating):
    assert weeks_since_start(alternating, START) == 0
    assert weeks_since_start(alternating, date(2025, 1, 12)) == 0
    assert weeks_since_start(alternating, date(2025, 1, 13)) == 1
    # before the anchor: floor, not truncation
    assert weeks_since_start(alternating, date(2025, 1, 5)) == -1


def test_cycle_week_wraps(alternating):
    assert cycle_week(alternating, 0, START) == 1
    assert cycle_week(alternating, 0, date(2025, 1, 13)) == 2
    assert cycle_week(alternating, 0, date(2025, 1, 20)) == 1
    assert cycle_week(alternating, 1, START) == 2


# ── alternate_fs ──────────────────────────────────────────────────────────────

def test_alternate_fs_cycle(alternating):
    assert all(resolve_shift(alternating, 0, d) is F for d in _days(date(2025, 1, 6), 5))
    assert all(resolve_shift(alternating, 0, d) is S for d in _days(date(2025, 1, 13), 5))
    assert all(resolve_shift(alternating, 0, d) is F for d in _days(date(2025, 1, 20), 5))


def test_alternate_fs_week_type_late_first():
    p = build_pattern("alternate_fs", {"weekType": "S"}, 2, START)
    assert resolve_shift(p, 0, START) is S
    assert resolve_shift(p, 0, date(2025, 1, 13)) is F


def test_rotation_offset_never_shares_cycle_week(alternating):
    for d in _days(START, 120):
        assert cycle_week(alternating, 0, d) != cycle_week(alternating, 1, d)


def test_rotation_offset_on_longer_cycle():
    cfg = {"pattern": [{"week": 1, "shift": "F"}, {"week": 2, "shift": "S"}, {"week": 3, "shift": "N"}]}
    p = build_pattern("custom", cfg, None, START)
    for d in _days(START, 63):
        weeks = {cycle_week(p, order, d) for order in range(3)}
        assert len(weeks) == 3


def test_deterministic(alternating):
    days = _days(START, 60)
    first = [resolve_shift(alternating, 1, d) for d in days]
    second = [resolve_shift(alternating, 1, d) for d in days]
    assert first == second


# ── Weekends ──────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("ptype, cfg", [
    ("alternate_fs", {}),
    ("fixed_n", {}),
    ("custom", {"pattern": [{"week": 1, "days": ["F", "F", "F", "F", "F", "S", "S"]}]}),
])
def test_weekend_skip_for_every_type(ptype, cfg):
    p = build_pattern(ptype, cfg, None, START)
    for d in _days(START, 28):
        if d.weekday() >= 5:
            assert resolve_shift(p, 0, d) is None


def test_weekends_included_when_not_skipped():
    p = build_pattern("fixed_n", {"skipWeekends": False}, None, START)
    assert resolve_shift(p, 0, date(2025, 1, 11)) is N
    assert resolve_shift(p, 0, date(2025, 1, 12)) is N


# ── fixed_n / custom ──────────────────────────────────────────────────────────

def test_fixed_n_always_night():
    p = build_pattern("fixed_n", {}, None, START)
    assert {resolve_shift(p, order, d) for order in (0, 3) for d in _days(START, 5)} == {N}


def test_ignore_night_shift_drops_nights():
    p = build_pattern("fixed_n", {"ignoreNightShift": True}, None, START)
    assert all(resolve_shift(p, 0, d) is None for d in _days(START, 14))


def test_ignore_night_shift_keeps_other_labels():
    cfg = {"ignoreNightShift": True, "pattern": [{"week": 1, "shift": "F"}, {"week": 2, "shift": "N"}]}
    p = build_pattern("custom", cfg, None, START)
    assert resolve_shift(p, 0, START) is F
    assert resolve_shift(p, 0, date(2025, 1, 13)) is None


def test_custom_weekday_slots():
    cfg = {"pattern": [{"week": 1, "days": ["F", None, "S", "N", "F", None, None]}]}
    p = build_pattern("custom", cfg, None, START)
    assert [resolve_shift(p, 0, d) for d in _days(START, 5)] == [F, None, S, N, F]


def test_custom_week_without_shift_is_free():
    cfg = {"pattern": [{"week": 1, "shift": "F"}, {"week": 2}]}
    p = build_pattern("custom", cfg, None, START)
    assert resolve_shift(p, 0, date(2025, 1, 14)) is None


# ── Validity range ────────────────────────────────────────────────────────────

def test_outside_pattern_range_is_none():
    p = build_pattern("alternate_fs", {}, 2, START, date(2025, 1, 20))
    assert resolve_shift(p, 0, date(2025, 1, 3)) is None
    assert resolve_shift(p, 0, date(2025, 1, 17)) is S
    assert resolve_shift(p, 0, date(2025, 1, 20)) is None


# ── Shift group seeding ───────────────────────────────────────────────────────

def test_rotation_order_for_group(alternating):
    assert rotation_order_for_group(alternating, "F") == 0
    assert rotation_order_for_group(alternating, S) == 1


def test_rotation_order_for_group_with_late_first():
    p = build_pattern("alternate_fs", {"weekType": 2}, 2, START)
    assert rotation_order_for_group(p, "S") == 0
    assert rotation_order_for_group(p, "F") == 1


def test_rotation_order_for_unknown_group_falls_back():
    p = build_pattern("fixed_n", {}, None, START)
    assert rotation_order_for_group(p, "S") == 0


def test_seeded_group_starts_on_its_shift():
    cfg = {"pattern": [{"week": 1, "shift": "F"}, {"week": 2, "shift": "S"}, {"week": 3, "shift": "N"}]}
    p = build_pattern("custom", cfg, None, START)
    for group in (F, S, N):
        order = rotation_order_for_group(p, group)
        assert resolve_shift(p, order, START) is group

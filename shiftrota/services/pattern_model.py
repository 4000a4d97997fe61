"""
Typed rotation pattern definitions.

A pattern's ``pattern_config`` is a closed sum type: one pydantic model per
``pattern_type``, each accepting only its own fields. ``build_pattern`` turns
the raw API/DB payload into a validated :class:`PatternDefinition` or raises
:class:`RotationValidationError` with a stable error code.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from shiftrota.core.errors import RotationValidationError, field_error


class ShiftType(str, Enum):
    EARLY = "F"
    LATE = "S"
    NIGHT = "N"


class PatternType(str, Enum):
    ALTERNATE_FS = "alternate_fs"
    FIXED_N = "fixed_n"
    CUSTOM = "custom"


DAYS_PER_WEEK = 7
ALTERNATE_FS_CYCLE_WEEKS = 2


class _ConfigBase(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    skip_weekends: bool = Field(default=True, alias="skipWeekends")
    ignore_night_shift: bool = Field(default=False, alias="ignoreNightShift")


class AlternateFsConfig(_ConfigBase):
    pattern_type: Literal["alternate_fs"] = "alternate_fs"
    # cycle week (1 or 2) that works the early shift
    week_type: int = Field(default=1, alias="weekType")

    @field_validator("week_type", mode="before")
    @classmethod
    def _normalize_week_type(cls, v: Any) -> int:
        if isinstance(v, str):
            v = v.strip().upper()
            if v == ShiftType.EARLY.value:
                return 1
            if v == ShiftType.LATE.value:
                return 2
            if v in ("1", "2"):
                return int(v)
        elif isinstance(v, int) and not isinstance(v, bool) and v in (1, 2):
            return v
        raise ValueError("weekType must be 1, 2, 'F' or 'S'")


class FixedNConfig(_ConfigBase):
    pattern_type: Literal["fixed_n"] = "fixed_n"
    shift_type: Literal["N"] = Field(default="N", alias="shiftType")


class CustomWeek(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    week: int
    shift: ShiftType | None = None
    # Mon..Sun; a slot replaces ``shift`` for that weekday
    days: tuple[ShiftType | None, ...] | None = None

    @field_validator("days")
    @classmethod
    def _seven_days(cls, v):
        if v is not None and len(v) != DAYS_PER_WEEK:
            raise ValueError(f"days must have exactly {DAYS_PER_WEEK} entries (Mon..Sun)")
        return v

    def shift_on(self, weekday: int) -> ShiftType | None:
        if self.days is not None:
            return self.days[weekday]
        return self.shift


class CustomConfig(_ConfigBase):
    pattern_type: Literal["custom"] = "custom"
    pattern: tuple[CustomWeek, ...] = ()


PatternConfig = Annotated[
    Union[AlternateFsConfig, FixedNConfig, CustomConfig],
    Field(discriminator="pattern_type"),
]

_config_adapter: TypeAdapter[PatternConfig] = TypeAdapter(PatternConfig)


@dataclass(frozen=True)
class PatternDefinition:
    """Validated, immutable view of a pattern used by the cycle calculator."""

    pattern_type: PatternType
    config: AlternateFsConfig | FixedNConfig | CustomConfig
    cycle_length_weeks: int
    starts_at: date
    ends_at: date | None = None
    # index = cycle week - 1; only set for custom patterns
    week_table: tuple[CustomWeek | None, ...] = ()

    @property
    def skip_weekends(self) -> bool:
        return self.config.skip_weekends

    @property
    def ignore_night_shift(self) -> bool:
        return self.config.ignore_night_shift

    def covers(self, day: date) -> bool:
        if day < self.starts_at:
            return False
        return self.ends_at is None or day < self.ends_at


def dump_config(config: AlternateFsConfig | FixedNConfig | CustomConfig) -> dict:
    """Serialized form stored in ``rotation_patterns.pattern_config``."""
    return config.model_dump(mode="json", by_alias=True, exclude={"pattern_type"})


def _parse_config(pattern_type: PatternType, raw: Any):
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise RotationValidationError(
            "INVALID_PATTERN_CONFIG",
            "pattern_config must be an object",
            [field_error("pattern_config", "expected an object")],
        )
    try:
        return _config_adapter.validate_python({**raw, "pattern_type": pattern_type.value})
    except ValidationError as e:
        details = [
            field_error(
                ".".join(["pattern_config", *(str(p) for p in err["loc"][1:])]),
                err["msg"],
            )
            for err in e.errors()
        ]
        raise RotationValidationError(
            "INVALID_PATTERN_CONFIG",
            f"Invalid configuration for pattern type '{pattern_type.value}'",
            details,
        ) from e


def _custom_week_table(config: CustomConfig, cycle_length: int) -> tuple[CustomWeek | None, ...]:
    if len(config.pattern) != cycle_length:
        raise RotationValidationError(
            "INVALID_CYCLE_LENGTH",
            f"Custom pattern has {len(config.pattern)} week(s) but cycle_length_weeks is {cycle_length}",
            [field_error("cycle_length_weeks", f"must equal the number of pattern weeks ({len(config.pattern)})")],
        )

    table: list[CustomWeek | None] = [None] * cycle_length
    for idx, entry in enumerate(config.pattern):
        if not 1 <= entry.week <= cycle_length:
            raise RotationValidationError(
                "INVALID_WEEK_INDEX",
                f"Week index {entry.week} is outside 1..{cycle_length}",
                [field_error(f"pattern_config.pattern.{idx}.week", f"must be between 1 and {cycle_length}")],
            )
        if table[entry.week - 1] is not None:
            raise RotationValidationError(
                "INVALID_WEEK_INDEX",
                f"Week index {entry.week} is defined more than once",
                [field_error(f"pattern_config.pattern.{idx}.week", "duplicate week index")],
            )
        table[entry.week - 1] = entry
    return tuple(table)


def build_pattern(
    pattern_type: str,
    pattern_config: Any,
    cycle_length_weeks: int | None,
    starts_at: date,
    ends_at: date | None = None,
) -> PatternDefinition:
    """Validate and normalize a pattern definition."""
    try:
        ptype = PatternType(pattern_type)
    except ValueError:
        raise RotationValidationError(
            "UNSUPPORTED_PATTERN_TYPE",
            f"Unsupported pattern type '{pattern_type}'",
            [field_error("pattern_type", f"must be one of {', '.join(t.value for t in PatternType)}")],
        )

    config = _parse_config(ptype, pattern_config)

    if ptype is PatternType.ALTERNATE_FS:
        cycle = ALTERNATE_FS_CYCLE_WEEKS if cycle_length_weeks is None else cycle_length_weeks
        if cycle != ALTERNATE_FS_CYCLE_WEEKS:
            raise RotationValidationError(
                "INVALID_CYCLE_LENGTH",
                "alternate_fs patterns always have a 2-week cycle",
                [field_error("cycle_length_weeks", "must be 2 for alternate_fs")],
            )
    elif ptype is PatternType.FIXED_N:
        cycle = 1 if cycle_length_weeks is None else cycle_length_weeks
    else:
        cycle = len(config.pattern) if cycle_length_weeks is None else cycle_length_weeks

    if ptype is PatternType.CUSTOM and not config.pattern:
        raise RotationValidationError(
            "EMPTY_CUSTOM_PATTERN",
            "A custom pattern needs at least one week entry",
            [field_error("pattern_config.pattern", "must not be empty")],
        )

    if cycle < 1:
        raise RotationValidationError(
            "INVALID_CYCLE_LENGTH",
            "cycle_length_weeks must be at least 1",
            [field_error("cycle_length_weeks", "must be >= 1")],
        )

    week_table: tuple[CustomWeek | None, ...] = ()
    if ptype is PatternType.CUSTOM:
        week_table = _custom_week_table(config, cycle)

    if ends_at is not None and ends_at <= starts_at:
        raise RotationValidationError(
            "INVALID_DATE_RANGE",
            "ends_at must be after starts_at",
            [field_error("ends_at", "must be after starts_at")],
        )

    return PatternDefinition(
        pattern_type=ptype,
        config=config,
        cycle_length_weeks=cycle,
        starts_at=starts_at,
        ends_at=ends_at,
        week_table=week_table,
    )


def pattern_from_model(pattern) -> PatternDefinition:
    """Rebuild the definition of a stored ``RotationPattern`` row."""
    return build_pattern(
        pattern.pattern_type,
        pattern.pattern_config,
        pattern.cycle_length_weeks,
        pattern.starts_at,
        pattern.ends_at,
    )

import uuid
from datetime import date, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, NonNegativeInt

from shiftrota.services.pattern_model import ShiftType

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


# ── Patterns ─────────────────────────────────────────────────────────────────

class RotationPatternCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    team_id: uuid.UUID | None = None
    pattern_type: str                       # validated by the pattern model
    pattern_config: dict[str, Any] = Field(default_factory=dict)
    cycle_length_weeks: int | None = None
    starts_at: date
    ends_at: date | None = None             # exclusive
    is_active: bool = True


class RotationPatternUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    team_id: uuid.UUID | None = None
    pattern_type: str | None = None
    pattern_config: dict[str, Any] | None = None
    cycle_length_weeks: int | None = None
    starts_at: date | None = None
    ends_at: date | None = None
    is_active: bool | None = None


class RotationPatternOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    team_id: uuid.UUID | None
    name: str
    description: str | None
    pattern_type: str
    pattern_config: dict[str, Any]
    cycle_length_weeks: int
    starts_at: date
    ends_at: date | None
    is_active: bool
    created_by: uuid.UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Assignments ──────────────────────────────────────────────────────────────

class RotationAssignmentCreate(BaseModel):
    pattern_id: uuid.UUID | None = None     # must match the path if given
    user_ids: list[uuid.UUID] = Field(default_factory=list)
    team_id: uuid.UUID | None = None
    shift_groups: dict[uuid.UUID, ShiftType] = Field(default_factory=dict)
    default_shift_group: ShiftType | None = None
    rotation_orders: dict[uuid.UUID, NonNegativeInt] = Field(default_factory=dict)
    can_override: bool = True
    override_dates: dict[uuid.UUID, dict[date, ShiftType | None]] = Field(default_factory=dict)
    starts_at: date
    ends_at: date | None = None


class RotationAssignmentDeactivate(BaseModel):
    effective_date: date


class RotationOverridesUpdate(BaseModel):
    override_dates: dict[date, ShiftType | None]


class RotationAssignmentOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    pattern_id: uuid.UUID
    user_id: uuid.UUID
    team_id: uuid.UUID | None
    shift_group: str
    rotation_order: int
    can_override: bool
    override_dates: dict[str, str | None]
    is_active: bool
    starts_at: date
    ends_at: date | None
    assigned_by: uuid.UUID | None
    assigned_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Generation ───────────────────────────────────────────────────────────────

class RotationGenerateRequest(BaseModel):
    pattern_id: uuid.UUID | None = None
    start_date: date
    end_date: date
    preview: bool = False
    force: bool = False     # also regenerate confirmed/modified/cancelled rows


class GeneratedShiftOut(BaseModel):
    user_id: uuid.UUID
    date: date
    shift_type: str
    week_number: int
    overridden: bool = False
    collision: bool = False


class CalendarEntryOut(BaseModel):
    user_id: uuid.UUID
    shift_type: str
    collision: bool = False


class RotationHistoryOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    pattern_id: uuid.UUID
    assignment_id: uuid.UUID | None
    user_id: uuid.UUID
    team_id: uuid.UUID | None
    shift_date: date
    shift_type: str
    week_number: int
    status: str
    modified_reason: str | None
    generated_at: datetime
    confirmed_at: datetime | None
    confirmed_by: uuid.UUID | None

    model_config = {"from_attributes": True}


class RotationGenerateData(BaseModel):
    pattern_id: uuid.UUID
    start_date: date
    end_date: date
    preview: bool
    generated_shifts: list[GeneratedShiftOut] = Field(alias="generatedShifts")
    calendar: dict[date, list[CalendarEntryOut]]
    collisions: list[GeneratedShiftOut]
    history: list[RotationHistoryOut] | None = None
    created: int | None = None
    updated: int | None = None
    unchanged: int | None = None
    preserved: int | None = None

    model_config = {"populate_by_name": True}


# ── History ──────────────────────────────────────────────────────────────────

class RotationHistoryModify(BaseModel):
    shift_type: ShiftType
    reason: str = Field(min_length=1, max_length=500)


class RotationHistoryCancel(BaseModel):
    reason: str = Field(min_length=1, max_length=500)

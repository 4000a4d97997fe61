import uuid

from fastapi import APIRouter, Query, status

from shiftrota.api.deps import DB, AdminUser, CurrentUser
from shiftrota.core.errors import RotationValidationError, field_error
from shiftrota.schemas.rotation import (
    Envelope,
    RotationPatternCreate, RotationPatternUpdate, RotationPatternOut,
    RotationAssignmentCreate, RotationAssignmentDeactivate, RotationOverridesUpdate, RotationAssignmentOut,
    RotationGenerateRequest, RotationGenerateData, GeneratedShiftOut, CalendarEntryOut, RotationHistoryOut,
)
from shiftrota.services import assignment_service, pattern_service
from shiftrota.services.assignment_service import AssignmentRequest
from shiftrota.services.generation_service import GenerationResult, run_generation
from shiftrota.services.rotation_generator import Occurrence, group_by_date

router = APIRouter(prefix="/rotation-patterns", tags=["rotation"])
assignments_router = APIRouter(prefix="/rotation-assignments", tags=["rotation"])


def _check_path_id(path_id: uuid.UUID, body_id: uuid.UUID | None) -> None:
    if body_id is not None and body_id != path_id:
        raise RotationValidationError(
            "PATTERN_ID_MISMATCH",
            "pattern_id in the body does not match the URL",
            [field_error("pattern_id", "must match the pattern id in the path")],
        )


# ── Patterns ──────────────────────────────────────────────────────────────────

@router.get("", response_model=Envelope[dict[str, list[RotationPatternOut]]])
async def list_patterns(
    current_user: CurrentUser,
    db: DB,
    active_only: bool = Query(True),
):
    patterns = await pattern_service.list_patterns(current_user.tenant_id, db, active_only)
    return Envelope(data={"patterns": [RotationPatternOut.model_validate(p) for p in patterns]})


@router.get("/{pattern_id}", response_model=Envelope[dict[str, RotationPatternOut]])
async def get_pattern(pattern_id: uuid.UUID, current_user: CurrentUser, db: DB):
    pattern = await pattern_service.get_pattern(pattern_id, current_user.tenant_id, db)
    return Envelope(data={"pattern": RotationPatternOut.model_validate(pattern)})


@router.post(
    "",
    response_model=Envelope[dict[str, RotationPatternOut]],
    status_code=status.HTTP_201_CREATED,
)
async def create_pattern(payload: RotationPatternCreate, current_user: AdminUser, db: DB):
    pattern = await pattern_service.create_pattern(
        tenant_id=current_user.tenant_id,
        created_by=current_user.id,
        name=payload.name,
        description=payload.description,
        team_id=payload.team_id,
        pattern_type=payload.pattern_type,
        pattern_config=payload.pattern_config,
        cycle_length_weeks=payload.cycle_length_weeks,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        is_active=payload.is_active,
        db=db,
    )
    return Envelope(data={"pattern": RotationPatternOut.model_validate(pattern)})


@router.put("/{pattern_id}", response_model=Envelope[dict[str, RotationPatternOut]])
async def update_pattern(
    pattern_id: uuid.UUID, payload: RotationPatternUpdate, current_user: AdminUser, db: DB
):
    pattern = await pattern_service.update_pattern(
        pattern_id, current_user.tenant_id, payload.model_dump(exclude_unset=True), db
    )
    return Envelope(data={"pattern": RotationPatternOut.model_validate(pattern)})


@router.delete("/{pattern_id}", response_model=Envelope[dict[str, bool]])
async def delete_pattern(pattern_id: uuid.UUID, current_user: AdminUser, db: DB):
    await pattern_service.delete_pattern(pattern_id, current_user.tenant_id, db)
    return Envelope(data={"deleted": True})


# ── Assignments ───────────────────────────────────────────────────────────────

@router.get("/{pattern_id}/assignments", response_model=Envelope[dict[str, list[RotationAssignmentOut]]])
async def list_assignments(
    pattern_id: uuid.UUID,
    current_user: CurrentUser,
    db: DB,
    active_only: bool = Query(True),
):
    await pattern_service.get_pattern(pattern_id, current_user.tenant_id, db)
    assignments = await assignment_service.list_assignments(
        pattern_id, current_user.tenant_id, db, active_only
    )
    return Envelope(data={"assignments": [RotationAssignmentOut.model_validate(a) for a in assignments]})


@router.post(
    "/{pattern_id}/assignments",
    response_model=Envelope[dict[str, list[RotationAssignmentOut]]],
    status_code=status.HTTP_201_CREATED,
)
async def assign_users(
    pattern_id: uuid.UUID, payload: RotationAssignmentCreate, current_user: AdminUser, db: DB
):
    _check_path_id(pattern_id, payload.pattern_id)
    req = AssignmentRequest(
        user_ids=payload.user_ids,
        shift_groups=payload.shift_groups,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        team_id=payload.team_id,
        default_shift_group=payload.default_shift_group,
        rotation_orders=payload.rotation_orders,
        can_override=payload.can_override,
        override_dates=payload.override_dates,
    )
    assignments = await assignment_service.assign_users(
        pattern_id, req, current_user.tenant_id, current_user.id, db
    )
    return Envelope(data={"assignments": [RotationAssignmentOut.model_validate(a) for a in assignments]})


@assignments_router.post("/{assignment_id}/deactivate", response_model=Envelope[dict[str, RotationAssignmentOut]])
async def deactivate_assignment(
    assignment_id: uuid.UUID, payload: RotationAssignmentDeactivate, current_user: AdminUser, db: DB
):
    assignment = await assignment_service.deactivate_assignment(
        assignment_id, payload.effective_date, current_user.tenant_id, db
    )
    return Envelope(data={"assignment": RotationAssignmentOut.model_validate(assignment)})


@assignments_router.put("/{assignment_id}/overrides", response_model=Envelope[dict[str, RotationAssignmentOut]])
async def set_overrides(
    assignment_id: uuid.UUID, payload: RotationOverridesUpdate, current_user: AdminUser, db: DB
):
    assignment = await assignment_service.set_overrides(
        assignment_id, payload.override_dates, current_user.tenant_id, db
    )
    return Envelope(data={"assignment": RotationAssignmentOut.model_validate(assignment)})


@assignments_router.delete("/{assignment_id}", response_model=Envelope[dict[str, bool]])
async def delete_assignment(assignment_id: uuid.UUID, current_user: AdminUser, db: DB):
    await assignment_service.delete_assignment(assignment_id, current_user.tenant_id, db)
    return Envelope(data={"deleted": True})


# ── Generate / Preview ────────────────────────────────────────────────────────

def _shift_out(occ: Occurrence) -> GeneratedShiftOut:
    return GeneratedShiftOut(
        user_id=occ.user_id,
        date=occ.date,
        shift_type=occ.shift_type.value,
        week_number=occ.week_number,
        overridden=occ.overridden,
        collision=occ.collision,
    )


def _generate_data(result: GenerationResult) -> RotationGenerateData:
    data = RotationGenerateData(
        pattern_id=result.pattern_id,
        start_date=result.start_date,
        end_date=result.end_date,
        preview=result.preview,
        generated_shifts=[_shift_out(o) for o in result.occurrences],
        calendar={
            day: [
                CalendarEntryOut(user_id=o.user_id, shift_type=o.shift_type.value, collision=o.collision)
                for o in occs
            ]
            for day, occs in group_by_date(result.occurrences).items()
        },
        collisions=[_shift_out(o) for o in result.collisions],
    )
    if not result.preview:
        data.history = [RotationHistoryOut.model_validate(h) for h in result.history]
        data.created = result.created
        data.updated = result.updated
        data.unchanged = result.unchanged
        data.preserved = result.preserved
    return data


@router.post(
    "/{pattern_id}/generate",
    response_model=Envelope[RotationGenerateData],
)
async def generate(
    pattern_id: uuid.UUID, payload: RotationGenerateRequest, current_user: AdminUser, db: DB
):
    _check_path_id(pattern_id, payload.pattern_id)
    result = await run_generation(
        pattern_id,
        current_user.tenant_id,
        payload.start_date,
        payload.end_date,
        db,
        preview=payload.preview,
        force=payload.force,
    )
    return Envelope(data=_generate_data(result))

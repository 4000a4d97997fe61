import uuid
from datetime import date

from fastapi import APIRouter, HTTPException, Query, status

from shiftrota.api.deps import DB, PRIVILEGED_ROLES, AdminUser, CurrentUser, ManagerOrAdmin
from shiftrota.schemas.rotation import (
    Envelope, RotationHistoryOut, RotationHistoryModify, RotationHistoryCancel,
)
from shiftrota.services import history_service
from shiftrota.services.history_service import HistoryFilters, HistoryStatus

router = APIRouter(prefix="/rotation-history", tags=["rotation"])


@router.get("", response_model=Envelope[dict[str, list[RotationHistoryOut]]])
async def list_history(
    current_user: CurrentUser,
    db: DB,
    pattern_id: uuid.UUID | None = Query(None),
    user_id: uuid.UUID | None = Query(None),
    team_id: uuid.UUID | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    status_filter: HistoryStatus | None = Query(None, alias="status"),
):
    if current_user.role not in PRIVILEGED_ROLES:
        # Non-privileged: only own entries, whatever user_id the client sent
        user_id = current_user.id

    filters = HistoryFilters(
        pattern_id=pattern_id,
        user_id=user_id,
        team_id=team_id,
        start_date=start_date,
        end_date=end_date,
        status=status_filter,
    )
    entries = await history_service.list_history(current_user.tenant_id, filters, db)
    return Envelope(data={"history": [RotationHistoryOut.model_validate(e) for e in entries]})


@router.post("/{entry_id}/confirm", response_model=Envelope[dict[str, RotationHistoryOut]])
async def confirm_entry(entry_id: uuid.UUID, current_user: CurrentUser, db: DB):
    entry = await history_service.get_entry(entry_id, current_user.tenant_id, db)
    if current_user.role not in PRIVILEGED_ROLES and entry.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the assigned employee or a manager can confirm this shift",
        )
    history_service.transition(entry, HistoryStatus.CONFIRMED, actor_id=current_user.id)
    await db.commit()
    await db.refresh(entry)
    return Envelope(data={"entry": RotationHistoryOut.model_validate(entry)})


@router.post("/{entry_id}/modify", response_model=Envelope[dict[str, RotationHistoryOut]])
async def modify_entry(
    entry_id: uuid.UUID, payload: RotationHistoryModify, current_user: ManagerOrAdmin, db: DB
):
    entry = await history_service.get_entry(entry_id, current_user.tenant_id, db)
    history_service.transition(
        entry,
        HistoryStatus.MODIFIED,
        actor_id=current_user.id,
        reason=payload.reason,
        shift_type=payload.shift_type,
    )
    await db.commit()
    await db.refresh(entry)
    return Envelope(data={"entry": RotationHistoryOut.model_validate(entry)})


@router.post("/{entry_id}/cancel", response_model=Envelope[dict[str, RotationHistoryOut]])
async def cancel_entry(
    entry_id: uuid.UUID, payload: RotationHistoryCancel, current_user: ManagerOrAdmin, db: DB
):
    entry = await history_service.get_entry(entry_id, current_user.tenant_id, db)
    history_service.transition(
        entry, HistoryStatus.CANCELLED, actor_id=current_user.id, reason=payload.reason
    )
    await db.commit()
    await db.refresh(entry)
    return Envelope(data={"entry": RotationHistoryOut.model_validate(entry)})


@router.delete("", response_model=Envelope[dict[str, int]])
async def delete_history(
    current_user: AdminUser,
    db: DB,
    pattern_id: uuid.UUID | None = Query(None),
    team_id: uuid.UUID | None = Query(None),
):
    deleted = await history_service.delete_history(
        current_user.tenant_id, db, pattern_id=pattern_id, team_id=team_id
    )
    return Envelope(data={"deleted": deleted})

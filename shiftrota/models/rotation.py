import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    String, DateTime, Boolean, ForeignKey, Integer, Date, Text, JSON, UniqueConstraint, Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from shiftrota.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RotationPattern(Base):
    __tablename__ = "rotation_patterns"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    pattern_type: Mapped[str] = mapped_column(String(30), nullable=False)  # alternate_fs | fixed_n | custom
    pattern_config: Mapped[dict] = mapped_column(JSON, nullable=False)     # normalized, camelCase keys
    cycle_length_weeks: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    starts_at: Mapped[date] = mapped_column(Date, nullable=False)
    ends_at: Mapped[date | None] = mapped_column(Date, nullable=True)   # exclusive
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class RotationAssignment(Base):
    __tablename__ = "rotation_assignments"
    __table_args__ = (
        Index("ix_rotation_assignments_pattern_user", "pattern_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    pattern_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("rotation_patterns.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )

    shift_group: Mapped[str] = mapped_column(String(1), nullable=False)  # F | S | N
    rotation_order: Mapped[int] = mapped_column(Integer, default=0)

    can_override: Mapped[bool] = mapped_column(Boolean, default=True)
    override_dates: Mapped[dict] = mapped_column(JSON, default=dict)  # {"2025-01-08": "S" | null}

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    starts_at: Mapped[date] = mapped_column(Date, nullable=False)
    ends_at: Mapped[date | None] = mapped_column(Date, nullable=True)  # exclusive

    assigned_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class RotationHistory(Base):
    __tablename__ = "rotation_history"
    __table_args__ = (
        UniqueConstraint("pattern_id", "user_id", "shift_date", name="uq_rotation_history_occurrence"),
        Index("ix_rotation_history_tenant_date", "tenant_id", "shift_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    pattern_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("rotation_patterns.id", ondelete="CASCADE"), nullable=False
    )
    assignment_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("rotation_assignments.id", ondelete="SET NULL"), nullable=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )

    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    shift_type: Mapped[str] = mapped_column(String(1), nullable=False)  # F | S | N
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)   # 1-based cycle week

    status: Mapped[str] = mapped_column(
        String(20), default="generated"
    )  # generated | confirmed | modified | cancelled
    modified_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

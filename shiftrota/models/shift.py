import uuid
from datetime import date, datetime, time, timezone

from sqlalchemy import String, DateTime, ForeignKey, Time, Date, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from shiftrota.core.database import Base


class Shift(Base):
    """
    Manually planned shift, owned by the scheduling feature.

    The rotation engine only reads this table to flag collisions; it never
    writes or deletes rows here.
    """

    __tablename__ = "shifts"
    __table_args__ = (Index("ix_shifts_user_date", "user_id", "date"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50), default="planned"
    )  # planned | confirmed | completed | cancelled

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

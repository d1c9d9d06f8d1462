from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.studiorent.models import Base
from app.studiorent.utils import utcnow


class Instrument(Base):
    __tablename__ = "instruments"
    __table_args__ = (
        Index("idx_instruments_status", "inst_status"),
        Index("idx_instruments_name", "inst_name"),
    )

    inst_id: Mapped[str] = mapped_column(String(32), primary_key=True)  # e.g. "GTR-001"
    inst_name: Mapped[str] = mapped_column(String(255), nullable=False)
    inst_type: Mapped[str] = mapped_column(String(128), nullable=False)  # Guitar, Keyboard, Drum...
    inst_rentalprice: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))  # per started hour
    inst_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Ready")  # Ready, InUse, Maintenance, Retired

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (Index("idx_rooms_name", "room_name"),)

    room_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    room_name: Mapped[str] = mapped_column(String(255), nullable=False)
    room_size: Mapped[str] = mapped_column(String(64), nullable=False)  # "Small", "Large", "4x5m"...
    room_rentrate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))  # per started hour

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

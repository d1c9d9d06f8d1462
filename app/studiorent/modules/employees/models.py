from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.studiorent.models import Base
from app.studiorent.utils import utcnow


class Employee(Base):
    __tablename__ = "employees"

    empl_nik: Mapped[str] = mapped_column(String(32), primary_key=True)  # national ID number
    empl_name: Mapped[str] = mapped_column(String(255), nullable=False)
    empl_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    empl_gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    empl_telpnum: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Optional login account; credentials live on users, never here
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

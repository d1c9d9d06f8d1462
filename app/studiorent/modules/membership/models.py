from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.studiorent.models import Base
from app.studiorent.utils import utcnow

if TYPE_CHECKING:
    from app.studiorent.modules.students.models import Student


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (CheckConstraint("mmbr_points >= 0", name="ck_membership_points_nonnegative"),)

    mmbr_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.stdn_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,  # one membership per student
    )
    mmbr_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mmbr_creationdate: Mapped[date] = mapped_column(Date, nullable=False)
    mmbr_expirydate: Mapped[date] = mapped_column(Date, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    student: Mapped["Student"] = relationship("Student", back_populates="membership", lazy="selectin")

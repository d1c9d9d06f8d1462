from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.studiorent.models import Base
from app.studiorent.utils import utcnow

if TYPE_CHECKING:
    from app.studiorent.models import User
    from app.studiorent.modules.membership.models import Membership


class Student(Base):
    __tablename__ = "students"

    stdn_id: Mapped[str] = mapped_column(String(10), primary_key=True)  # 8-10 digits
    stdn_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stdn_telpnum: Mapped[str] = mapped_column(String(32), nullable=False)

    # Auth account; NULL for students registered at the counter
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    user: Mapped["User | None"] = relationship("User", lazy="selectin")
    membership: Mapped["Membership | None"] = relationship(
        "Membership",
        back_populates="student",
        uselist=False,
        lazy="selectin",
    )

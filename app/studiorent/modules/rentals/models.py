from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.studiorent.models import Base
from app.studiorent.utils import utcnow

if TYPE_CHECKING:
    from app.studiorent.modules.catalog.models import Instrument, Room
    from app.studiorent.modules.employees.models import Employee
    from app.studiorent.modules.students.models import Student


class RentalTransaction(Base):
    __tablename__ = "rental_transactions"
    __table_args__ = (
        CheckConstraint("trsc_rentstart < trsc_rentend", name="ck_rental_valid_period"),
        Index("idx_rental_room_period", "room_id", "trsc_rentstart", "trsc_rentend"),
        Index("idx_rental_student", "student_id"),
    )

    trsc_id: Mapped[str] = mapped_column(String(40), primary_key=True)  # "TRX<ms><rand>"

    trsc_transactiondate: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    trsc_paymentmethod: Mapped[str] = mapped_column(String(32), nullable=False, default="Card")

    # Stored as naive UTC
    trsc_rentstart: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    trsc_rentend: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    trsc_returndate: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    trsc_totalprice: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    trsc_latefee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="Unpaid")  # Unpaid, Paid

    student_id: Mapped[str] = mapped_column(ForeignKey("students.stdn_id", ondelete="RESTRICT"), nullable=False)
    employee_nik: Mapped[str] = mapped_column(ForeignKey("employees.empl_nik", ondelete="RESTRICT"), nullable=False)
    room_id: Mapped[str | None] = mapped_column(ForeignKey("rooms.room_id", ondelete="RESTRICT"), nullable=True)

    student: Mapped["Student"] = relationship("Student", lazy="selectin")
    employee: Mapped["Employee"] = relationship("Employee", lazy="selectin")
    room: Mapped["Room | None"] = relationship("Room", lazy="selectin")
    instrument_links: Mapped[list["TransactionInstrument"]] = relationship(
        "TransactionInstrument",
        back_populates="transaction",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def instruments(self) -> list["Instrument"]:
        return [link.instrument for link in self.instrument_links]


class TransactionInstrument(Base):
    __tablename__ = "transaction_instruments"

    transaction_id: Mapped[str] = mapped_column(
        ForeignKey("rental_transactions.trsc_id", ondelete="CASCADE"),
        primary_key=True,
    )
    instrument_id: Mapped[str] = mapped_column(
        ForeignKey("instruments.inst_id", ondelete="RESTRICT"),
        primary_key=True,
    )

    transaction: Mapped["RentalTransaction"] = relationship("RentalTransaction", back_populates="instrument_links")
    instrument: Mapped["Instrument"] = relationship("Instrument", lazy="selectin")

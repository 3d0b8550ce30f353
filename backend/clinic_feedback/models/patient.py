from __future__ import annotations

import enum

from sqlalchemy import Enum, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_feedback.models.base import Base, TimestampMixin, enum_values
from clinic_feedback.models.branch import Branch


class PatientStatus(str, enum.Enum):
    new = "NEW"
    regular = "REGULAR"


class Patient(Base, TimestampMixin):
    __tablename__ = "patients"
    __table_args__ = (
        # At most one REGULAR identity per canonical phone number.
        Index(
            "uq_patients_regular_phone",
            "phone_number",
            unique=True,
            postgresql_where=text("status = 'REGULAR'"),
            sqlite_where=text("status = 'REGULAR'"),
        ),
        Index("ix_patients_phone_status", "phone_number", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    branch: Mapped[Branch | None] = mapped_column(
        Enum(Branch, name="branch_enum", values_callable=enum_values), nullable=True
    )
    status: Mapped[PatientStatus] = mapped_column(
        Enum(PatientStatus, name="patient_status", values_callable=enum_values),
        default=PatientStatus.new,
        nullable=False,
    )
    checkout_date: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Deleting a patient nulls these back-references; history rows are kept.
    call_statuses = relationship("CallStatus", back_populates="patient")
    ratings = relationship("Rating", back_populates="patient")
    feedbacks = relationship("Feedback", back_populates="patient")

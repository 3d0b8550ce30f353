from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_feedback.models.base import Base, enum_values
from clinic_feedback.models.branch import Branch


class CallOutcome(str, enum.Enum):
    no_answer = "no_answer"
    wrong_number = "wrong_number"
    no_connection = "no_connection"
    answered = "answered"


class CallStatus(Base):
    __tablename__ = "call_statuses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    status: Mapped[CallOutcome] = mapped_column(
        Enum(CallOutcome, name="call_outcome", values_callable=enum_values), nullable=False
    )
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    branch: Mapped[Branch] = mapped_column(
        Enum(Branch, name="branch_enum", values_callable=enum_values), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    patient_id: Mapped[int | None] = mapped_column(
        ForeignKey("patients.id", ondelete="SET NULL"), nullable=True, index=True
    )

    user = relationship("User", back_populates="call_statuses")
    patient = relationship("Patient", back_populates="call_statuses")

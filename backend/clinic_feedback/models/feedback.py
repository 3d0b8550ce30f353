from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_feedback.models.base import Base, enum_values
from clinic_feedback.models.branch import Branch


class FeedbackCategory(str, enum.Enum):
    complaint = "complaint"
    suggestion = "suggestion"


# Mirrors the name of the first column on the complaints board.
FEEDBACK_STATUS_INCOMING = "Поступившие жалобы"


class Feedback(Base):
    __tablename__ = "feedbacks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    category: Mapped[FeedbackCategory] = mapped_column(
        Enum(FeedbackCategory, name="feedback_category", values_callable=enum_values),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(120), default=FEEDBACK_STATUS_INCOMING, nullable=False, index=True
    )
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    branch: Mapped[Branch | None] = mapped_column(
        Enum(Branch, name="branch_enum", values_callable=enum_values), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    patient_id: Mapped[int | None] = mapped_column(
        ForeignKey("patients.id", ondelete="SET NULL"), nullable=True, index=True
    )

    user = relationship("User", back_populates="feedbacks")
    patient = relationship("Patient", back_populates="feedbacks")
    rating = relationship("Rating", back_populates="feedback", uselist=False)
    messages = relationship("TextMessage", back_populates="feedback", order_by="TextMessage.id")
    voices = relationship("VoiceMessage", back_populates="feedback", order_by="VoiceMessage.id")
    board_cards = relationship("BoardCard", back_populates="feedback")

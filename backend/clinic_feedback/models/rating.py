from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_feedback.models.base import Base, enum_values
from clinic_feedback.models.branch import Branch


class RatingCategory(str, enum.Enum):
    doctors = "doctors"
    nurses = "nurses"
    cleaning = "cleaning"
    kitchen = "kitchen"
    reception = "reception"


RATING_SCORES = (2, 3, 4, 5)
MAX_RATING_SCORE = max(RATING_SCORES)


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        CheckConstraint("score BETWEEN 2 AND 5", name="ck_ratings_score_range"),
        Index("ix_ratings_category_branch", "category", "branch"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    category: Mapped[RatingCategory] = mapped_column(
        Enum(RatingCategory, name="rating_category", values_callable=enum_values), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    branch: Mapped[Branch] = mapped_column(
        Enum(Branch, name="branch_enum", values_callable=enum_values), nullable=False
    )
    feedback_id: Mapped[int | None] = mapped_column(
        ForeignKey("feedbacks.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    patient_id: Mapped[int | None] = mapped_column(
        ForeignKey("patients.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    feedback = relationship("Feedback", back_populates="rating")
    user = relationship("User", back_populates="ratings")
    patient = relationship("Patient", back_populates="ratings")

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_feedback.models.base import Base


class BoardCard(Base):
    __tablename__ = "board_cards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    card_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    list_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    board_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    feedback_id: Mapped[int | None] = mapped_column(
        ForeignKey("feedbacks.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    feedback = relationship("Feedback", back_populates="board_cards")

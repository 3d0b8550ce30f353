from __future__ import annotations

import enum

from sqlalchemy import Enum, ForeignKey, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_feedback.models.base import Base, TimestampMixin, enum_values


class MessageStatus(str, enum.Enum):
    temporary = "temporary"
    saved = "saved"


class TextMessage(Base, TimestampMixin):
    __tablename__ = "text_messages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sender: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[MessageStatus] = mapped_column(
        Enum(MessageStatus, name="message_status", values_callable=enum_values),
        default=MessageStatus.temporary,
        nullable=False,
        index=True,
    )
    feedback_id: Mapped[int | None] = mapped_column(
        ForeignKey("feedbacks.id", ondelete="CASCADE"), nullable=True
    )

    feedback = relationship("Feedback", back_populates="messages")


class VoiceMessage(Base, TimestampMixin):
    __tablename__ = "voice_messages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sender: Mapped[str] = mapped_column(String(20), nullable=False)
    media_id: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    message_type: Mapped[str] = mapped_column(String(20), default="audio", nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(60), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_data: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    status: Mapped[MessageStatus] = mapped_column(
        Enum(MessageStatus, name="message_status", values_callable=enum_values),
        default=MessageStatus.temporary,
        nullable=False,
        index=True,
    )
    feedback_id: Mapped[int | None] = mapped_column(
        ForeignKey("feedbacks.id", ondelete="CASCADE"), nullable=True
    )

    feedback = relationship("Feedback", back_populates="voices")

    def stream_url(self, api_base_url: str) -> str:
        return f"{api_base_url.rstrip('/')}/messages/voice/{self.id}/stream"

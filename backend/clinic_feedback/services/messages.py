from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import NotFound
from clinic_feedback.models.feedback import Feedback
from clinic_feedback.models.message import MessageStatus, TextMessage, VoiceMessage


def store_text_message(db: Session, *, sender: str, body: str) -> TextMessage:
    message = TextMessage(sender=sender, message=body, status=MessageStatus.temporary)
    db.add(message)
    db.flush()
    return message


def store_voice_message(
    db: Session,
    *,
    sender: str,
    media_id: str | None,
    payload: bytes | None,
    mime_type: str | None,
    duration: int | None = None,
) -> VoiceMessage:
    voice = VoiceMessage(
        sender=sender,
        media_id=media_id,
        message_type="audio",
        mime_type=mime_type,
        file_size=len(payload) if payload is not None else None,
        duration=duration,
        file_data=payload,
        status=MessageStatus.temporary,
    )
    db.add(voice)
    db.flush()
    return voice


def list_temporary_texts(db: Session) -> list[TextMessage]:
    return list(
        db.scalars(
            select(TextMessage)
            .where(TextMessage.status == MessageStatus.temporary)
            .order_by(TextMessage.created_at.desc(), TextMessage.id.desc())
        )
    )


def list_temporary_voices(db: Session) -> list[VoiceMessage]:
    return list(
        db.scalars(
            select(VoiceMessage)
            .where(VoiceMessage.status == MessageStatus.temporary)
            .order_by(VoiceMessage.created_at.desc(), VoiceMessage.id.desc())
        )
    )


def get_voice(db: Session, voice_ref: str) -> VoiceMessage:
    voice = None
    if voice_ref.isdigit():
        voice = db.get(VoiceMessage, int(voice_ref))
    if voice is None:
        voice = db.scalar(select(VoiceMessage).where(VoiceMessage.media_id == voice_ref))
    if voice is None:
        raise NotFound(f"Voice message {voice_ref} not found")
    return voice


def claim_messages(
    db: Session,
    feedback: Feedback,
    *,
    text_ids: list[int],
    voice_ids: list[int],
) -> tuple[list[TextMessage], list[VoiceMessage]]:
    """Attach still-temporary messages to ``feedback`` and mark them saved.

    Ids that are unknown or already claimed are ignored. Rows are locked so a
    message cannot be claimed by two feedbacks at once.
    """
    texts: list[TextMessage] = []
    voices: list[VoiceMessage] = []
    if text_ids:
        texts = list(
            db.scalars(
                select(TextMessage)
                .where(TextMessage.id.in_(text_ids), TextMessage.status == MessageStatus.temporary)
                .order_by(TextMessage.id)
                .with_for_update()
            )
        )
    if voice_ids:
        voices = list(
            db.scalars(
                select(VoiceMessage)
                .where(VoiceMessage.id.in_(voice_ids), VoiceMessage.status == MessageStatus.temporary)
                .order_by(VoiceMessage.id)
                .with_for_update()
            )
        )
    for text in texts:
        text.status = MessageStatus.saved
        text.feedback = feedback
    for voice in voices:
        voice.status = MessageStatus.saved
        voice.feedback = feedback
    db.flush()
    return texts, voices


def delete_text(db: Session, message_id: int) -> None:
    message = db.get(TextMessage, message_id)
    if message is None:
        raise NotFound(f"Text message {message_id} not found")
    db.delete(message)
    db.flush()


def delete_voice(db: Session, voice_id: int) -> None:
    voice = db.get(VoiceMessage, voice_id)
    if voice is None:
        raise NotFound(f"Voice message {voice_id} not found")
    db.delete(voice)
    db.flush()


def delete_temporary_texts(db: Session) -> int:
    result = db.execute(delete(TextMessage).where(TextMessage.status == MessageStatus.temporary))
    return result.rowcount or 0


def delete_temporary_voices(db: Session) -> int:
    result = db.execute(delete(VoiceMessage).where(VoiceMessage.status == MessageStatus.temporary))
    return result.rowcount or 0

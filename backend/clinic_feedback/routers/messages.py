from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import IntegrationUnavailable, NotFound
from clinic_feedback.core.settings import settings
from clinic_feedback.db.session import atomic, get_db
from clinic_feedback.deps import get_current_user, get_messaging_client, require_admin
from clinic_feedback.models.patient import PatientStatus
from clinic_feedback.models.user import User
from clinic_feedback.schemas.message import (
    BroadcastOut,
    DeletedCount,
    SendTextRequest,
    SendTextResult,
    TextMessageOut,
    VoiceMessageOut,
)
from clinic_feedback.services import messages as message_service
from clinic_feedback.services.messaging import MessagingClient, send_welcome_messages
from clinic_feedback.services.patients import list_patients
from clinic_feedback.services.phone import normalize_phone

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/text", response_model=list[TextMessageOut])
def list_text_messages(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return message_service.list_temporary_texts(db)


@router.get("/voice", response_model=list[VoiceMessageOut])
def list_voice_messages(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return [
        VoiceMessageOut.model_validate(voice).model_copy(
            update={"url": voice.stream_url(settings.api_base_url)}
        )
        for voice in message_service.list_temporary_voices(db)
    ]


# Linked from board cards, so it is reachable without a bearer token.
@router.get("/voice/{voice_ref}/stream")
def stream_voice_message(voice_ref: str, db: Session = Depends(get_db)):
    voice = message_service.get_voice(db, voice_ref)
    if not voice.file_data:
        raise NotFound(f"Voice message {voice_ref} has no audio data")
    return Response(
        content=voice.file_data,
        media_type=voice.mime_type or "audio/ogg",
        headers={"Content-Disposition": f'inline; filename="voice-{voice.id}.ogg"'},
    )


@router.delete("/text/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_text_message(
    message_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    with atomic(db):
        message_service.delete_text(db, message_id)
    return None


@router.delete("/voice/{voice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_voice_message(
    voice_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    with atomic(db):
        message_service.delete_voice(db, voice_id)
    return None


@router.delete("/text", response_model=DeletedCount)
def delete_temporary_texts(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    with atomic(db):
        deleted = message_service.delete_temporary_texts(db)
    return DeletedCount(deleted=deleted)


@router.delete("/voice", response_model=DeletedCount)
def delete_temporary_voices(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    with atomic(db):
        deleted = message_service.delete_temporary_voices(db)
    return DeletedCount(deleted=deleted)


@router.post("/send-text", response_model=SendTextResult)
def send_text_message(
    payload: SendTextRequest,
    client: MessagingClient = Depends(get_messaging_client),
    _user: User = Depends(get_current_user),
):
    if not client.config.enabled:
        raise IntegrationUnavailable("Messaging is not configured")
    phone = normalize_phone(payload.to)
    return SendTextResult(to=phone, sent=client.send_text(phone.lstrip("+"), payload.text))


@router.post("/welcome", response_model=BroadcastOut)
def send_welcome_broadcast(
    db: Session = Depends(get_db),
    client: MessagingClient = Depends(get_messaging_client),
    _admin: User = Depends(require_admin),
):
    patients = [patient for patient, _count in list_patients(db, status=PatientStatus.new)]
    return send_welcome_messages(client, patients)

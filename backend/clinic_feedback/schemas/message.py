from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from clinic_feedback.models.message import MessageStatus


class TextMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender: str
    message: str
    status: MessageStatus
    feedback_id: Optional[int] = None
    created_at: datetime


class VoiceMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender: str
    media_id: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[int] = None
    status: MessageStatus
    feedback_id: Optional[int] = None
    created_at: datetime
    url: Optional[str] = None


class DeletedCount(BaseModel):
    deleted: int


class SendTextRequest(BaseModel):
    to: str
    text: str = Field(min_length=1, max_length=4096)


class SendTextResult(BaseModel):
    to: str
    sent: bool


class BroadcastOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    processed: int
    failed: list[str] = []

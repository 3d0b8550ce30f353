from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from clinic_feedback.models.branch import Branch
from clinic_feedback.models.feedback import FeedbackCategory
from clinic_feedback.services.feedbacks import FeedbackDraft


class FeedbackCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(default="", max_length=120)
    category: FeedbackCategory
    phone_number: str
    branch: Optional[str] = None
    text_ids: list[int] = []
    voice_ids: list[int] = []

    def to_draft(self) -> FeedbackDraft:
        return FeedbackDraft(
            first_name=self.first_name,
            last_name=self.last_name,
            category=self.category,
            phone_number=self.phone_number,
            branch=self.branch,
            text_ids=list(self.text_ids),
            voice_ids=list(self.voice_ids),
        )


class TextMessageRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    message: str


class VoiceMessageRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    media_id: Optional[str] = None
    duration: Optional[int] = None


class FeedbackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    category: FeedbackCategory
    status: str
    phone_number: str
    branch: Optional[Branch] = None
    user_id: Optional[int] = None
    patient_id: Optional[int] = None
    created_at: datetime
    messages: list[TextMessageRef] = []
    voices: list[VoiceMessageRef] = []

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_feedback.models.branch import Branch
from clinic_feedback.models.rating import RATING_SCORES, RatingCategory
from clinic_feedback.schemas.feedback import FeedbackCreate
from clinic_feedback.services.feedbacks import FeedbackDraft


class RatingCreate(BaseModel):
    category: RatingCategory
    score: int
    phone_number: str
    branch: str
    feedback: Optional[FeedbackCreate] = None

    @field_validator("score")
    @classmethod
    def _known_score(cls, value: int) -> int:
        if value not in RATING_SCORES:
            raise ValueError(f"score must be one of {list(RATING_SCORES)}")
        return value


class RatingItem(BaseModel):
    category: RatingCategory
    score: int
    feedback: Optional[FeedbackCreate] = None

    @field_validator("score")
    @classmethod
    def _known_score(cls, value: int) -> int:
        if value not in RATING_SCORES:
            raise ValueError(f"score must be one of {list(RATING_SCORES)}")
        return value


class RatingBulkCreate(BaseModel):
    phone_number: str
    branch: str
    ratings: list[RatingItem] = Field(default_factory=list, max_length=len(RatingCategory))

    @field_validator("ratings")
    @classmethod
    def _unique_categories(cls, value: list[RatingItem]) -> list[RatingItem]:
        categories = [item.category for item in value]
        if len(categories) != len(set(categories)):
            raise ValueError("each category may be rated once")
        return value

    def scores(self) -> dict[RatingCategory, int]:
        return {item.category: item.score for item in self.ratings}

    def feedbacks(self) -> dict[RatingCategory, FeedbackDraft]:
        return {item.category: item.feedback.to_draft() for item in self.ratings if item.feedback}


class RatingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: RatingCategory
    score: int
    branch: Branch
    feedback_id: Optional[int] = None
    user_id: int
    patient_id: Optional[int] = None
    created_at: datetime

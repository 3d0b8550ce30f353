from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from clinic_feedback.models.branch import Branch
from clinic_feedback.models.call_status import CallOutcome


class CallStatusCreate(BaseModel):
    status: CallOutcome
    phone_number: str
    branch: str


class CallStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: CallOutcome
    phone_number: str
    branch: Branch
    user_id: int
    patient_id: Optional[int] = None
    created_at: datetime

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from clinic_feedback.models.branch import Branch
from clinic_feedback.models.patient import PatientStatus


class PatientCreate(BaseModel):
    phone_number: str
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = ""
    branch: str
    checkout_date: Optional[str] = None


class PatientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone_number: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    branch: Optional[Branch] = None
    status: PatientStatus
    checkout_date: Optional[str] = None
    created_at: datetime


class PatientListItem(PatientOut):
    feedback_count: int = 0


class ImportRowErrorOut(BaseModel):
    line: int
    reason: str


class ImportReportOut(BaseModel):
    total_rows: int
    header_row: Optional[int] = None
    imported: int
    skipped_duplicates: int
    errors: list[ImportRowErrorOut] = []
    dry_run: bool = False

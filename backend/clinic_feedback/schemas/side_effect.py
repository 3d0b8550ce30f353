from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FailedJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    attempts: int
    last_error: Optional[str] = None
    queued_at: datetime


class SideEffectStatus(BaseModel):
    dispatched: int
    succeeded: int
    failed: int
    failed_jobs: list[FailedJobOut]


class RetryResult(BaseModel):
    retried: int
    succeeded: int
    still_failing: int

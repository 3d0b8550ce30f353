from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from clinic_feedback.models.user import Role as RoleEnum


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    login: str
    full_name: str
    role: RoleEnum
    is_active: bool
    created_at: datetime


class UserCreate(BaseModel):
    login: str = Field(min_length=4, max_length=120)
    password: str = Field(min_length=6, max_length=72)
    full_name: str = ""
    role: RoleEnum = RoleEnum.user

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_feedback.models.base import Base, TimestampMixin, enum_values


class Role(str, enum.Enum):
    admin = "admin"
    user = "user"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    login: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="role_enum", values_callable=enum_values),
        default=Role.user,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    call_statuses = relationship(
        "CallStatus", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    ratings = relationship(
        "Rating", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    feedbacks = relationship("Feedback", back_populates="user")

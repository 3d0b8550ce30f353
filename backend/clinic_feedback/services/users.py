from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import NotFound, ValidationFailed
from clinic_feedback.core.security import hash_password, verify_password
from clinic_feedback.models.user import Role, User


def get_user_by_login(db: Session, login: str) -> User | None:
    return db.scalar(select(User).where(User.login == login.strip().lower()))


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.scalar(select(User).where(User.id == user_id))


def require_operator(db: Session, user_id: int) -> User:
    user = get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        raise NotFound(f"User {user_id} not found")
    return user


def authenticate(db: Session, login: str, password: str) -> User | None:
    user = get_user_by_login(db, login)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_user(
    db: Session,
    *,
    login: str,
    password: str,
    full_name: str = "",
    role: Role = Role.user,
    is_active: bool = True,
) -> User:
    if get_user_by_login(db, login):
        raise ValidationFailed(f"User {login!r} already exists")
    user = User(
        login=login.strip().lower(),
        full_name=full_name,
        role=role,
        is_active=is_active,
        hashed_password=hash_password(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> User:
    user = get_user_by_id(db, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    db.delete(user)
    db.flush()
    return user


def user_count(db: Session) -> int:
    return int(db.scalar(select(func.count(User.id))) or 0)


def seed_initial_admin(db: Session, *, login: str, password: str) -> bool:
    if user_count(db) > 0:
        return False
    create_user(db, login=login, password=password, full_name="Admin", role=Role.admin)
    return True

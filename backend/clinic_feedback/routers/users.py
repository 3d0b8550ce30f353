from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import ValidationFailed
from clinic_feedback.db.session import atomic, get_db
from clinic_feedback.deps import require_admin
from clinic_feedback.models.user import Role, User
from clinic_feedback.schemas.user import UserCreate, UserOut
from clinic_feedback.services.audit import log_event
from clinic_feedback.services.users import create_user, delete_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserOut])
def list_users(
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    return list(db.scalars(select(User).order_by(User.id)))


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def add_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = create_user(
        db,
        login=payload.login,
        password=payload.password,
        full_name=payload.full_name,
        role=Role(payload.role),
    )
    log_event(
        db,
        actor=admin,
        action="user.created",
        entity_type="user",
        entity_id=str(user.id),
        after_data={"login": user.login, "role": user.role.value},
    )
    db.commit()
    return user


@router.get("/roles", response_model=list[str])
def list_roles(_=Depends(require_admin)):
    return [role.value for role in Role]


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if user_id == admin.id:
        raise ValidationFailed("Administrators cannot delete themselves")
    with atomic(db):
        user = delete_user(db, user_id)
        log_event(
            db,
            actor=admin,
            action="user.deleted",
            entity_type="user",
            entity_id=str(user_id),
            before_data={"login": user.login, "role": user.role.value},
        )
    return None

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinic_feedback.db.session import get_db
from clinic_feedback.deps import get_current_user, get_import_config, require_admin
from clinic_feedback.models.user import User
from clinic_feedback.schemas.call_status import CallStatusCreate, CallStatusOut
from clinic_feedback.schemas.message import DeletedCount
from clinic_feedback.services import call_statuses as call_service
from clinic_feedback.services.patient_import.pipeline import ImportConfig

router = APIRouter(prefix="/call-statuses", tags=["call-statuses"])


@router.post("", response_model=CallStatusOut, status_code=status.HTTP_201_CREATED)
def create_call_status(
    payload: CallStatusCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    config: ImportConfig = Depends(get_import_config),
):
    return call_service.create_call_status(
        db,
        user_id=user.id,
        phone_number=payload.phone_number,
        branch=payload.branch,
        status=payload.status,
        threshold=config.branch_threshold,
    )


@router.get("", response_model=list[CallStatusOut])
def list_call_statuses(
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=call_service.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return call_service.list_call_statuses(db, skip=skip, take=take)


@router.delete("/last", response_model=DeletedCount)
def delete_last_call_status(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    call_service.delete_last_call_status(db)
    return DeletedCount(deleted=1)

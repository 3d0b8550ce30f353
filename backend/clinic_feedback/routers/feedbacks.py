from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clinic_feedback.db.session import get_db
from clinic_feedback.deps import get_board, get_current_user, get_import_config
from clinic_feedback.models.user import User
from clinic_feedback.schemas.feedback import FeedbackCreate, FeedbackOut
from clinic_feedback.services import feedbacks as feedback_service
from clinic_feedback.services.board import BoardSync
from clinic_feedback.services.patient_import.pipeline import ImportConfig

router = APIRouter(prefix="/feedbacks", tags=["feedbacks"])


@router.post("", response_model=FeedbackOut, status_code=status.HTTP_201_CREATED)
def create_feedback(
    payload: FeedbackCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    board: BoardSync = Depends(get_board),
    config: ImportConfig = Depends(get_import_config),
):
    return feedback_service.create_feedback(
        db,
        payload.to_draft(),
        user_id=user.id,
        board=board,
        threshold=config.branch_threshold,
    )


@router.get("", response_model=list[FeedbackOut])
def list_feedbacks(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return feedback_service.list_feedbacks(db)


@router.get("/by-phone/{phone_number}", response_model=list[FeedbackOut])
def list_feedbacks_by_phone(
    phone_number: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return feedback_service.list_feedbacks_by_phone(db, phone_number)


@router.get("/by-user/{user_id}", response_model=list[FeedbackOut])
def list_feedbacks_by_user(
    user_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return feedback_service.list_feedbacks_by_user(db, user_id)


@router.get("/by-status/{feedback_status}", response_model=list[FeedbackOut])
def list_feedbacks_by_status(
    feedback_status: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return feedback_service.list_feedbacks_by_status(db, feedback_status)

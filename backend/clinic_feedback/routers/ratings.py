from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clinic_feedback.db.session import get_db
from clinic_feedback.deps import get_board, get_current_user, get_import_config, require_admin
from clinic_feedback.models.user import User
from clinic_feedback.schemas.message import DeletedCount
from clinic_feedback.schemas.rating import RatingBulkCreate, RatingCreate, RatingOut
from clinic_feedback.services import ratings as rating_service
from clinic_feedback.services.board import BoardSync
from clinic_feedback.services.patient_import.pipeline import ImportConfig

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.post("", response_model=RatingOut, status_code=status.HTTP_201_CREATED)
def create_rating(
    payload: RatingCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    board: BoardSync = Depends(get_board),
    config: ImportConfig = Depends(get_import_config),
):
    return rating_service.create_rating(
        db,
        user_id=user.id,
        phone_number=payload.phone_number,
        branch=payload.branch,
        category=payload.category,
        score=payload.score,
        feedback=payload.feedback.to_draft() if payload.feedback else None,
        board=board,
        threshold=config.branch_threshold,
    )


@router.post("/bulk", response_model=list[RatingOut], status_code=status.HTTP_201_CREATED)
def create_ratings_bulk(
    payload: RatingBulkCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    board: BoardSync = Depends(get_board),
    config: ImportConfig = Depends(get_import_config),
):
    return rating_service.create_ratings_bulk(
        db,
        user_id=user.id,
        phone_number=payload.phone_number,
        branch=payload.branch,
        scores=payload.scores(),
        feedbacks=payload.feedbacks(),
        board=board,
        threshold=config.branch_threshold,
    )


@router.get("", response_model=list[RatingOut])
def list_ratings(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return rating_service.list_ratings(db)


@router.delete("/last", response_model=DeletedCount)
def delete_last_ratings(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return DeletedCount(deleted=rating_service.delete_last_ratings(db))


@router.delete("", response_model=DeletedCount)
def delete_all_ratings(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return DeletedCount(deleted=rating_service.delete_all_ratings(db))

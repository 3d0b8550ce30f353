from __future__ import annotations

import logging
from dataclasses import replace

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import ValidationFailed
from clinic_feedback.db.session import atomic
from clinic_feedback.models.branch import Branch
from clinic_feedback.models.patient import Patient
from clinic_feedback.models.rating import MAX_RATING_SCORE, RATING_SCORES, Rating, RatingCategory
from clinic_feedback.services.branches import DEFAULT_THRESHOLD, coerce_branch
from clinic_feedback.services.feedbacks import FeedbackDraft, add_feedback
from clinic_feedback.services.identity import resolve_patient
from clinic_feedback.services.users import require_operator

logger = logging.getLogger("clinic_feedback.ratings")


def _check_score(score: int) -> int:
    if score not in RATING_SCORES:
        raise ValidationFailed(f"Score must be one of {list(RATING_SCORES)}, got {score}")
    return score


def complete_scores(scores: dict[RatingCategory, int]) -> dict[RatingCategory, int]:
    """Return a score for every category, missing ones set to the maximum."""
    return {category: scores.get(category, MAX_RATING_SCORE) for category in RatingCategory}


def _add_rating(
    db: Session,
    *,
    patient: Patient,
    category: RatingCategory,
    score: int,
    branch: Branch,
    user_id: int,
    feedback=None,
) -> Rating:
    rating = Rating(
        category=category,
        score=_check_score(score),
        branch=branch,
        user_id=user_id,
        patient_id=patient.id,
        feedback=feedback,
    )
    db.add(rating)
    return rating


def create_rating(
    db: Session,
    *,
    user_id: int,
    phone_number: str,
    branch: Branch | str,
    category: RatingCategory,
    score: int,
    feedback: FeedbackDraft | None = None,
    board=None,
    threshold: float = DEFAULT_THRESHOLD,
) -> Rating:
    with atomic(db):
        require_operator(db, user_id)
        canonical_branch = coerce_branch(branch, threshold=threshold)
        patient = resolve_patient(db, phone_number, canonical_branch)
        attached = None
        if feedback is not None:
            attached = add_feedback(db, feedback, user_id=user_id, board=board, threshold=threshold)
        rating = _add_rating(
            db,
            patient=patient,
            category=category,
            score=score,
            branch=canonical_branch,
            user_id=user_id,
            feedback=attached,
        )
        db.flush()
    db.refresh(rating)
    return rating


def create_ratings_bulk(
    db: Session,
    *,
    user_id: int,
    phone_number: str,
    branch: Branch | str,
    scores: dict[RatingCategory, int],
    feedbacks: dict[RatingCategory, FeedbackDraft] | None = None,
    board=None,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[Rating]:
    """Store one rating per category for a single patient in one transaction.

    Categories absent from ``scores`` are recorded with the maximum score. A
    feedback given for a category is stored in the same transaction and linked
    to that category's rating; without its own branch it takes the ratings' one.
    """
    for score in scores.values():
        _check_score(score)
    feedbacks = feedbacks or {}
    with atomic(db):
        require_operator(db, user_id)
        canonical_branch = coerce_branch(branch, threshold=threshold)
        patient = resolve_patient(db, phone_number, canonical_branch)
        ratings = []
        for category, score in complete_scores(scores).items():
            attached = None
            draft = feedbacks.get(category)
            if draft is not None:
                if draft.branch is None:
                    draft = replace(draft, branch=canonical_branch)
                attached = add_feedback(db, draft, user_id=user_id, board=board, threshold=threshold)
            ratings.append(
                _add_rating(
                    db,
                    patient=patient,
                    category=category,
                    score=score,
                    branch=canonical_branch,
                    user_id=user_id,
                    feedback=attached,
                )
            )
        db.flush()
    filled = len(RatingCategory) - len(scores)
    logger.info(
        "Stored %s ratings for patient %s (%s defaulted, %s with feedback)",
        len(ratings),
        patient.id,
        filled,
        len(feedbacks),
    )
    return ratings


def list_ratings(db: Session) -> list[Rating]:
    return list(db.scalars(select(Rating).order_by(Rating.created_at.desc(), Rating.id.desc())))


def delete_last_ratings(db: Session, count: int = 5) -> int:
    with atomic(db):
        ids = list(db.scalars(select(Rating.id).order_by(Rating.id.desc()).limit(count)))
        if ids:
            db.execute(delete(Rating).where(Rating.id.in_(ids)))
    return len(ids)


def delete_all_ratings(db: Session) -> int:
    with atomic(db):
        result = db.execute(delete(Rating))
    return result.rowcount or 0

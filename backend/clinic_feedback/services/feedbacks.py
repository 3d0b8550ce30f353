from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import NotFound
from clinic_feedback.db.session import atomic
from clinic_feedback.models.branch import Branch
from clinic_feedback.models.feedback import FEEDBACK_STATUS_INCOMING, Feedback, FeedbackCategory
from clinic_feedback.services.branches import DEFAULT_THRESHOLD, coerce_branch
from clinic_feedback.services.identity import resolve_patient
from clinic_feedback.services.messages import claim_messages
from clinic_feedback.services.phone import normalize_phone
from clinic_feedback.services.side_effects import enqueue_after_commit
from clinic_feedback.services.users import require_operator

logger = logging.getLogger("clinic_feedback.feedbacks")


@dataclass
class FeedbackDraft:
    first_name: str
    last_name: str
    category: FeedbackCategory
    phone_number: str
    branch: Branch | str | None = None
    text_ids: list[int] = field(default_factory=list)
    voice_ids: list[int] = field(default_factory=list)


def add_feedback(
    db: Session,
    draft: FeedbackDraft,
    *,
    user_id: int,
    board=None,
    threshold: float = DEFAULT_THRESHOLD,
) -> Feedback:
    """Write a feedback inside the caller's transaction.

    The patient is resolved first, then the referenced temporary messages are
    claimed. A card-creation job is queued and runs only if the caller commits.
    """
    branch = coerce_branch(draft.branch, threshold=threshold)
    patient = resolve_patient(
        db,
        draft.phone_number,
        branch,
        first_name=draft.first_name,
        last_name=draft.last_name,
    )
    feedback = Feedback(
        first_name=draft.first_name,
        last_name=draft.last_name,
        category=draft.category,
        status=FEEDBACK_STATUS_INCOMING,
        phone_number=patient.phone_number,
        branch=branch,
        user_id=user_id,
        patient_id=patient.id,
    )
    db.add(feedback)
    db.flush()

    texts, voices = claim_messages(db, feedback, text_ids=draft.text_ids, voice_ids=draft.voice_ids)
    if not texts and not voices:
        raise NotFound("No temporary messages found for the given identifiers")

    if board is not None:
        enqueue_after_commit(db, "board.create_card", partial(board.create_card_for_feedback, feedback.id))
    logger.info(
        "Feedback %s stored for patient %s (texts=%s voices=%s)",
        feedback.id,
        patient.id,
        len(texts),
        len(voices),
    )
    return feedback


def create_feedback(
    db: Session,
    draft: FeedbackDraft,
    *,
    user_id: int,
    board=None,
    threshold: float = DEFAULT_THRESHOLD,
) -> Feedback:
    with atomic(db):
        require_operator(db, user_id)
        feedback = add_feedback(db, draft, user_id=user_id, board=board, threshold=threshold)
    db.refresh(feedback)
    return feedback


def list_feedbacks(db: Session) -> list[Feedback]:
    return list(db.scalars(select(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc())))


def list_feedbacks_by_phone(db: Session, phone_number: str) -> list[Feedback]:
    phone = normalize_phone(phone_number)
    stmt = select(Feedback).where(Feedback.phone_number == phone).order_by(Feedback.id.desc())
    return list(db.scalars(stmt))


def list_feedbacks_by_user(db: Session, user_id: int) -> list[Feedback]:
    stmt = select(Feedback).where(Feedback.user_id == user_id).order_by(Feedback.id.desc())
    return list(db.scalars(stmt))


def list_feedbacks_by_status(db: Session, status: str) -> list[Feedback]:
    stmt = select(Feedback).where(Feedback.status == status).order_by(Feedback.id.desc())
    return list(db.scalars(stmt))

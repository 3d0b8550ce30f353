from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import NotFound
from clinic_feedback.db.session import atomic
from clinic_feedback.models.branch import Branch
from clinic_feedback.models.call_status import CallOutcome, CallStatus
from clinic_feedback.services.branches import DEFAULT_THRESHOLD, coerce_branch
from clinic_feedback.services.identity import resolve_patient
from clinic_feedback.services.users import require_operator

logger = logging.getLogger("clinic_feedback.calls")

MAX_PAGE_SIZE = 200


def create_call_status(
    db: Session,
    *,
    user_id: int,
    phone_number: str,
    branch: Branch | str,
    status: CallOutcome,
    threshold: float = DEFAULT_THRESHOLD,
) -> CallStatus:
    with atomic(db):
        require_operator(db, user_id)
        canonical_branch = coerce_branch(branch, threshold=threshold)
        patient = resolve_patient(db, phone_number, canonical_branch)
        record = CallStatus(
            status=status,
            phone_number=patient.phone_number,
            branch=canonical_branch,
            user_id=user_id,
            patient_id=patient.id,
        )
        db.add(record)
        db.flush()
    db.refresh(record)
    logger.info("Call status %s logged for patient %s", status.value, patient.id)
    return record


def list_call_statuses(db: Session, *, skip: int = 0, take: int = 50) -> list[CallStatus]:
    take = max(1, min(take, MAX_PAGE_SIZE))
    stmt = (
        select(CallStatus)
        .order_by(CallStatus.created_at.desc(), CallStatus.id.desc())
        .offset(max(skip, 0))
        .limit(take)
    )
    return list(db.scalars(stmt))


def delete_last_call_status(db: Session) -> int:
    with atomic(db):
        last = db.scalar(select(CallStatus).order_by(CallStatus.id.desc()).limit(1))
        if last is None:
            raise NotFound("No call statuses to delete")
        deleted_id = last.id
        db.delete(last)
    return deleted_id

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import NotFound, ValidationFailed
from clinic_feedback.db.session import atomic
from clinic_feedback.models.feedback import Feedback
from clinic_feedback.models.patient import Patient, PatientStatus
from clinic_feedback.models.user import User
from clinic_feedback.services.audit import log_event, snapshot_model
from clinic_feedback.services.branches import DEFAULT_THRESHOLD, match_branch
from clinic_feedback.services.patient_import.pipeline import ImportConfig, import_patients_from_file
from clinic_feedback.services.patient_import.types import ImportReport
from clinic_feedback.services.phone import normalize_phone

logger = logging.getLogger("clinic_feedback.patients")


def create_patient(
    db: Session,
    *,
    actor: User | None,
    phone_number: str,
    first_name: str,
    last_name: str = "",
    branch: str,
    checkout_date: str | None = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> Patient:
    phone = normalize_phone(phone_number)
    canonical_branch = match_branch(branch, threshold=threshold)
    with atomic(db):
        duplicate = db.scalar(
            select(Patient.id).where(
                Patient.phone_number == phone,
                Patient.checkout_date.is_(None) if checkout_date is None else Patient.checkout_date == checkout_date,
            )
        )
        if duplicate is not None:
            raise ValidationFailed(f"Patient with phone {phone} already exists")
        patient = Patient(
            phone_number=phone,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            branch=canonical_branch,
            status=PatientStatus.new,
            checkout_date=checkout_date,
        )
        db.add(patient)
        db.flush()
        log_event(
            db,
            actor=actor,
            action="patient.create",
            entity_type="patient",
            entity_id=str(patient.id),
            after_obj=patient,
        )
    db.refresh(patient)
    return patient


def list_patients(db: Session, status: PatientStatus | None = None) -> list[tuple[Patient, int]]:
    """Patients, newest first, each paired with its feedback count."""
    feedback_count = (
        select(func.count(Feedback.id))
        .where(Feedback.patient_id == Patient.id)
        .correlate(Patient)
        .scalar_subquery()
    )
    stmt = select(Patient, feedback_count).order_by(Patient.id.desc())
    if status is not None:
        stmt = stmt.where(Patient.status == status)
    return [(patient, int(count or 0)) for patient, count in db.execute(stmt).all()]


def get_patient(db: Session, patient_id: int) -> Patient:
    patient = db.get(Patient, patient_id)
    if patient is None:
        raise NotFound(f"Patient {patient_id} not found")
    return patient


def delete_patient(db: Session, patient_id: int, *, actor: User | None) -> int:
    with atomic(db):
        patient = get_patient(db, patient_id)
        before = snapshot_model(patient)
        db.delete(patient)
        log_event(
            db,
            actor=actor,
            action="patient.delete",
            entity_type="patient",
            entity_id=str(patient_id),
            before_data=before,
        )
    logger.info("Patient %s deleted", patient_id)
    return patient_id


def run_import(
    db: Session,
    buffer: bytes,
    filename: str | None,
    config: ImportConfig,
    *,
    actor: User | None = None,
    dry_run: bool = False,
) -> ImportReport:
    with atomic(db):
        report = import_patients_from_file(db, buffer, filename, config, dry_run=dry_run)
        if not dry_run:
            log_event(
                db,
                actor=actor,
                action="patient.import",
                entity_type="patient_import",
                entity_id=filename or "upload",
                after_data={key: value for key, value in report.as_dict().items() if key != "errors"},
            )
    return report

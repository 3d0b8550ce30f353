"""Resolve a phone number to the single canonical patient identity.

Every write path that attaches a record to a patient (call outcomes, ratings,
feedback) goes through :func:`resolve_patient` inside its own transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_feedback.models.branch import Branch
from clinic_feedback.models.patient import Patient, PatientStatus
from clinic_feedback.services.phone import normalize_phone

logger = logging.getLogger("clinic_feedback.identity")


def _find_locked(session: Session, phone: str, status: PatientStatus) -> Patient | None:
    return session.scalars(
        select(Patient)
        .where(Patient.phone_number == phone, Patient.status == status)
        .order_by(Patient.id)
        .limit(1)
        .with_for_update()
    ).first()


def _fill_names(patient: Patient, first_name: str | None, last_name: str | None) -> None:
    if first_name and not patient.first_name:
        patient.first_name = first_name
    if last_name and not patient.last_name:
        patient.last_name = last_name


def _apply_branch(patient: Patient, branch: Branch | None) -> None:
    if branch is not None and patient.branch != branch:
        logger.info(
            "Patient %s branch changed: %s -> %s",
            patient.id,
            patient.branch.value if patient.branch else None,
            branch.value,
        )
        patient.branch = branch


def _drop_new_duplicates(session: Session, phone: str, keep_id: int) -> int:
    result = session.execute(
        delete(Patient)
        .where(
            Patient.phone_number == phone,
            Patient.status == PatientStatus.new,
            Patient.id != keep_id,
        )
        .execution_options(synchronize_session="fetch")
    )
    removed = result.rowcount or 0
    if removed:
        logger.info("Removed %s NEW duplicate(s) of patient %s", removed, keep_id)
    return removed


def _reload_regular(session: Session, phone: str) -> Patient:
    patient = _find_locked(session, phone, PatientStatus.regular)
    if patient is None:
        raise RuntimeError(f"REGULAR patient for {phone} vanished after a uniqueness conflict")
    return patient


def _promote(session: Session, patient: Patient, phone: str, branch: Branch | None) -> Patient | None:
    try:
        with session.begin_nested():
            patient.status = PatientStatus.regular
            _apply_branch(patient, branch)
            session.flush()
    except IntegrityError:
        # A concurrent transaction promoted or created the REGULAR row first.
        return None
    logger.info("Patient %s promoted NEW -> REGULAR", patient.id)
    return patient


def _create_regular(
    session: Session,
    phone: str,
    branch: Branch | None,
    first_name: str | None,
    last_name: str | None,
) -> Patient | None:
    patient = Patient(
        phone_number=phone,
        first_name=first_name or None,
        last_name=last_name or None,
        branch=branch,
        status=PatientStatus.regular,
    )
    try:
        with session.begin_nested():
            session.add(patient)
            session.flush()
    except IntegrityError:
        return None
    logger.info("Patient %s created as REGULAR for %s", patient.id, phone)
    return patient


def _adopt_regular(
    session: Session,
    patient: Patient,
    phone: str,
    branch: Branch | None,
    first_name: str | None,
    last_name: str | None,
) -> Patient:
    _apply_branch(patient, branch)
    _fill_names(patient, first_name, last_name)
    _drop_new_duplicates(session, phone, patient.id)
    session.flush()
    return patient


def resolve_patient(
    session: Session,
    phone_number: str,
    branch: Branch | None,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
) -> Patient:
    """Return the canonical REGULAR patient for ``phone_number``.

    Runs inside the caller's transaction and never commits. An invalid phone
    number raises InvalidPhoneError, which aborts the caller's transaction.
    Order of preference: an existing REGULAR row (stale NEW rows for the same
    phone are removed), a NEW row promoted in place, or a freshly created
    REGULAR row. Uniqueness conflicts with concurrent writers fall back to the
    row the other transaction committed.
    """
    phone = normalize_phone(phone_number)

    regular = _find_locked(session, phone, PatientStatus.regular)
    if regular is not None:
        return _adopt_regular(session, regular, phone, branch, first_name, last_name)

    new = _find_locked(session, phone, PatientStatus.new)
    if new is not None:
        promoted = _promote(session, new, phone, branch)
        if promoted is not None:
            _fill_names(promoted, first_name, last_name)
            _drop_new_duplicates(session, phone, promoted.id)
            session.flush()
            return promoted
        session.refresh(new)
    else:
        created = _create_regular(session, phone, branch, first_name, last_name)
        if created is not None:
            return created

    return _adopt_regular(session, _reload_regular(session, phone), phone, branch, first_name, last_name)

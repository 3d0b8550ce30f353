import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from clinic_feedback.core.errors import InvalidPhoneError
from clinic_feedback.models.branch import Branch
from clinic_feedback.models.patient import Patient, PatientStatus
from clinic_feedback.services import identity
from clinic_feedback.services.identity import resolve_patient

PHONE = "+998901234567"


def _count(db, status=None):
    stmt = select(func.count(Patient.id)).where(Patient.phone_number == PHONE)
    if status is not None:
        stmt = stmt.where(Patient.status == status)
    return db.scalar(stmt)


def _add_new(db, **overrides):
    values = dict(phone_number=PHONE, first_name="Иван", last_name="Иванов", branch=Branch.tashkent)
    values.update(overrides)
    patient = Patient(status=PatientStatus.new, **values)
    db.add(patient)
    db.commit()
    return patient


def test_first_contact_creates_regular(db):
    patient = resolve_patient(db, "998901234567", Branch.nukus)
    db.commit()

    assert patient.status is PatientStatus.regular
    assert patient.branch is Branch.nukus
    assert patient.phone_number == PHONE
    assert _count(db) == 1


def test_resolution_is_idempotent_within_transaction(db):
    first = resolve_patient(db, "998901234567", Branch.nukus)
    second = resolve_patient(db, "+998 90 123 45 67", Branch.nukus)
    db.commit()

    assert first.id == second.id
    assert _count(db, PatientStatus.regular) == 1


def test_resolution_is_idempotent_across_transactions(db):
    first_id = resolve_patient(db, PHONE, Branch.nukus).id
    db.commit()
    second_id = resolve_patient(db, PHONE, None).id
    db.commit()

    assert first_id == second_id
    assert _count(db, PatientStatus.regular) == 1


def test_new_patient_is_promoted_in_place(db):
    new = _add_new(db)
    new_id = new.id

    patient = resolve_patient(db, PHONE, Branch.samarkand)
    db.commit()

    assert patient.id == new_id
    assert patient.status is PatientStatus.regular
    assert patient.branch is Branch.samarkand
    assert patient.first_name == "Иван"
    assert _count(db) == 1


def test_promotion_removes_other_new_rows(db):
    oldest = _add_new(db, checkout_date="2024-05-01")
    _add_new(db, checkout_date="2024-05-02")
    oldest_id = oldest.id

    patient = resolve_patient(db, PHONE, Branch.tashkent)
    db.commit()

    assert patient.id == oldest_id
    assert _count(db) == 1


def test_existing_regular_absorbs_new_duplicates(db):
    regular = resolve_patient(db, PHONE, Branch.tashkent)
    db.commit()
    regular_id = regular.id
    _add_new(db, checkout_date="2024-06-01")

    patient = resolve_patient(db, PHONE, Branch.tashkent)
    db.commit()

    assert patient.id == regular_id
    assert _count(db) == 1
    assert _count(db, PatientStatus.regular) == 1


def test_branch_updated_only_when_different(db):
    patient = resolve_patient(db, PHONE, Branch.tashkent)
    db.commit()

    assert resolve_patient(db, PHONE, Branch.tashkent).branch is Branch.tashkent
    assert resolve_patient(db, PHONE, None).branch is Branch.tashkent
    assert resolve_patient(db, PHONE, Branch.bukhara).branch is Branch.bukhara
    db.commit()
    db.refresh(patient)
    assert patient.branch is Branch.bukhara


def test_missing_names_are_filled_but_never_overwritten(db):
    resolve_patient(db, PHONE, None)
    patient = resolve_patient(db, PHONE, None, first_name="Иван", last_name="Иванов")
    assert (patient.first_name, patient.last_name) == ("Иван", "Иванов")

    patient = resolve_patient(db, PHONE, None, first_name="Пётр")
    assert patient.first_name == "Иван"


def test_invalid_phone_raises(db):
    with pytest.raises(InvalidPhoneError):
        resolve_patient(db, "12345", Branch.tashkent)
    assert db.scalar(select(func.count(Patient.id))) == 0


def test_unique_index_rejects_second_regular(db):
    db.add(Patient(phone_number=PHONE, status=PatientStatus.regular))
    db.commit()
    db.add(Patient(phone_number=PHONE, status=PatientStatus.regular))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_unique_index_allows_several_new_rows(db):
    _add_new(db, checkout_date="2024-05-01")
    _add_new(db, checkout_date="2024-05-02")
    assert _count(db, PatientStatus.new) == 2


def test_concurrent_create_falls_back_to_winning_row(db, session_factory, monkeypatch):
    # Another transaction commits the REGULAR row after this one looked for it.
    other = session_factory()
    try:
        winner = Patient(phone_number=PHONE, status=PatientStatus.regular, branch=Branch.nukus)
        other.add(winner)
        other.commit()
        winner_id = winner.id
    finally:
        other.close()

    real_find = identity._find_locked
    calls = {"regular": 0}

    def stale_first_lookup(session, phone, status):
        if status is PatientStatus.regular and calls["regular"] == 0:
            calls["regular"] += 1
            return None
        return real_find(session, phone, status)

    monkeypatch.setattr(identity, "_find_locked", stale_first_lookup)

    patient = resolve_patient(db, PHONE, Branch.andijan)
    db.commit()

    assert patient.id == winner_id
    assert patient.branch is Branch.andijan
    assert _count(db, PatientStatus.regular) == 1


def test_concurrent_promotion_falls_back_to_winning_row(db, session_factory, monkeypatch):
    new = _add_new(db, checkout_date="2024-05-01")
    new_id = new.id
    other = session_factory()
    try:
        winner = Patient(phone_number=PHONE, status=PatientStatus.regular)
        other.add(winner)
        other.commit()
        winner_id = winner.id
    finally:
        other.close()

    real_find = identity._find_locked
    calls = {"regular": 0}

    def stale_first_lookup(session, phone, status):
        if status is PatientStatus.regular and calls["regular"] == 0:
            calls["regular"] += 1
            return None
        return real_find(session, phone, status)

    monkeypatch.setattr(identity, "_find_locked", stale_first_lookup)

    patient = resolve_patient(db, PHONE, Branch.tashkent, first_name="Иван")
    db.commit()

    assert patient.id == winner_id
    assert patient.first_name == "Иван"
    assert db.get(Patient, new_id) is None
    assert _count(db) == 1

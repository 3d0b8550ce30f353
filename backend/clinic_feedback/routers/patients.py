from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from clinic_feedback.db.session import get_db
from clinic_feedback.deps import get_current_user, get_import_config, require_admin
from clinic_feedback.models.patient import PatientStatus
from clinic_feedback.models.user import User
from clinic_feedback.schemas.patient import (
    ImportReportOut,
    PatientCreate,
    PatientListItem,
    PatientOut,
)
from clinic_feedback.services import patients as patient_service
from clinic_feedback.services.patient_import.pipeline import ImportConfig

router = APIRouter(prefix="/patients", tags=["patients"])


@router.get("", response_model=list[PatientListItem])
def list_patients(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
    status_filter: Optional[PatientStatus] = Query(default=None, alias="status"),
):
    rows = patient_service.list_patients(db, status_filter)
    return [
        PatientListItem.model_validate(patient).model_copy(update={"feedback_count": count})
        for patient, count in rows
    ]


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    config: ImportConfig = Depends(get_import_config),
):
    return patient_service.create_patient(
        db,
        actor=user,
        phone_number=payload.phone_number,
        first_name=payload.first_name,
        last_name=payload.last_name,
        branch=payload.branch,
        checkout_date=payload.checkout_date,
        threshold=config.branch_threshold,
    )


@router.post("/import", response_model=ImportReportOut)
def import_patients(
    file: UploadFile = File(...),
    dry_run: bool = Query(default=False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    config: ImportConfig = Depends(get_import_config),
):
    buffer = file.file.read()
    if not buffer:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    report = patient_service.run_import(
        db, buffer, file.filename, config, actor=user, dry_run=dry_run
    )
    return ImportReportOut(**report.as_dict(), dry_run=dry_run)


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return patient_service.get_patient(db, patient_id)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    patient_service.delete_patient(db, patient_id, actor=admin)
    return None

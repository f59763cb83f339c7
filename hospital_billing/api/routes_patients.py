# FILE: hospital_billing/api/routes_patients.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_billing.api.deps import current_user, get_db, require_staff
from hospital_billing.models.patient import Patient
from hospital_billing.models.user import User
from hospital_billing.schemas.billing import InvoiceOut
from hospital_billing.schemas.patient import PatientCreate, PatientOut, PatientUpdate
from hospital_billing.services.activity_logger import log_activity
from hospital_billing.services.errors import ConflictError, NotFoundError
from hospital_billing.services.id_gen import next_patient_code
from hospital_billing.services.invoice_service import list_invoices

router = APIRouter()


def _get_patient(db: Session, patient_id: int) -> Patient:
    p = db.get(Patient, patient_id)
    if not p:
        raise NotFoundError.for_entity("Patient", patient_id)
    return p


@router.get("", response_model=List[PatientOut])
def list_patients(
    q: Optional[str] = Query(None, description="name / code / phone"),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    query = db.query(Patient)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter((Patient.name.ilike(like))
                             | (Patient.patient_code.ilike(like))
                             | (Patient.phone.ilike(like)))
    return query.order_by(Patient.created_at.desc(), Patient.id.desc()).limit(limit).all()


@router.post("", response_model=PatientOut, status_code=201)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    code = (payload.patient_code or "").strip() or next_patient_code(db)
    if db.query(Patient.id).filter(Patient.patient_code == code).first():
        raise ConflictError(f"Patient code {code} already exists")

    data = payload.model_dump(exclude={"patient_code"})
    p = Patient(patient_code=code, **data)
    db.add(p)
    db.flush()
    log_activity(db,
                 type_="patient",
                 title="Patient registered",
                 description=f"{p.name} ({p.patient_code})",
                 user_id=user.id,
                 related_id=p.id)
    db.commit()
    db.refresh(p)
    return p


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return _get_patient(db, patient_id)


@router.put("/{patient_id}", response_model=PatientOut)
def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    p = _get_patient(db, patient_id)
    for k, v in payload.model_dump(exclude_unset=True).items():
        if k == "name" and not (v or "").strip():
            continue
        setattr(p, k, v.strip() if isinstance(v, str) else v)

    log_activity(db,
                 type_="patient",
                 title="Patient updated",
                 description=f"{p.name} ({p.patient_code})",
                 user_id=user.id,
                 related_id=p.id)
    db.commit()
    db.refresh(p)
    return p


@router.get("/{patient_id}/invoices", response_model=List[InvoiceOut])
def patient_invoices(
    patient_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    _get_patient(db, patient_id)
    return list_invoices(db, patient_id=patient_id)

# FILE: hospital_billing/api/routes_medical_services.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_billing.api.deps import current_user, get_db, require_admin
from hospital_billing.models.medicine import MedicalService
from hospital_billing.models.user import User
from hospital_billing.schemas.medicine import MedicalServiceCreate, MedicalServiceOut

router = APIRouter()


@router.get("", response_model=List[MedicalServiceOut])
def list_medical_services(
    category: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    q = db.query(MedicalService)
    if not include_inactive:
        q = q.filter(MedicalService.is_active.is_(True))
    if category:
        q = q.filter(MedicalService.category == category)
    return q.order_by(MedicalService.category.asc(), MedicalService.name.asc()).all()


@router.post("", response_model=MedicalServiceOut, status_code=201)
def create_medical_service(
    payload: MedicalServiceCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    svc = MedicalService(**payload.model_dump())
    db.add(svc)
    db.commit()
    db.refresh(svc)
    return svc

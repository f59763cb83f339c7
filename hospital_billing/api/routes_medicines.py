# FILE: hospital_billing/api/routes_medicines.py
from __future__ import annotations

from io import BytesIO
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from hospital_billing.api.deps import current_user, get_db, require_staff
from hospital_billing.models.medicine import Medicine
from hospital_billing.models.user import User
from hospital_billing.schemas.medicine import MedicineCreate, MedicineOut, MedicineUpdate
from hospital_billing.schemas.medicine_import import (
    BulkImportIn,
    ImportCommitOut,
    ImportPreviewOut,
)
from hospital_billing.services.activity_logger import log_activity
from hospital_billing.services.errors import ConflictError, NotFoundError
from hospital_billing.services.medicine_import import (
    XLSX_CONTENT_TYPE,
    build_template_csv,
    build_template_xlsx,
    persist_medicines,
    preview_upload,
)

router = APIRouter()


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Medicine.id).filter(func.lower(Medicine.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Medicine.id != exclude_id)
    if q.first():
        raise ConflictError(f"Medicine '{name}' already exists")


# ============================================================
# Catalogue
# ============================================================
@router.get("", response_model=List[MedicineOut])
def list_medicines(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    query = db.query(Medicine)
    if q:
        query = query.filter(Medicine.name.ilike(f"%{q.strip()}%"))
    if category:
        query = query.filter(Medicine.category == category)
    return query.order_by(Medicine.name.asc()).all()


@router.get("/low-stock", response_model=List[MedicineOut])
def low_stock_medicines(
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return (db.query(Medicine).filter(
        Medicine.stock_quantity <= Medicine.low_stock_threshold).order_by(
            Medicine.stock_quantity.asc(), Medicine.name.asc()).all())


@router.post("", response_model=MedicineOut, status_code=201)
def create_medicine(
    payload: MedicineCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    _ensure_unique_name(db, payload.name)
    med = Medicine(**payload.model_dump())
    med.name = med.name.strip()
    db.add(med)
    db.flush()
    log_activity(db,
                 type_="medicine",
                 title="Medicine added",
                 description=f"{med.name}: {med.stock_quantity} {med.unit}",
                 user_id=user.id,
                 related_id=med.id)
    db.commit()
    db.refresh(med)
    return med


@router.put("/{medicine_id}", response_model=MedicineOut)
def update_medicine(
    medicine_id: int,
    payload: MedicineUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    med = db.get(Medicine, medicine_id)
    if not med:
        raise NotFoundError.for_entity("Medicine", medicine_id)

    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if data.get("name"):
        _ensure_unique_name(db, data["name"], exclude_id=med.id)
        data["name"] = data["name"].strip()
    for k, v in data.items():
        setattr(med, k, v)

    log_activity(db,
                 type_="medicine",
                 title="Medicine updated",
                 description=f"{med.name}: {med.stock_quantity} {med.unit}",
                 user_id=user.id,
                 related_id=med.id)
    db.commit()
    db.refresh(med)
    return med


# ============================================================
# Bulk import
# ============================================================
@router.get("/import-template")
def download_import_template(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    user: User = Depends(current_user),
):
    if format == "csv":
        return StreamingResponse(
            BytesIO(build_template_csv()),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=medicines_template.csv"},
        )
    return StreamingResponse(
        BytesIO(build_template_xlsx()),
        media_type=XLSX_CONTENT_TYPE,
        headers={"Content-Disposition": "attachment; filename=medicines_template.xlsx"},
    )


@router.post("/parse-excel", response_model=ImportPreviewOut)
def parse_medicines_file(
    file: UploadFile = File(...),
    user: User = Depends(require_staff),
):
    raw = file.file.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Empty file")

    try:
        preview = preview_upload(file.filename or "", file.content_type or "", raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return preview.to_dict()


@router.post("/bulk-import", response_model=ImportCommitOut)
def bulk_import_medicines(
    payload: BulkImportIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    result = persist_medicines(db, [m.model_dump() for m in payload.medicines],
                               user_id=user.id)
    return result.to_dict()

# FILE: hospital_billing/api/routes_rooms.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, selectinload

from hospital_billing.api.deps import current_user, get_db, require_admin, require_staff
from hospital_billing.models.room import Room
from hospital_billing.models.user import User
from hospital_billing.schemas.room import (
    AccrualOut,
    RoomAssignIn,
    RoomCreate,
    RoomDischargeOut,
    RoomOccupancyOut,
    RoomOut,
    RoomUpdate,
)
from hospital_billing.services import room_service
from hospital_billing.services.billing_room_accrual import process_daily_room_charges

router = APIRouter()


@router.get("", response_model=List[RoomOut])
def list_rooms(
    occupied: Optional[bool] = Query(None),
    room_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    q = db.query(Room).options(selectinload(Room.current_patient))
    if occupied is not None:
        q = q.filter(Room.is_occupied.is_(occupied))
    if room_type:
        q = q.filter(Room.room_type == room_type)
    return q.order_by(Room.room_number.asc()).all()


@router.get("/occupancy", response_model=RoomOccupancyOut)
def rooms_occupancy(
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return room_service.room_occupancy(db)


@router.post("/process-daily-charges", response_model=AccrualOut)
def run_daily_room_charges(
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    return process_daily_room_charges(db, user_id=user.id).to_dict()


@router.post("", response_model=RoomOut, status_code=201)
def create_room(
    payload: RoomCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    return room_service.create_room(db, data=payload.model_dump(), user=user)


@router.get("/{room_id}", response_model=RoomOut)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return room_service.get_room(db, room_id)


@router.put("/{room_id}", response_model=RoomOut)
def update_room(
    room_id: int,
    payload: RoomUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    return room_service.update_room(db, room_id,
                                    data=payload.model_dump(exclude_unset=True),
                                    user=user)


@router.post("/{room_id}/assign", response_model=RoomOut)
def assign_room(
    room_id: int,
    payload: RoomAssignIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    return room_service.assign_patient(db, room_id, patient_id=payload.patient_id, user=user)


@router.post("/{room_id}/discharge", response_model=RoomDischargeOut)
def discharge_room(
    room_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    room, invoice_id = room_service.discharge_patient(db, room_id, user=user)
    return {"room": room, "invoice_id": invoice_id}

# hospital_billing/schemas/room.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hospital_billing.schemas.patient import PatientMiniOut


class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: str = Field(..., min_length=1, max_length=50)
    daily_rate: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class RoomUpdate(BaseModel):
    """Occupancy is not editable here; use assign / discharge."""
    model_config = ConfigDict(extra="forbid")

    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    room_type: Optional[str] = Field(None, min_length=1, max_length=50)
    daily_rate: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_number: str
    room_type: str
    daily_rate: Decimal
    is_occupied: bool
    current_patient_id: Optional[int] = None
    current_patient: Optional[PatientMiniOut] = None
    check_in_date: Optional[datetime] = None
    current_invoice_id: Optional[int] = None
    last_accrual_at: Optional[datetime] = None


class RoomAssignIn(BaseModel):
    patient_id: int


class RoomDischargeOut(BaseModel):
    room: RoomOut
    invoice_id: Optional[int] = None


class RoomTypeOccupancyOut(BaseModel):
    room_type: str
    total: int
    occupied: int
    available: int


class RoomOccupancyOut(BaseModel):
    total: int
    occupied: int
    available: int
    occupancy_rate: int
    by_type: List[RoomTypeOccupancyOut] = Field(default_factory=list)


class AccrualFailureOut(BaseModel):
    room_id: int
    room_number: str
    error: str


class AccrualOut(BaseModel):
    processed: int
    total_charges: Decimal
    skipped: int
    failed: int
    failed_rooms: List[AccrualFailureOut] = Field(default_factory=list)

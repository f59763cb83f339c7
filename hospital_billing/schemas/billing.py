# FILE: hospital_billing/schemas/billing.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hospital_billing.models.billing import ItemType, PaymentMethod
from hospital_billing.schemas.patient import PatientMiniOut

MAX_LINE_QUANTITY = 100_000


class InvoiceItemIn(BaseModel):
    item_type: ItemType
    # medicines.id / rooms.id / medical_services.id; omitted for custom services
    item_ref_id: Optional[int] = None
    # name / price default to the referenced catalogue entry
    item_name: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(1, ge=1, le=MAX_LINE_QUANTITY)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class InvoiceCreate(BaseModel):
    patient_id: int
    items: List[InvoiceItemIn] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    description: Optional[str] = None


class InvoiceUpdate(BaseModel):
    """Header only; posted lines are not editable."""
    model_config = ConfigDict(extra="forbid")

    description: Optional[str] = None
    due_date: Optional[datetime] = None


class InvoiceItemsAppend(BaseModel):
    items: List[InvoiceItemIn] = Field(..., min_length=1)


class InvoiceItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_type: str
    item_ref_id: Optional[int] = None
    item_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    created_at: Optional[datetime] = None


class PaymentCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: Decimal
    method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    paid_at: datetime


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    patient_id: int
    patient: Optional[PatientMiniOut] = None
    subtotal: Decimal
    service_charge: Decimal
    total: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: str
    due_date: datetime
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class InvoiceDetailOut(InvoiceOut):
    items: List[InvoiceItemOut] = Field(default_factory=list)
    payments: List[PaymentOut] = Field(default_factory=list)

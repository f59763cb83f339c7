# hospital_billing/schemas/medicine.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# INTEGER column range
MAX_INT = 2**31 - 1


class MedicineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    buy_price: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    stock_quantity: int = Field(0, ge=0, le=MAX_INT)
    low_stock_threshold: int = Field(10, ge=1, le=MAX_INT)
    unit: str = "pieces"


class MedicineCreate(MedicineBase):
    pass


class MedicineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    buy_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0, le=MAX_INT)
    low_stock_threshold: Optional[int] = Field(None, ge=1, le=MAX_INT)
    unit: Optional[str] = None


class MedicineOut(MedicineBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_low_stock: bool = False


# ---------------- Medical services ----------------
class MedicalServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    default_price: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    unit: str = "service"
    is_active: bool = True


class MedicalServiceOut(MedicalServiceCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None

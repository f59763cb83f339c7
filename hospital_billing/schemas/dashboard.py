# hospital_billing/schemas/dashboard.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DashboardStatsOut(BaseModel):
    total_outstanding: Decimal
    monthly_revenue: Decimal
    pending_invoices: int
    pending_amount: Decimal
    overdue_invoices: int
    low_stock_items: int
    critical_items: int
    occupied_rooms: int
    total_rooms: int


class ActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    description: Optional[str] = None
    user_id: Optional[int] = None
    related_id: Optional[int] = None
    created_at: datetime

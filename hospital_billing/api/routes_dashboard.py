# hospital_billing/api/routes_dashboard.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_billing.api.deps import current_user, get_db
from hospital_billing.models.user import User
from hospital_billing.schemas.dashboard import ActivityOut, DashboardStatsOut
from hospital_billing.services.dashboard_service import dashboard_stats, recent_activity

router = APIRouter()


@router.get("/stats", response_model=DashboardStatsOut)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return dashboard_stats(db)


@router.get("/activity", response_model=List[ActivityOut])
def get_recent_activity(
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return recent_activity(db, limit=limit)

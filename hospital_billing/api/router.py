# hospital_billing/api/router.py
from fastapi import APIRouter

from hospital_billing.api import (
    routes_auth,
    routes_dashboard,
    routes_invoices,
    routes_medical_services,
    routes_medicines,
    routes_patients,
    routes_payments,
    routes_rooms,
)

api_router = APIRouter()

# ---- Core
api_router.include_router(routes_auth.router, prefix="/auth", tags=["auth"])

# ---- Registry / inventory
api_router.include_router(routes_patients.router, prefix="/patients", tags=["patients"])
api_router.include_router(routes_medicines.router, prefix="/medicines", tags=["medicines"])
api_router.include_router(routes_medical_services.router,
                          prefix="/medical-services",
                          tags=["medical-services"])
api_router.include_router(routes_rooms.router, prefix="/rooms", tags=["rooms"])

# ---- Billing
api_router.include_router(routes_invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(routes_payments.router, prefix="/payments", tags=["payments"])

# ---- Dashboard
api_router.include_router(routes_dashboard.router, prefix="/dashboard", tags=["dashboard"])

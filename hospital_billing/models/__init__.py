# hospital_billing/models/__init__.py
from .user import User
from .patient import Patient
from .medicine import Medicine, MedicalService
from .room import Room
from .billing import Invoice, InvoiceItem, Payment
from .activity import ActivityLog

__all__ = [
    "User",
    "Patient",
    "Medicine",
    "MedicalService",
    "Room",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "ActivityLog",
]

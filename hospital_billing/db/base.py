# hospital_billing/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All billing tables (users, patients, rooms, invoices, etc.) inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from hospital_billing.models import (  # noqa: F401,E402
    user,
    patient,
    medicine,
    room,
    billing,
    activity,
)

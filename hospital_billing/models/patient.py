# hospital_billing/models/patient.py
from sqlalchemy import Column, Integer, String, Text, DateTime

from hospital_billing.db.base import Base
from hospital_billing.utils.timezone import utcnow


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)

    # human readable code printed on invoices (PAT-2026-0001); never changes
    patient_code = Column(String(50), unique=True, index=True, nullable=False)

    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

# hospital_billing/models/room.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Numeric,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from hospital_billing.db.base import Base


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
    }

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(20), unique=True, nullable=False)
    room_type = Column(String(50), nullable=False)
    daily_rate = Column(Numeric(12, 2), nullable=False)

    # is_occupied is True iff current_patient_id is set
    is_occupied = Column(Boolean, default=False, nullable=False, index=True)
    current_patient_id = Column(Integer,
                                ForeignKey("patients.id", ondelete="SET NULL"),
                                nullable=True)
    check_in_date = Column(DateTime, nullable=True)

    # active invoice receiving the daily room lines
    current_invoice_id = Column(Integer,
                                ForeignKey("invoices.id", ondelete="SET NULL"),
                                nullable=True)
    # next accrual day is counted from here (starts at check-in)
    last_accrual_at = Column(DateTime, nullable=True)

    current_patient = relationship("Patient", foreign_keys=[current_patient_id])
    current_invoice = relationship("Invoice", foreign_keys=[current_invoice_id])

    @property
    def label(self) -> str:
        return f"Room {self.room_number} ({self.room_type})"

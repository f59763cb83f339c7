# FILE: hospital_billing/models/billing.py
from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    Index,
    ForeignKey,
    Text,
)
from sqlalchemy.orm import relationship

from hospital_billing.db.base import Base
from hospital_billing.utils.timezone import utcnow

Money = Numeric(12, 2)


# -------------------------
# Enums
# -------------------------
class ItemType(str, enum.Enum):
    MEDICINE = "medicine"
    ROOM = "room"
    MEDICAL_SERVICE = "medical_service"
    SERVICE = "service"


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    CARD = "Card"
    BANK_TRANSFER = "Bank Transfer"
    MOBILE_BANKING = "Mobile Banking"
    INSURANCE = "Insurance"
    CHECK = "Check"


class Invoice(Base):
    """
    Billing document for one patient.

    Totals are never typed in by hand; they are rebuilt from the items and
    payments by services.invoice_service.refresh_invoice:
      subtotal       = sum(item.quantity * item.unit_price)
      service_charge = subtotal * 20% (2 dp, half-up)
      total          = subtotal + service_charge
      paid_amount    = sum(payment.amount)
    """

    __tablename__ = "invoices"
    __table_args__ = (
        Index("ix_invoices_patient_status", "patient_id", "status"),
        Index("ix_invoices_due_date", "due_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)

    patient_id = Column(
        Integer,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    subtotal = Column(Money, nullable=False, default=0)
    service_charge = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False, default=0)
    paid_amount = Column(Money, nullable=False, default=0)

    # pending | paid | overdue (derived, stored for filtering)
    status = Column(String(20), nullable=False, default=InvoiceStatus.PENDING.value)
    due_date = Column(DateTime, nullable=False)
    description = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    patient = relationship("Patient")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"
    __table_args__ = (
        Index("ix_invoice_items_invoice", "invoice_id"),
        Index("ix_invoice_items_ref", "item_type", "item_ref_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )

    # medicine | room | medical_service | service
    item_type = Column(String(20), nullable=False)
    # medicines.id / rooms.id / medical_services.id; NULL for custom services
    item_ref_id = Column(Integer, nullable=True)

    item_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Money, nullable=False, default=0)

    # cached quantity * unit_price, verified on every recompute
    total_price = Column(Money, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    invoice = relationship("Invoice", back_populates="items")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_invoice", "invoice_id"),
        Index("ix_payments_paid_at", "paid_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount = Column(Money, nullable=False)
    method = Column(String(50), nullable=False)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    paid_at = Column(DateTime, default=utcnow, nullable=False)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    invoice = relationship("Invoice", back_populates="payments")

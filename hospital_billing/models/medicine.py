# hospital_billing/models/medicine.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Numeric,
    CheckConstraint,
)

from hospital_billing.db.base import Base
from hospital_billing.utils.timezone import utcnow

Money = Numeric(12, 2)


class Medicine(Base):
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_medicine_stock_nonneg"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    category = Column(String(100), nullable=True, index=True)

    unit_price = Column(Money, nullable=False)  # sale price
    buy_price = Column(Money, nullable=False, default=0)

    stock_quantity = Column(Integer, nullable=False, default=0, index=True)
    low_stock_threshold = Column(Integer, nullable=False, default=10)
    unit = Column(String(50), nullable=False, default="pieces")

    @property
    def is_low_stock(self) -> bool:
        return int(self.stock_quantity or 0) <= int(self.low_stock_threshold or 0)


class MedicalService(Base):
    """
    Catalogue of standard billable services (consultation, X-ray, ECG ...).
    The price is only a suggestion; the invoice line carries the charged price.
    """
    __tablename__ = "medical_services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    default_price = Column(Money, nullable=False, default=0)
    unit = Column(String(50), nullable=False, default="service")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

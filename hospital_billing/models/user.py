# hospital_billing/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime

from hospital_billing.db.base import Base
from hospital_billing.utils.timezone import utcnow

ROLE_ADMIN = "admin"
ROLE_DOCTOR = "doctor"


class User(Base):
    __tablename__ = "users"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
    }

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    password_hash = Column(String(255), nullable=False)

    role = Column(String(20), nullable=False, default=ROLE_DOCTOR)  # admin / doctor
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime,
                        default=utcnow,
                        onupdate=utcnow,
                        nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.username

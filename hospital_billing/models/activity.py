# hospital_billing/models/activity.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey

from hospital_billing.db.base import Base
from hospital_billing.utils.timezone import utcnow


class ActivityLog(Base):
    """
    Append-only trail of business events shown on the dashboard.
    Every patient / medicine / room / invoice / payment mutation writes here.
    """
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)

    type = Column(String(50), nullable=False, index=True)  # payment / invoice / patient / medicine / room
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    user_id = Column(Integer,
                     ForeignKey("users.id", ondelete="SET NULL"),
                     nullable=True)  # system jobs may be null
    related_id = Column(Integer, nullable=True)

    created_at = Column(DateTime,
                        default=utcnow,
                        nullable=False,
                        index=True)

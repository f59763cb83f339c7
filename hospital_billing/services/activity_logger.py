from typing import Optional

from sqlalchemy.orm import Session

from hospital_billing.models.activity import ActivityLog


def log_activity(
    db: Session,
    *,
    type_: str,  # "patient" | "medicine" | "room" | "invoice" | "payment"
    title: str,
    description: Optional[str] = None,
    user_id: Optional[int] = None,
    related_id: Optional[int] = None,
) -> ActivityLog:
    """
    Add one activity entry to the caller's transaction.
    The caller commits, so the entry lands together with the change it describes.
    """
    entry = ActivityLog(
        type=type_,
        title=title,
        description=description,
        user_id=user_id,
        related_id=related_id,
    )
    db.add(entry)
    return entry

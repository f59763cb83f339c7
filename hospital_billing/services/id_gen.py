# hospital_billing/services/id_gen.py
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy.orm import Session

from hospital_billing.models.billing import Invoice
from hospital_billing.models.patient import Patient
from hospital_billing.utils.timezone import utcnow


def _normalize_to_date(d: Optional[Union[date, datetime]]) -> date:
    if d is None:
        return utcnow().date()
    if isinstance(d, datetime):
        return d.date()
    return d


def _next_seq(db: Session, column, prefix: str) -> int:
    """
    Highest numeric suffix already issued under `prefix`, plus one.
    """
    codes = db.query(column).filter(column.like(f"{prefix}%")).all()
    highest = 0
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    for (code, ) in codes:
        m = pattern.match(code or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return highest + 1


# ----------------------------
# ID generators
# ----------------------------
def next_patient_code(
    db: Session,
    *,
    on_date: Optional[Union[date, datetime]] = None,
    id_width: int = 4,
) -> str:
    """PAT-2026-0001, sequence restarts every year."""
    prefix = f"PAT-{_normalize_to_date(on_date).year}-"
    return f"{prefix}{_next_seq(db, Patient.patient_code, prefix):0{id_width}d}"


def next_invoice_number(
    db: Session,
    *,
    on_date: Optional[Union[date, datetime]] = None,
    id_width: int = 4,
) -> str:
    """INV-20261017-0001, sequence restarts every day."""
    prefix = f"INV-{_normalize_to_date(on_date).strftime('%Y%m%d')}-"
    return f"{prefix}{_next_seq(db, Invoice.invoice_number, prefix):0{id_width}d}"


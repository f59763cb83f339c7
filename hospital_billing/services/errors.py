# hospital_billing/services/errors.py
from __future__ import annotations

from typing import Any, Optional


class BillingError(RuntimeError):
    status_code = 400
    code = "billing_error"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(BillingError):
    status_code = 422
    code = "validation_error"


class NotFoundError(BillingError):
    status_code = 404
    code = "not_found"

    @classmethod
    def for_entity(cls, entity: str, entity_id: Optional[int]) -> "NotFoundError":
        return cls(f"{entity} not found", details={"id": entity_id})


class ConflictError(BillingError):
    status_code = 409
    code = "conflict"


class ComputationInvariantError(BillingError):
    """
    A cached money value disagrees with the value computed from its inputs.
    Internal error: reported as 500 and never corrected in place.
    """
    status_code = 500
    code = "computation_invariant"

# FILE: hospital_billing/api/response.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def err(
    msg: str = "Something went wrong",
    *,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    """
    Error body shared by every failing billing endpoint, e.g. a 409 for an
    occupied room:
        {"ok": false, "error": {"msg": "Room 101 (General) is already occupied",
                                "code": "conflict", "details": null}}
    Successful responses are returned bare, without this wrapper.
    """
    payload: Dict[str, Any] = {
        "ok": False,
        "error": {
            "msg": msg,
            "code": code,
            "details": details,
        },
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))

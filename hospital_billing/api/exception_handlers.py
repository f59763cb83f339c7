# FILE: hospital_billing/api/exception_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hospital_billing.api.response import err
from hospital_billing.services.errors import BillingError, ComputationInvariantError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
        if isinstance(exc, ComputationInvariantError):
            logger.error("Computation invariant broken on %s %s: %s (%s)",
                         request.method, request.url.path, exc.message, exc.details)
            return err(msg="Internal calculation error", status_code=exc.status_code,
                       code=exc.code)
        return err(msg=exc.message, status_code=exc.status_code, code=exc.code,
                   details=exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # exc.detail can be str/dict/list
        if isinstance(exc.detail, str):
            return err(msg=exc.detail, status_code=exc.status_code, code="http_error")
        return err(msg="Request failed", status_code=exc.status_code, code="http_error",
                   details=exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request,
                                           exc: RequestValidationError) -> JSONResponse:
        details = [{
            "loc": list(e.get("loc", ())),
            "msg": e.get("msg"),
            "type": e.get("type"),
        } for e in exc.errors()]
        return err(msg="Validation error", status_code=422, code="validation_error",
                   details=details)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return err(msg="Internal server error", status_code=500, code="internal_error")

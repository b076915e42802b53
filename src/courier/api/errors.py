"""HTTP mapping for courier errors.

Protean's handlers already render ValidationError (400) and
ObjectNotFoundError (404); the more specific courier errors get their own
status codes here. Starlette resolves handlers along the exception's MRO,
so the subclasses win over the generic ValidationError handler.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from courier.shared.errors import (
    BatchRejected,
    CodMismatch,
    InvalidOtp,
    InvalidStateTransition,
    ManifestNumberTaken,
    NotAssigned,
    NotAuthorized,
    PhoneVerificationFailed,
)

_STATUS_CODES = {
    BatchRejected: 400,
    PhoneVerificationFailed: 401,
    NotAssigned: 403,
    NotAuthorized: 403,
    InvalidStateTransition: 409,
    ManifestNumberTaken: 409,
    InvalidOtp: 422,
    CodMismatch: 422,
}


def _body(exc: Exception) -> dict:
    body = {"error": type(exc).__name__, "detail": getattr(exc, "messages", None) or str(exc)}
    if isinstance(exc, BatchRejected):
        body["offending"] = exc.offending
    elif isinstance(exc, InvalidStateTransition):
        body["current"] = exc.current
        body["requested"] = exc.requested
    elif isinstance(exc, CodMismatch):
        body["expected"] = exc.expected
        body["collected"] = exc.collected
    return body


def register_courier_exception_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)

    for exc_class, status_code in _STATUS_CODES.items():

        async def handler(request: Request, exc: Exception, status_code=status_code) -> JSONResponse:
            return JSONResponse(status_code=status_code, content=_body(exc))

        app.add_exception_handler(exc_class, handler)

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from plantops.core.errors import (
    AlreadyDecided,
    DomainError,
    Forbidden,
    GateError,
    RequestNotFound,
    StorageError,
    ValidationError,
)

_STATUS_CODES: dict[type[GateError], int] = {
    Forbidden: 403,
    RequestNotFound: 404,
    AlreadyDecided: 409,
    ValidationError: 422,
    DomainError: 502,
    StorageError: 503,
}


def status_code_for(exc: GateError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return 500


async def gate_error_handler(request: Request, exc: GateError) -> JSONResponse:
    return JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GateError, gate_error_handler)

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sensornet_core.domain.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SensorNetError,
    TicketLockedError,
    ValidationError,
)

log = logging.getLogger(__name__)

STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    ForbiddenError: 403,
    InvalidTransitionError: 409,
    TicketLockedError: 409,
}


def status_for(exc: SensorNetError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SensorNetError)
    async def domain_error(_request: Request, exc: SensorNetError):
        code = status_for(exc)
        log.info("Request rejected (%s): %s", code, exc)
        return error_response(code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_error(_request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return error_response(400, problems or "Invalid request")

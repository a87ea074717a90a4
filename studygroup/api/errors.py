"""
Exception handlers that put every error into the response envelope.
"""

import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from studygroup.config.settings import Settings
from studygroup.core.errors import StudyGroupError
from studygroup.core.models import Envelope


def envelope_response(
    status_code: int, message: str, data=None, trace: list[str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            Envelope(success=False, message=message, data=data, trace=trace)
        ),
    )


def add_exception_handlers(app: FastAPI, settings: Settings) -> FastAPI:
    """
    Service exceptions carry their own status code. Validation errors, HTTP
    exceptions and anything unexpected are wrapped the same way; outside
    production the traceback of a 500 is returned as `trace`.
    """

    async def study_group_error_handler(request: Request, exc: StudyGroupError):
        log = get_logger().bind(path=request.url.path, error=type(exc).__name__)
        await log.ainfo("api.request.rejected", status_code=exc.status_code)
        return envelope_response(
            status_code=exc.status_code,
            message=str(exc),
            data=getattr(exc, "data", None),
        )

    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return envelope_response(
            status_code=422,
            message="Validation failed",
            data=jsonable_encoder(exc.errors()),
        )

    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return envelope_response(status_code=exc.status_code, message=str(exc.detail))

    async def unhandled_exception_handler(request: Request, exc: Exception):
        log = get_logger().bind(path=request.url.path)
        await log.aexception("api.request.failed")

        trace = None

        if settings.environment != "production":
            trace = traceback.format_exception(exc)

        return envelope_response(
            status_code=500, message="Internal server error", trace=trace
        )

    app.add_exception_handler(StudyGroupError, study_group_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    return app

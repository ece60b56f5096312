"""
Exception handlers.

Renders every AppException as ``{"detail": ..., "kind": ...}`` so clients can
tell a tenancy refusal from a permission refusal, an invalid graph edge or a
lost race without parsing messages.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hotel_shared.utils.exceptions import AppException


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": exc.kind.value},
        headers=exc.headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)

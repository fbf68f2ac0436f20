"""Typed error taxonomy shared by the store services.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with, so routers never translate failures themselves.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

_LOGGER = logging.getLogger(__name__)

_LOCKED_MARKERS = ("database is locked", "database table is locked", "busy")


class StoreError(Exception):
    """Base class for all store failures surfaced to callers."""

    code = "store_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class PersistenceError(StoreError):
    """The store itself failed; no partial state is visible."""

    code = "persistence_error"


class OperationTimedOut(PersistenceError):
    """A database call waited longer than the busy timeout; safe to retry."""

    code = "operation_timed_out"
    status_code = status.HTTP_408_REQUEST_TIMEOUT


def translate_database_error(exc: SQLAlchemyError) -> PersistenceError:
    """Map a SQLAlchemy failure onto the persistence taxonomy."""

    if isinstance(exc, OperationalError):
        reason = str(exc.orig if exc.orig is not None else exc).lower()
        if any(marker in reason for marker in _LOCKED_MARKERS):
            return OperationTimedOut("Database operation timed out")
    return PersistenceError("Database error")


async def _handle_store_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StoreError)
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        _LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _handle_database_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, SQLAlchemyError)
    return await _handle_store_error(request, translate_database_error(exc))


async def _handle_request_validation(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Validation failed",
            "code": "validation_failed",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install handlers turning store errors into JSON responses."""

    app.add_exception_handler(StoreError, _handle_store_error)
    app.add_exception_handler(SQLAlchemyError, _handle_database_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)

"""
Custom exception hierarchy for the fleet health API.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

The analytics core never raises for missing data: an endpoint without
snapshots yields "no metrics", an empty store yields zero counts. These
exceptions cover lookups, uploads and imports only.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class FleetHealthException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class EndpointNotFoundError(FleetHealthException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ENDPOINT_NOT_FOUND"

    def __init__(self, shortname: str):
        super().__init__(
            message=f"Endpoint '{shortname}' not found.",
            details={"shortname": shortname},
        )


class InvalidCsvError(FleetHealthException):
    http_status = 422
    code = "INVALID_CSV"

    def __init__(self, message: str, filename: str | None = None):
        super().__init__(
            message=message,
            details={"filename": filename} if filename else {},
        )


class UnsupportedFileTypeError(FleetHealthException):
    http_status = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    code = "UNSUPPORTED_FILE_TYPE"

    def __init__(self, filename: str):
        super().__init__(
            message="Only CSV files are allowed.",
            details={"filename": filename},
        )


class ImportFileTooLargeError(FleetHealthException):
    http_status = 413
    code = "IMPORT_FILE_TOO_LARGE"

    def __init__(self, max_bytes: int, received: int):
        super().__init__(
            message=f"Upload exceeds maximum size of {max_bytes} bytes. Received {received}.",
            details={"max_bytes": max_bytes, "received": received},
        )


class ImportFileNotFoundError(FleetHealthException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "IMPORT_FILE_NOT_FOUND"

    def __init__(self, path: str):
        super().__init__(
            message=f"Import file {path} does not exist.",
            details={"path": path},
        )


class CsvImportError(FleetHealthException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "IMPORT_ERROR"

    def __init__(self, message: str, filename: str | None = None):
        super().__init__(
            message=message,
            details={"filename": filename} if filename else {},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def fleet_health_exception_handler(
    request: Request, exc: FleetHealthException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=422,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )

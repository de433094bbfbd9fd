"""
Import router.

POST /import/csv        — multipart upload of an AllDevices export
POST /import/csv-path   — import a file already on the server

The import date comes from the filename (AllDevices-YYYYMMDD...). Bad rows
are counted and reported, they never fail the whole request.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleethealth.core.config import settings
from fleethealth.core.errors import (
    CsvImportError,
    ImportFileTooLargeError,
    InvalidCsvError,
    UnsupportedFileTypeError,
)
from fleethealth.db.base import get_db
from fleethealth.schemas.common import ErrorResponse
from fleethealth.schemas.imports import ImportPathRequest, ImportResponse
from fleethealth.services.csv_import import ImportResult, import_csv, import_csv_path

log = logging.getLogger(__name__)

router = APIRouter(prefix="/import", tags=["import"])


def _to_response(result: ImportResult) -> ImportResponse:
    response = ImportResponse.model_validate(result)
    response.message = f"Imported {result.imported} record(s) with {result.errors} error(s)"
    return response


def _run(db: Session, fn, *args) -> ImportResult:
    try:
        return fn(db, *args)
    except SQLAlchemyError as exc:
        db.rollback()
        log.exception("CSV import failed")
        raise CsvImportError(f"Import failed: {exc.__class__.__name__}") from exc


# ---------------------------------------------------------------------------
# POST /import/csv
# ---------------------------------------------------------------------------

@router.post(
    "/csv",
    response_model=ImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a CSV export",
    responses={
        413: {"model": ErrorResponse, "description": "File larger than IMPORT_MAX_BYTES."},
        415: {"model": ErrorResponse, "description": "Not a .csv file."},
        422: {"model": ErrorResponse, "description": "Missing header or undecodable file."},
    },
)
def upload_csv(
    file: UploadFile = File(..., description="AllDevices-YYYYMMDD_*.csv"),
    db: Session = Depends(get_db),
):
    filename = file.filename or ""
    if not filename.lower().endswith(".csv"):
        raise UnsupportedFileTypeError(filename)

    payload = file.file.read(settings.IMPORT_MAX_BYTES + 1)
    if len(payload) > settings.IMPORT_MAX_BYTES:
        raise ImportFileTooLargeError(settings.IMPORT_MAX_BYTES, len(payload))

    try:
        text = payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise InvalidCsvError("File is not valid UTF-8 text.", filename=filename) from exc

    return _to_response(_run(db, import_csv, text, filename))


# ---------------------------------------------------------------------------
# POST /import/csv-path
# ---------------------------------------------------------------------------

@router.post(
    "/csv-path",
    response_model=ImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import a CSV export from a server-side path",
    responses={
        404: {"model": ErrorResponse, "description": "No such file."},
        422: {"model": ErrorResponse, "description": "Missing header."},
    },
)
def import_from_path(body: ImportPathRequest, db: Session = Depends(get_db)):
    return _to_response(_run(db, import_csv_path, body.file_path))

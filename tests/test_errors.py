"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
import importlib.util
import warnings

from fleethealth.core import errors as errors_module
from fleethealth.core.errors import (
    CsvImportError,
    EndpointNotFoundError,
    ImportFileNotFoundError,
    ImportFileTooLargeError,
    InvalidCsvError,
    UnsupportedFileTypeError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_endpoint_not_found(self):
        err = EndpointNotFoundError("WS-001")
        assert err.http_status == 404
        assert err.code == "ENDPOINT_NOT_FOUND"
        assert "WS-001" in err.message
        assert err.to_dict()["details"] == {"shortname": "WS-001"}

    def test_invalid_csv_with_filename(self):
        err = InvalidCsvError("bad header", filename="AllDevices-20250101.csv")
        assert err.http_status == 422
        assert err.code == "INVALID_CSV"
        assert err.details["filename"] == "AllDevices-20250101.csv"

    def test_unsupported_file_type(self):
        err = UnsupportedFileTypeError("devices.xlsx")
        assert err.http_status == 415
        assert err.code == "UNSUPPORTED_FILE_TYPE"

    def test_file_too_large(self):
        err = ImportFileTooLargeError(max_bytes=100, received=101)
        assert err.http_status == 413
        assert "100" in err.message
        assert "101" in err.message
        d = err.to_dict()
        assert d["details"]["max_bytes"] == 100
        assert d["details"]["received"] == 101

    def test_import_file_not_found(self):
        err = ImportFileNotFoundError("/tmp/x.csv")
        assert err.http_status == 404
        assert err.code == "IMPORT_FILE_NOT_FOUND"

    def test_to_dict_without_details(self):
        err = CsvImportError("Import failed")
        d = err.to_dict()
        assert d == {"code": "IMPORT_ERROR", "message": "Import failed"}

    def test_module_loads_without_deprecation_warnings(self):
        spec = importlib.util.spec_from_file_location("_errors_fresh", errors_module.__file__)
        fresh = importlib.util.module_from_spec(spec)
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            spec.loader.exec_module(fresh)
        assert fresh.InvalidCsvError.http_status == 422
        assert fresh.ImportFileTooLargeError.http_status == 413


# ---------------------------------------------------------------------------
# Integration tests on HTTP error responses
# ---------------------------------------------------------------------------

class TestValidationErrors:
    def test_bad_query_param_lists_field(self, client):
        r = client.get("/analytics/recovery-status", params={"days": "abc"})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = [e["field"] for e in body["details"]["errors"]]
        assert "query.days" in fields

    def test_missing_body_field(self, client):
        r = client.post("/import/csv-path", json={})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_bad_date(self, client):
        r = client.get("/endpoints/health-category", params={"day": "2025-13-01", "category": "fully"})
        assert r.status_code == 422


class TestNotFound:
    def test_history_of_unknown_endpoint(self, client):
        r = client.get("/endpoints/NOPE/history")
        assert r.status_code == 404
        body = r.json()
        assert body["code"] == "ENDPOINT_NOT_FOUND"
        assert "NOPE" in body["message"]

    def test_calendar_of_unknown_endpoint(self, client):
        assert client.get("/endpoints/NOPE/calendar").status_code == 404

"""
CSV ingestion: one AllDevices export → one DailySnapshot per row.

Public API
----------
extract_import_date(filename)    → date        (AllDevices-YYYYMMDD, else today)
import_csv(db, text, filename)   → ImportResult (per-row savepoints)
import_csv_path(db, path)        → ImportResult

Rows are independent: a row that fails (no shortname, bad value, DB error)
is rolled back to its savepoint and counted; the rest of the file still
lands. The endpoint identity is upserted (fullname / env overwritten) and a
new snapshot row is appended. Nothing is ever updated in daily_snapshots.
"""
from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.orm import Session

from fleethealth.core.errors import ImportFileNotFoundError, InvalidCsvError
from fleethealth.models.endpoint import Endpoint
from fleethealth.models.snapshot import DailySnapshot

log = logging.getLogger(__name__)


_FILENAME_DATE = re.compile(r"AllDevices-(\d{8})", re.IGNORECASE)
_TRUE_STRINGS = frozenset({"true", "1", "yes"})

# Tools counted toward num_criticals (vm excluded)
_CRITICAL_TOOLS = ("r7", "am", "df", "it")

# export column → DailySnapshot attribute
_TEXT_COLUMNS = {
    "fullname": "fullname",
    "env": "env",
    "serverOS": "server_os",
    "osName": "os_name",
    "osFamily": "os_family",
    "osBuildNumber": "os_build_number",
    "ip_priv": "ip_priv",
    "ip_pub": "ip_pub",
    "userEmail": "user_email",
    "amLastUser": "am_last_user",
    "vmPowerState": "vm_power_state",
    "dfID": "df_id",
    "itID": "it_id",
    "scriptResult": "script_result",
}

_BOOL_COLUMNS = {
    "supportedOS": "supported_os",
    "possibleFake": "possible_fake",
    "r7Found": "r7_found",
    "amFound": "am_found",
    "dfFound": "df_found",
    "itFound": "it_found",
    "vmFound": "vm_found",
    "seenRecently": "seen_recently",
    "recentR7Scan": "recent_r7_scan",
    "recentAMScan": "recent_am_scan",
    "recentDFScan": "recent_df_scan",
    "recentITScan": "recent_it_scan",
    "needsAMReboot": "needs_am_reboot",
    "needsAMAttention": "needs_am_attention",
}

_INT_COLUMNS = {
    "r7LagDays": "r7_lag_days",
    "amLagDays": "am_lag_days",
    "dfLagDays": "df_lag_days",
    "itLagDays": "it_lag_days",
}


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class ImportResult:
    filename: str
    import_date: date
    imported: int = 0
    errors: int = 0
    row_errors: list[dict[str, Any]] = field(default_factory=list)   # {row, error}


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------

def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def extract_import_date(filename: str) -> date:
    name = Path(filename.replace("\\", "/")).name
    match = _FILENAME_DATE.search(name)
    if match:
        try:
            return datetime.strptime(match.group(1), "%Y%m%d").date()
        except ValueError:
            pass
    log.warning("Could not extract date from filename %r, using current date", name)
    return _today()


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def parse_int(value: Any) -> Optional[int]:
    """Blank or non-numeric → None. Never 0 in place of unknown."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def count_missing_tools(r7_found: bool, am_found: bool, df_found: bool, it_found: bool) -> int:
    return sum(1 for found in (r7_found, am_found, df_found, it_found) if not found)


# ---------------------------------------------------------------------------
# Row → rows
# ---------------------------------------------------------------------------

def _upsert_endpoint(db: Session, shortname: str, fullname: Optional[str], env: Optional[str]) -> Endpoint:
    endpoint = db.query(Endpoint).filter(Endpoint.shortname == shortname).first()
    if endpoint is None:
        endpoint = Endpoint(shortname=shortname, fullname=fullname, env=env)
        db.add(endpoint)
    else:
        endpoint.fullname = fullname
        endpoint.env = env
    return endpoint


def _build_snapshot(record: dict[str, Any], shortname: str, import_date: date) -> DailySnapshot:
    values: dict[str, Any] = {"shortname": shortname, "import_date": import_date}
    for column, attr in _TEXT_COLUMNS.items():
        values[attr] = _text(record.get(column))
    for column, attr in _BOOL_COLUMNS.items():
        values[attr] = parse_bool(record.get(column))
    for column, attr in _INT_COLUMNS.items():
        values[attr] = parse_int(record.get(column))
    values["num_criticals"] = count_missing_tools(
        *(values[f"{tool}_found"] for tool in _CRITICAL_TOOLS)
    )
    return DailySnapshot(**values)


def _import_row(db: Session, record: dict[str, Any], import_date: date) -> None:
    shortname = _text(record.get("shortname"))
    if not shortname:
        raise ValueError("Missing shortname in record")
    snapshot = _build_snapshot(record, shortname, import_date)
    _upsert_endpoint(db, shortname, snapshot.fullname, snapshot.env)
    db.add(snapshot)
    db.flush()


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def import_csv(db: Session, text: str, filename: str) -> ImportResult:
    """
    Import one export. Raises InvalidCsvError when the header row has no
    `shortname` column; individual bad rows are counted, not raised.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = [h.strip() for h in (reader.fieldnames or []) if h]
    if "shortname" not in headers:
        raise InvalidCsvError("CSV header must include a 'shortname' column.", filename=filename)

    result = ImportResult(filename=filename, import_date=extract_import_date(filename))
    log.info("Starting CSV import of %s for %s", filename, result.import_date)

    for row_number, raw in enumerate(reader, start=2):
        record = {(k or "").strip(): v for k, v in raw.items()}
        if not any(_text(v) for v in record.values() if isinstance(v, str)):
            continue   # blank line

        savepoint = db.begin_nested()
        try:
            _import_row(db, record, result.import_date)
            savepoint.commit()
            result.imported += 1
        except Exception as exc:
            savepoint.rollback()
            result.errors += 1
            result.row_errors.append({"row": row_number, "error": str(exc)})
            log.error("Row %d of %s rejected: %s", row_number, filename, exc)

    db.commit()
    log.info(
        "CSV import of %s finished: imported=%d errors=%d",
        filename, result.imported, result.errors,
    )
    return result


def import_csv_path(db: Session, path: str) -> ImportResult:
    file_path = Path(path)
    if not file_path.is_file():
        raise ImportFileNotFoundError(path)
    text = file_path.read_text(encoding="utf-8-sig")
    return import_csv(db, text, file_path.name)

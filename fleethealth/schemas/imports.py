from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportPathRequest(BaseModel):
    file_path: str = Field(
        ...,
        min_length=1,
        description="Server-side path of an AllDevices CSV export.",
        examples=["/data/exports/AllDevices-20250114_0600.csv"],
    )


class RowError(BaseModel):
    row: int = Field(..., description="1-based line number in the file (header is line 1).")
    error: str


class ImportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    filename: str
    import_date: date
    imported: int
    errors: int
    row_errors: list[RowError] = Field(default_factory=list)
    message: Optional[str] = None

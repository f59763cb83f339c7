from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ImportValidRowOut(BaseModel):
    row: int = Field(..., description="Row number in file (header is row 1)")
    data: Dict[str, Any]


class ImportErrorRowOut(BaseModel):
    row: int = Field(..., description="Row number in file (header is row 1)")
    data: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str]


class ImportPreviewOut(BaseModel):
    total_rows: int
    valid_medicines: List[ImportValidRowOut] = Field(default_factory=list)
    errors: List[ImportErrorRowOut] = Field(default_factory=list)


class BulkImportItem(BaseModel):
    row: Optional[int] = None
    data: Dict[str, Any]


class BulkImportIn(BaseModel):
    medicines: List[BulkImportItem] = Field(..., min_length=1)


class ImportFailureOut(BaseModel):
    row: int
    name: Optional[str] = None
    error: str


class ImportCommitOut(BaseModel):
    imported: int
    failed: List[ImportFailureOut] = Field(default_factory=list)

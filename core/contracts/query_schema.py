# ==============================
# Query Contracts
# ==============================
"""
Query contracts for csv2api.

These models define the stable shape of query results across the dataset
facade, the HTTP gateway and the CLI. No caller should invent its own result
shape; use QueryResult.

Intended usage:
- Query engine returns PageResult / ColumnStats / plain row lists
- Dataset facade wraps everything in QueryResult (ok | error)
- Gateway maps QueryErrorCode onto HTTP status codes
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ==============================
# Enums
# ==============================
class SortDirection(str, Enum):
    """Sort direction accepted by the sort operation."""
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Any) -> "SortDirection":
        if isinstance(value, SortDirection):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.DESC.value:
            return cls.DESC
        return cls.ASC


class QueryErrorCode(str, Enum):
    """Standard error codes for query failures."""
    NO_DATA = "no_data"
    INVALID_COLUMN = "invalid_column"
    INTERNAL_ERROR = "internal_error"


# ==============================
# Models
# ==============================
class PaginationMeta(BaseModel):
    """Pagination metadata for one page of an ordered row sequence."""
    model_config = ConfigDict(extra="forbid")

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_rows: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool
    start_index: int = Field(default=0, ge=0, description="1-based index of the first row on the page; 0 if empty.")
    end_index: int = Field(default=0, ge=0, description="1-based index of the last row on the page; 0 if empty.")


class PageResult(BaseModel):
    """A slice of rows plus its pagination metadata."""
    model_config = ConfigDict(extra="forbid")

    data: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: PaginationMeta


class ColumnStats(BaseModel):
    """Descriptive statistics over the numeric values of one column."""
    model_config = ConfigDict(extra="forbid")

    count: int = Field(..., ge=1)
    sum: float
    mean: float
    median: float
    min: float
    max: float
    range: float


class RowLookup(BaseModel):
    """Outcome of a by-id lookup. found=False is a result, not a failure."""
    model_config = ConfigDict(extra="forbid")

    found: bool
    id: str
    id_column: Optional[str] = None
    row: Optional[Dict[str, Any]] = None
    available_ids: List[Any] = Field(default_factory=list)


class QueryError(BaseModel):
    """Structured error for query failures. Errors are data, not control flow."""
    model_config = ConfigDict(extra="forbid")

    code: QueryErrorCode = Field(..., description="Standard query error code.")
    message: str = Field(..., description="Human readable message.")
    details: Dict[str, Any] = Field(default_factory=dict, description="Optional structured details.")


class QueryResult(BaseModel):
    """
    Standard envelope for query results.

    Pattern:
      ok: bool
      data: dict | None
      error: QueryError | None
    """
    model_config = ConfigDict(extra="forbid")

    ok: bool = Field(..., description="True if the query succeeded.")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Query output payload.")
    error: Optional[QueryError] = Field(default=None, description="Query error if ok=False.")

    @model_validator(mode="after")
    def _enforce_error_contract(self) -> "QueryResult":
        if self.ok and self.error is not None:
            raise ValueError("Query error must be None when ok=True")
        if not self.ok and self.error is None:
            raise ValueError("Query error is required when ok=False")
        return self

    @classmethod
    def success(cls, data: Optional[Dict[str, Any]] = None) -> "QueryResult":
        return cls(ok=True, data=data or {}, error=None)

    @classmethod
    def fail(
        cls,
        *,
        code: QueryErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "QueryResult":
        return cls(ok=False, data=None, error=QueryError(code=code, message=message, details=details or {}))

    def to_dict(self) -> Dict[str, Any]:
        """Stable serialization wrapper."""
        return self.model_dump(mode="json")

# ==============================
# Dataset Errors
# ==============================
from __future__ import annotations

from typing import List, Optional, Sequence


class DatasetError(RuntimeError):
    """Base class for dataset failures."""


class IngestionError(DatasetError):
    """Raised when a source file cannot be turned into a snapshot."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


class DatasetNotLoadedError(DatasetError):
    """Raised when a query needs data and no snapshot (or an empty one) is loaded."""


class QueryValidationError(DatasetError):
    """Raised when a query parameter names a column the dataset does not have."""

    def __init__(self, column: str, available_columns: Sequence[str], *, parameter: str = "column") -> None:
        self.column = column
        self.available_columns: List[str] = list(available_columns)
        self.parameter = parameter
        super().__init__(f"Column '{column}' not found")

# ==============================
# Dataset Contracts
# ==============================
"""
Dataset contracts for csv2api.

A Snapshot is one immutable, fully loaded view of a source file. Ingestion
builds it, the row store publishes it, queries read it. Nothing mutates a
published snapshot; a reload builds a new one.

Cells are untyped: a value is either a string or absent/None. Numeric
interpretation is left to the query operations that need it.
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

# ==============================
# Typing
# ==============================
CellValue = Optional[str]
Row = Mapping[str, CellValue]
Rows = Sequence[Row]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def freeze_row(row: Mapping[str, CellValue]) -> Row:
    """Read-only view over a private copy of `row`."""
    if isinstance(row, MappingProxyType):
        return row
    return MappingProxyType(dict(row))


def collect_columns(rows: Rows) -> Tuple[str, ...]:
    """Union of row keys in first-seen order."""
    seen: Dict[str, None] = {}
    for row in rows:
        for key in row:
            if key not in seen:
                seen[key] = None
    return tuple(seen)


# ==============================
# Models
# ==============================
@dataclass(frozen=True)
class Snapshot:
    """Immutable pairing of parsed rows with the metadata of their source."""

    rows: Tuple[Row, ...] = ()
    columns: Tuple[str, ...] = ()
    source_path: Optional[str] = None
    loaded_at: datetime = field(default_factory=_utcnow)
    byte_size: int = 0
    last_modified: Optional[datetime] = None

    def __post_init__(self) -> None:
        # rows are read-only views over private copies
        object.__setattr__(self, "rows", tuple(freeze_row(row) for row in self.rows))

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Mapping[str, CellValue]],
        *,
        source_path: Optional[str] = None,
        byte_size: int = 0,
        last_modified: Optional[datetime] = None,
    ) -> "Snapshot":
        return cls(
            rows=tuple(rows),
            columns=collect_columns(rows),
            source_path=source_path,
            byte_size=byte_size,
            last_modified=last_modified,
        )

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def total_columns(self) -> int:
        return len(self.columns)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def file_name(self) -> Optional[str]:
        return Path(self.source_path).name if self.source_path else None

    def metadata(self) -> Dict[str, Any]:
        """Stable serialization of everything but the rows."""
        return {
            "file_path": self.source_path,
            "file_name": self.file_name,
            "total_rows": self.total_rows,
            "total_columns": self.total_columns,
            "columns": list(self.columns),
            "file_size": self.byte_size,
            "loaded_at": self.loaded_at.isoformat(),
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }

# ==============================
# CSV Ingestion
# ==============================
"""
Turn a delimited text file into a Snapshot.

Rules:
- Header row names the columns (trimmed; BOM stripped by utf-8-sig).
- Blank header cells become "_<index>"; repeated names get "_1", "_2", ...
- Short rows only carry the cells they have (sparse rows).
- Surplus cells are kept under "_<index>", suffixed if the header already has that name.
- Blank lines are skipped. An empty file is an empty snapshot.
- Anything unreadable or malformed raises IngestionError.
"""

from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from core.contracts.dataset_schema import CellValue, Snapshot
from core.dataset.errors import IngestionError

logger = logging.getLogger("csv2api.ingestion")


class CsvIngestor:
    def __init__(self, *, delimiter: str = ",", encoding: str = "utf-8-sig") -> None:
        self.delimiter = delimiter
        self.encoding = encoding

    def load(self, path: Union[str, Path]) -> Snapshot:
        source = Path(path).expanduser().resolve()
        if not source.exists():
            raise IngestionError(f"CSV file not found: {source}", path=str(source))
        if not source.is_file():
            raise IngestionError(f"Not a file: {source}", path=str(source))

        try:
            stat = source.stat()
            with source.open("r", encoding=self.encoding, newline="") as handle:
                reader = csv.reader(handle, delimiter=self.delimiter, strict=True)
                rows = parse_records(reader)
        except IngestionError:
            raise
        except csv.Error as exc:
            raise IngestionError(f"Error parsing CSV: {exc}", path=str(source)) from exc
        except UnicodeDecodeError as exc:
            raise IngestionError(
                f"Cannot decode {source.name} as {self.encoding}: {exc.reason}", path=str(source)
            ) from exc
        except OSError as exc:
            raise IngestionError(f"Failed to read CSV: {exc}", path=str(source)) from exc

        snapshot = Snapshot.from_rows(
            rows,
            source_path=str(source),
            byte_size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
        logger.debug("parsed %s: %d rows, %d columns", source, snapshot.total_rows, snapshot.total_columns)
        return snapshot


# ==============================
# Helpers
# ==============================
def parse_records(records: Iterable[List[str]]) -> List[Dict[str, CellValue]]:
    """Map raw CSV records (header first) to row dicts."""
    header: Optional[List[str]] = None
    rows: List[Dict[str, CellValue]] = []
    for record in records:
        if not record:
            continue
        if header is None:
            header = normalize_header(record)
            continue
        rows.append(_to_row(header, record))
    return rows


def _unique_name(base: str, used: Set[str]) -> str:
    name = base
    suffix = 1
    while name in used:
        name = f"{base}_{suffix}"
        suffix += 1
    used.add(name)
    return name


def normalize_header(cells: List[str]) -> List[str]:
    used: Set[str] = set()
    return [_unique_name(cell.strip() or f"_{index}", used) for index, cell in enumerate(cells)]


def _to_row(header: List[str], record: List[str]) -> Dict[str, CellValue]:
    row: Dict[str, CellValue] = dict(zip(header, record))
    if len(record) > len(header):
        used = set(header)
        for index in range(len(header), len(record)):
            row[_unique_name(f"_{index}", used)] = record[index]
    return row

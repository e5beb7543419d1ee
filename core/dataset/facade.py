# ==============================
# Dataset Facade
# ==============================
"""
One query surface over the currently loaded snapshot.

Responsibilities:
- load()/reload() through the ingestor; publish via RowStore
- keep the last good snapshot when a reload fails
- notify subscribers after each successful reload
- run query engine operations against ONE snapshot per call
- translate every query-time failure into a QueryResult error

Intended usage:
- Gateway API / CLI call the enveloped methods (list_rows, get_row, ...)
- Library callers may use the plain passthroughs (search, sort, ...)
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from core.config.schema import QueryConfig, Settings
from core.contracts.dataset_schema import CellValue, Row, Snapshot
from core.contracts.query_schema import (
    ColumnStats,
    PageResult,
    QueryErrorCode,
    QueryResult,
    RowLookup,
    SortDirection,
)
from core.dataset.errors import DatasetNotLoadedError, IngestionError, QueryValidationError
from core.dataset.ingestion import CsvIngestor
from core.dataset.row_store import RowStore
from core.logging.metrics import Metrics
from core.query import engine
from core.query.values import parse_column_list
from core.watch.notifier import FileChangeNotifier

logger = logging.getLogger("csv2api.dataset")

Listener = Callable[[Snapshot], None]
GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


# ==============================
# Subscriptions
# ==============================
class Subscription:
    """Handle returned by Dataset.subscribe(); unsubscribe() cancels it."""

    def __init__(self, owner: "Dataset", listener: Listener) -> None:
        self._owner = owner
        self.listener = listener

    @property
    def active(self) -> bool:
        return self._owner._has_listener(self)

    def unsubscribe(self) -> None:
        self._owner._remove_listener(self)


# ==============================
# Facade
# ==============================
class Dataset:
    def __init__(
        self,
        source_path: Optional[Union[str, Path]] = None,
        *,
        ingestor: Optional[CsvIngestor] = None,
        store: Optional[RowStore] = None,
        query_config: Optional[QueryConfig] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.source_path = Path(source_path).expanduser().resolve() if source_path else None
        self.ingestor = ingestor or CsvIngestor()
        self.store = store or RowStore()
        self.query_config = query_config or QueryConfig()
        self.metrics = metrics or Metrics()
        self._reload_lock = threading.Lock()
        self._listeners_lock = threading.Lock()
        self._subscriptions: List[Subscription] = []
        self._notifier: Optional[FileChangeNotifier] = None

    @classmethod
    def from_settings(cls, settings: Settings, *, metrics: Optional[Metrics] = None) -> "Dataset":
        ingestor = CsvIngestor(delimiter=settings.dataset.delimiter, encoding=settings.dataset.encoding)
        return cls(
            settings.dataset_path(),
            ingestor=ingestor,
            query_config=settings.query,
            metrics=metrics,
        )

    # ==============================
    # Load / Reload
    # ==============================
    def load(self) -> Snapshot:
        """Ingest the source and publish it. Raises IngestionError."""
        with self._reload_lock:
            snapshot = self._ingest()
            self.store.replace(snapshot)
        logger.info(
            "loaded %d rows with %d columns",
            snapshot.total_rows,
            snapshot.total_columns,
            extra={"path": snapshot.source_path},
        )
        return snapshot

    def reload(self) -> Snapshot:
        """
        Re-ingest the source. On success the new snapshot replaces the old one
        and subscribers are notified; on failure the old snapshot stays and the
        IngestionError propagates.
        """
        with self._reload_lock:
            try:
                snapshot = self._ingest()
            except IngestionError as exc:
                self.metrics.inc("reload.failure")
                logger.warning("reload failed, keeping previous data: %s", exc.message, extra={"path": exc.path})
                raise
            self.store.replace(snapshot)
            self.metrics.inc("reload.success")
        logger.info(
            "reloaded %d rows with %d columns",
            snapshot.total_rows,
            snapshot.total_columns,
            extra={"path": snapshot.source_path},
        )
        self._notify(snapshot)
        return snapshot

    def _ingest(self) -> Snapshot:
        if self.source_path is None:
            raise IngestionError("No source file configured")
        return self.ingestor.load(self.source_path)

    # ==============================
    # Change Notification
    # ==============================
    def subscribe(self, listener: Listener) -> Subscription:
        sub = Subscription(self, listener)
        with self._listeners_lock:
            self._subscriptions.append(sub)
        return sub

    def on_change(self, callback: Callable[[List[Row], List[str]], Any]) -> Subscription:
        """Subscribe with a (rows, columns) callback."""
        return self.subscribe(lambda snap: callback(list(snap.rows), list(snap.columns)))

    def _has_listener(self, sub: Subscription) -> bool:
        with self._listeners_lock:
            return sub in self._subscriptions

    def _remove_listener(self, sub: Subscription) -> None:
        with self._listeners_lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def _notify(self, snapshot: Snapshot) -> None:
        with self._listeners_lock:
            subs = list(self._subscriptions)
        for sub in subs:
            try:
                sub.listener(snapshot)
            except Exception:
                logger.exception("change listener failed")

    def watch(self, *, stability_window: float = 1.0, **notifier_kwargs: Any) -> bool:
        """Start reloading on file changes. Returns False if the watcher could not start."""
        if self.source_path is None:
            raise IngestionError("No source file configured")
        self.stop_watching()
        self._notifier = FileChangeNotifier(
            self.source_path,
            self.reload,
            stability_window=stability_window,
            **notifier_kwargs,
        )
        return self._notifier.start()

    def stop_watching(self) -> None:
        notifier, self._notifier = self._notifier, None
        if notifier is not None:
            notifier.stop()

    @property
    def watching(self) -> bool:
        return self._notifier is not None and self._notifier.is_running

    # ==============================
    # Snapshot Access
    # ==============================
    def snapshot(self) -> Optional[Snapshot]:
        return self.store.current()

    def rows(self) -> List[Row]:
        snap = self.store.current()
        return list(snap.rows) if snap else []

    def columns(self) -> List[str]:
        snap = self.store.current()
        return list(snap.columns) if snap else []

    def metadata(self) -> Optional[Dict[str, Any]]:
        snap = self.store.current()
        return snap.metadata() if snap else None

    @property
    def is_loaded(self) -> bool:
        snap = self.store.current()
        return snap is not None and not snap.is_empty

    # ==============================
    # Plain Passthroughs
    # ==============================
    def search(self, term: Optional[str]) -> List[Row]:
        return engine.search(self.rows(), term)

    def project(self, columns: Any) -> List[Row]:
        return engine.project(self.rows(), columns)

    def sort(self, column: Optional[str], direction: Any = SortDirection.ASC) -> List[Row]:
        return engine.sort_rows(self.rows(), column, direction)

    def paginate(self, page: Any = None, limit: Any = None) -> PageResult:
        return engine.paginate(
            self.rows(),
            page,
            limit,
            default_page=self.query_config.default_page,
            default_limit=self.query_config.default_limit,
        )

    def find_by_id(self, row_id: Any, id_column: Optional[str] = None) -> Optional[Row]:
        return engine.find_by_id(self.rows(), row_id, id_column)

    def unique_values(self, column: Optional[str]) -> List[CellValue]:
        return engine.unique_values(self.rows(), column)

    def column_stats(self, columns: Any = None) -> Dict[str, ColumnStats]:
        return engine.column_stats(self.rows(), columns)

    # ==============================
    # Enveloped Queries
    # ==============================
    def list_rows(
        self,
        *,
        search: Optional[str] = None,
        columns: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        page: Any = None,
        limit: Any = None,
    ) -> QueryResult:
        def _op(snap: Snapshot) -> Dict[str, Any]:
            rows = _require_rows(snap)
            if sort:
                _require_column(snap, sort, parameter="sort")
            direction = SortDirection.parse(order)
            result = engine.search(rows, search)
            result = engine.sort_rows(result, sort, direction)
            result = engine.project(result, columns)
            page_result = self._paginate(result, page, limit)
            return {
                "data": page_result.data,
                "pagination": page_result.pagination.model_dump(),
                "total_results": len(result),
                "applied_filters": {
                    "search": search or None,
                    "columns": parse_column_list(columns) or None,
                    "sort": sort or None,
                    "order": direction.value,
                },
            }

        return self._run("list_rows", _op)

    def get_row(self, row_id: Any, id_column: Optional[str] = None) -> QueryResult:
        def _op(snap: Snapshot) -> Dict[str, Any]:
            rows = _require_rows(snap)
            if id_column:
                _require_column(snap, id_column, parameter="idColumn")
            column = id_column or engine.default_id_column(rows)
            row = engine.find_by_id(rows, row_id, column)
            lookup = RowLookup(
                found=row is not None,
                id=str(row_id),
                id_column=column,
                row=dict(row) if row is not None else None,
                available_ids=[] if row is not None else self._sample_ids(rows, column),
            )
            return lookup.model_dump()

        return self._run("get_row", _op)

    def list_columns(self) -> QueryResult:
        def _op(snap: Snapshot) -> Dict[str, Any]:
            if snap is None or not snap.columns:
                raise DatasetNotLoadedError("CSV file has no columns or is not loaded")
            return {"columns": list(snap.columns), "total_columns": snap.total_columns}

        return self._run("list_columns", _op)

    def stats(self, columns: Any = None) -> QueryResult:
        def _op(snap: Snapshot) -> Dict[str, Any]:
            rows = _require_rows(snap)
            stats = engine.column_stats(rows, columns)
            return {
                "stats": {name: s.model_dump() for name, s in stats.items()},
                "total_rows": len(rows),
                "analyzed_columns": list(stats),
            }

        return self._run("stats", _op)

    def unique(self, column: str) -> QueryResult:
        def _op(snap: Snapshot) -> Dict[str, Any]:
            rows = _require_rows(snap)
            _require_column(snap, column, parameter="column")
            values = engine.unique_values(rows, column)
            return {
                "column": column,
                "unique_values": values,
                "total_unique": len(values),
                "total_rows": len(rows),
            }

        return self._run("unique", _op)

    # ==============================
    # Helpers
    # ==============================
    def _paginate(self, rows: Sequence[Row], page: Any, limit: Any) -> PageResult:
        return engine.paginate(
            rows,
            page,
            limit,
            default_page=self.query_config.default_page,
            default_limit=self.query_config.default_limit,
        )

    def _sample_ids(self, rows: Sequence[Row], column: Optional[str]) -> List[Any]:
        sample = rows[: self.query_config.sample_id_count]
        return [row.get(column) if column and row.get(column) else index for index, row in enumerate(sample)]

    def _run(self, name: str, op: Callable[[Optional[Snapshot]], Dict[str, Any]]) -> QueryResult:
        snap = self.store.current()
        try:
            with self.metrics.timed(f"query.{name}"):
                data = op(snap)
        except DatasetNotLoadedError as exc:
            return QueryResult.fail(code=QueryErrorCode.NO_DATA, message=str(exc))
        except QueryValidationError as exc:
            return QueryResult.fail(
                code=QueryErrorCode.INVALID_COLUMN,
                message=str(exc),
                details={
                    "column": exc.column,
                    "parameter": exc.parameter,
                    "available_columns": exc.available_columns,
                },
            )
        except Exception:
            self.metrics.inc("query.errors")
            logger.exception("query %s failed", name)
            return QueryResult.fail(code=QueryErrorCode.INTERNAL_ERROR, message=GENERIC_ERROR_MESSAGE)
        return QueryResult.success(data)


def _require_rows(snap: Optional[Snapshot]) -> Sequence[Row]:
    if snap is None or snap.is_empty:
        raise DatasetNotLoadedError("CSV file is empty or not loaded")
    return snap.rows


def _require_column(snap: Snapshot, column: str, *, parameter: str) -> None:
    if column not in snap.columns:
        raise QueryValidationError(column, snap.columns, parameter=parameter)


# ==============================
# Library Conveniences
# ==============================
def create_dataset(
    path: Union[str, Path],
    *,
    delimiter: str = ",",
    encoding: str = "utf-8-sig",
    query_config: Optional[QueryConfig] = None,
) -> Dataset:
    """Build a facade over `path` and load it. Raises IngestionError."""
    dataset = Dataset(path, ingestor=CsvIngestor(delimiter=delimiter, encoding=encoding), query_config=query_config)
    dataset.load()
    return dataset


def quick_load(path: Union[str, Path], **ingest_kwargs: Any) -> Snapshot:
    return CsvIngestor(**ingest_kwargs).load(path)


def validate_csv(path: Union[str, Path], **ingest_kwargs: Any) -> bool:
    try:
        CsvIngestor(**ingest_kwargs).load(path)
    except IngestionError:
        return False
    return True


def get_csv_info(path: Union[str, Path], **ingest_kwargs: Any) -> Dict[str, Any]:
    return quick_load(path, **ingest_kwargs).metadata()

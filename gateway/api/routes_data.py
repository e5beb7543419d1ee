# ==============================
# Dataset Routes
# ==============================
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from core.contracts.query_schema import QueryErrorCode, QueryResult
from core.dataset.facade import Dataset
from gateway.api.deps import get_dataset


router = APIRouter()

ENDPOINTS: Dict[str, str] = {
    "GET /": "API metadata and available endpoints",
    "GET /health": "Health check",
    "GET /data": "All rows with optional search, column filter, sorting and pagination",
    "GET /data/{id}": "A single row by id (first column unless idColumn is given)",
    "GET /columns": "All column names",
    "GET /stats": "Statistics for numeric columns",
    "GET /unique/{column}": "Unique values of one column",
}

QUERY_PARAMS: Dict[str, str] = {
    "search": "Case-insensitive search across all fields",
    "columns": "Comma-separated list of columns to return",
    "page": "Page number for pagination (default: 1)",
    "limit": "Number of items per page (default: 10)",
    "sort": "Column name to sort by",
    "order": "Sort order: asc or desc (default: asc)",
    "idColumn": "Column to match ids against on /data/{id}",
}

_STATUS_BY_CODE = {
    QueryErrorCode.NO_DATA: status.HTTP_404_NOT_FOUND,
    QueryErrorCode.INVALID_COLUMN: status.HTTP_400_BAD_REQUEST,
    QueryErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _ok(data: Dict[str, Any], *, meta: Dict[str, Any] | None = None) -> Dict[str, Any]:
    return {"ok": True, "data": data, "error": None, "meta": meta or {}}


def _error(
    *,
    http_status: int,
    code: str,
    message: str,
    details: Dict[str, Any] | None = None,
    meta: Dict[str, Any] | None = None,
) -> NoReturn:
    payload = {
        "ok": False,
        "data": None,
        "error": {"code": code, "message": message, "details": details or {}},
        "meta": meta or {},
    }
    raise HTTPException(status_code=http_status, detail=payload)


def _respond(result: QueryResult, *, meta: Dict[str, Any] | None = None) -> Dict[str, Any]:
    if result.ok:
        return _ok(result.data or {}, meta=meta)
    error = result.error
    if error is None:
        _error(
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=QueryErrorCode.INTERNAL_ERROR.value,
            message="Unknown failure.",
            meta=meta,
        )
    _error(
        http_status=_STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        code=error.code.value,
        message=error.message,
        details=error.details,
        meta=meta,
    )


@router.get("/")
def api_index(request: Request, dataset: Dataset = Depends(get_dataset)) -> Dict[str, Any]:
    metadata = dataset.metadata()
    if metadata is None:
        _error(
            http_status=status.HTTP_404_NOT_FOUND,
            code=QueryErrorCode.NO_DATA.value,
            message="No CSV file loaded",
        )
    return _ok(
        {
            "name": request.app.title,
            "version": request.app.version,
            "csv": metadata,
            "endpoints": ENDPOINTS,
            "query_params": QUERY_PARAMS,
        }
    )


@router.get("/health")
def health(request: Request, dataset: Dataset = Depends(get_dataset)) -> Dict[str, Any]:
    started_at = getattr(request.app.state, "started_at", time.time())
    return _ok(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(time.time() - started_at, 3),
            "csv_loaded": dataset.is_loaded,
            "watching": dataset.watching,
            "metrics": dataset.metrics.snapshot(),
        }
    )


@router.get("/data")
def list_data(
    search: Optional[str] = None,
    columns: Optional[str] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    dataset: Dataset = Depends(get_dataset),
) -> Dict[str, Any]:
    res = dataset.list_rows(search=search, columns=columns, sort=sort, order=order, page=page, limit=limit)
    return _respond(res)


@router.get("/data/{row_id}")
def get_row(
    row_id: str,
    id_column: Optional[str] = Query(default=None, alias="idColumn"),
    dataset: Dataset = Depends(get_dataset),
) -> Dict[str, Any]:
    res = dataset.get_row(row_id, id_column)
    meta = {"id": row_id, "id_column": id_column}
    if res.ok and res.data is not None and not res.data.get("found"):
        _error(
            http_status=status.HTTP_404_NOT_FOUND,
            code="row_not_found",
            message=f"No row found with ID: {row_id}",
            details={
                "id_column": res.data.get("id_column"),
                "available_ids": res.data.get("available_ids", []),
            },
            meta=meta,
        )
    return _respond(res, meta=meta)


@router.get("/columns")
def list_columns(dataset: Dataset = Depends(get_dataset)) -> Dict[str, Any]:
    return _respond(dataset.list_columns())


@router.get("/stats")
def column_stats(columns: Optional[str] = None, dataset: Dataset = Depends(get_dataset)) -> Dict[str, Any]:
    return _respond(dataset.stats(columns), meta={"columns": columns})


@router.get("/unique/{column}")
def unique_values(column: str, dataset: Dataset = Depends(get_dataset)) -> Dict[str, Any]:
    return _respond(dataset.unique(column), meta={"column": column})

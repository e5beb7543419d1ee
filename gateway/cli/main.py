# ==============================
# CLI Entrypoint
# ==============================
"""
CLI for csv2api.

Supported commands:
  csv2api serve data.csv --port 8080
  csv2api serve data.csv --no-watch --host 0.0.0.0
  csv2api info data.csv
  csv2api validate data.csv
  csv2api query data.csv --search john --columns name,email --sort age --order desc --page 1 --limit 5
  csv2api stats data.csv --columns salary,age
  csv2api unique data.csv department
  csv2api get data.csv 3 --id-column id
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn

from core.config.loader import load_settings
from core.config.schema import Settings
from core.contracts.query_schema import QueryResult
from core.dataset.errors import IngestionError
from core.dataset.facade import Dataset
from core.logging.logger import bootstrap_logger
from core.query.engine import use_system_collation
from gateway.api.http_app import APP_NAME, APP_VERSION, create_app

logger = logging.getLogger("csv2api.cli")


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _check_csv_path(raw: str, settings: Settings) -> Path:
    path = Path(raw).expanduser().resolve()
    if not path.exists():
        raise SystemExit(f"CSV file not found: {path}")
    if settings.dataset.require_csv_extension and path.suffix.lower() != ".csv":
        raise SystemExit(f"File must have .csv extension: {path}")
    return path


def _settings_for(args: argparse.Namespace) -> Settings:
    overrides: Dict[str, Any] = {"dataset": {"path": str(_resolved(args.csv_file))}}
    if getattr(args, "delimiter", None):
        overrides["dataset"]["delimiter"] = args.delimiter
    if args.cmd == "serve":
        app_over: Dict[str, Any] = {}
        if args.host is not None:
            app_over["host"] = args.host
        if args.port is not None:
            app_over["port"] = args.port
        if args.no_cors:
            app_over["cors"] = False
        if app_over:
            overrides["app"] = app_over
        if args.no_watch:
            overrides["dataset"]["watch"] = False
        if args.stability_window is not None:
            overrides["dataset"]["stability_window_seconds"] = args.stability_window
    try:
        return load_settings(overrides=overrides)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc


def _resolved(raw: str) -> Path:
    return Path(raw).expanduser().resolve()


def _load_dataset(settings: Settings) -> Dataset:
    dataset = Dataset.from_settings(settings)
    try:
        dataset.load()
    except IngestionError as exc:
        raise SystemExit(f"Failed to load CSV: {exc.message}") from exc
    return dataset


def _emit(res: QueryResult) -> int:
    _print_json(res.to_dict())
    return 0 if res.ok else 1


def cmd_serve(settings: Settings, *, verbose: bool) -> int:
    bootstrap_logger(settings, verbose=verbose)
    dataset = _load_dataset(settings)
    snap = dataset.snapshot()
    logger.info(
        "serving %s (%d rows, %d columns) on http://%s:%d",
        dataset.source_path,
        snap.total_rows if snap else 0,
        snap.total_columns if snap else 0,
        settings.app.host,
        settings.app.port,
    )
    if settings.dataset.watch:
        dataset.on_change(
            lambda rows, columns: logger.info("CSV file updated - %d rows, %d columns", len(rows), len(columns))
        )
        dataset.watch(stability_window=settings.dataset.stability_window_seconds)
    app = create_app(dataset=dataset, settings=settings)
    try:
        uvicorn.run(app, host=settings.app.host, port=settings.app.port, log_config=None)
    finally:
        dataset.stop_watching()
    return 0


def cmd_info(settings: Settings) -> int:
    dataset = _load_dataset(settings)
    _print_json(dataset.metadata())
    return 0


def cmd_validate(settings: Settings) -> int:
    dataset = Dataset.from_settings(settings)
    try:
        snap = dataset.load()
    except IngestionError as exc:
        _print_json({"valid": False, "path": exc.path, "message": exc.message})
        return 1
    _print_json({"valid": True, "path": snap.source_path, "total_rows": snap.total_rows, "columns": list(snap.columns)})
    return 0


def cmd_query(settings: Settings, args: argparse.Namespace) -> int:
    dataset = _load_dataset(settings)
    return _emit(
        dataset.list_rows(
            search=args.search,
            columns=args.columns,
            sort=args.sort,
            order=args.order,
            page=args.page,
            limit=args.limit,
        )
    )


def cmd_stats(settings: Settings, *, columns: Optional[str]) -> int:
    return _emit(_load_dataset(settings).stats(columns))


def cmd_unique(settings: Settings, *, column: str) -> int:
    return _emit(_load_dataset(settings).unique(column))


def cmd_get(settings: Settings, *, row_id: str, id_column: Optional[str]) -> int:
    res = _load_dataset(settings).get_row(row_id, id_column)
    _print_json(res.to_dict())
    if not res.ok or res.data is None:
        return 1
    return 0 if res.data.get("found") else 1


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog=APP_NAME, description="Turn any CSV file into a REST API server")
    ap.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    sub = ap.add_subparsers(dest="cmd", required=True)

    def _with_file(name: str, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("csv_file", help="Path to the CSV file")
        p.add_argument("--delimiter", default=None, help="Field delimiter (default from config: ',')")
        return p

    ap_serve = _with_file("serve", "Serve the CSV file over HTTP")
    ap_serve.add_argument("-p", "--port", type=int, default=None)
    ap_serve.add_argument("--host", default=None)
    ap_serve.add_argument("--no-watch", action="store_true", help="Disable reloading on file changes")
    ap_serve.add_argument("--stability-window", type=float, default=None, help="Seconds of quiet before reloading")
    ap_serve.add_argument("--no-cors", action="store_true", help="Disable CORS")
    ap_serve.add_argument("-v", "--verbose", action="store_true")

    _with_file("info", "Print file metadata")
    _with_file("validate", "Check that the file parses")

    ap_query = _with_file("query", "List rows with search/sort/pagination")
    ap_query.add_argument("--search", default=None)
    ap_query.add_argument("--columns", default=None, help="Comma-separated columns to return")
    ap_query.add_argument("--sort", default=None)
    ap_query.add_argument("--order", default="asc", choices=["asc", "desc"])
    ap_query.add_argument("--page", default=None)
    ap_query.add_argument("--limit", default=None)

    ap_stats = _with_file("stats", "Statistics for numeric columns")
    ap_stats.add_argument("--columns", default=None, help="Comma-separated columns to analyze")

    ap_unique = _with_file("unique", "Unique values of a column")
    ap_unique.add_argument("column")

    ap_get = _with_file("get", "One row by id")
    ap_get.add_argument("row_id")
    ap_get.add_argument("--id-column", default=None)

    args = ap.parse_args(argv)
    use_system_collation()

    settings = _settings_for(args)
    _check_csv_path(args.csv_file, settings)

    if args.cmd == "serve":
        return cmd_serve(settings, verbose=args.verbose)
    if args.cmd == "info":
        return cmd_info(settings)
    if args.cmd == "validate":
        return cmd_validate(settings)
    if args.cmd == "query":
        return cmd_query(settings, args)
    if args.cmd == "stats":
        return cmd_stats(settings, columns=args.columns)
    if args.cmd == "unique":
        return cmd_unique(settings, column=args.column)
    if args.cmd == "get":
        return cmd_get(settings, row_id=args.row_id, id_column=args.id_column)

    raise SystemExit("Unknown command")


if __name__ == "__main__":
    raise SystemExit(main())

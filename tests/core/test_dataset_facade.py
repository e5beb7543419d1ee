# ==============================
# Dataset Facade Tests
# ==============================
from __future__ import annotations

import pytest

from core.contracts.query_schema import QueryErrorCode
from core.dataset.errors import IngestionError
from core.dataset.facade import (
    GENERIC_ERROR_MESSAGE,
    Dataset,
    create_dataset,
    get_csv_info,
    quick_load,
    validate_csv,
)
from core.query import engine


class _FakeObserver:
    def __init__(self) -> None:
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.path = path

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout=None) -> None:
        return None


# ==============================
# Enveloped Queries
# ==============================


def test_list_rows_runs_search_sort_project_paginate(dataset: Dataset) -> None:
    res = dataset.list_rows(search="engineering", columns="name,age", sort="age", order="desc", page="1", limit="2")
    assert res.ok is True
    data = res.data
    assert data["data"] == [
        {"name": "Charlie Wilson", "age": "42"},
        {"name": "Bob Johnson", "age": "35"},
    ]
    assert data["total_results"] == 3
    assert data["pagination"]["total_pages"] == 2
    assert data["pagination"]["has_next"] is True
    assert data["applied_filters"] == {
        "search": "engineering",
        "columns": ["name", "age"],
        "sort": "age",
        "order": "desc",
    }


def test_list_rows_sorts_on_columns_left_out_of_projection(dataset: Dataset) -> None:
    res = dataset.list_rows(columns="name", sort="salary", order="asc", limit=1)
    assert res.data["data"] == [{"name": "Alice Brown"}]


def test_list_rows_defaults(dataset: Dataset) -> None:
    res = dataset.list_rows()
    assert len(res.data["data"]) == 5
    assert res.data["pagination"]["limit"] == 10
    assert res.data["applied_filters"]["order"] == "asc"


def test_list_rows_unknown_sort_column(dataset: Dataset) -> None:
    res = dataset.list_rows(sort="nope")
    assert res.ok is False
    assert res.error.code == QueryErrorCode.INVALID_COLUMN
    assert res.error.message == "Column 'nope' not found"
    assert res.error.details["parameter"] == "sort"
    assert "salary" in res.error.details["available_columns"]


def test_queries_without_data_report_no_data(tmp_path) -> None:
    ds = Dataset(tmp_path / "never.csv")
    for res in (ds.list_rows(), ds.get_row("1"), ds.list_columns(), ds.stats(), ds.unique("a")):
        assert res.ok is False
        assert res.error.code == QueryErrorCode.NO_DATA


def test_get_row_found(dataset: Dataset) -> None:
    res = dataset.get_row("3")
    assert res.data["found"] is True
    assert res.data["id_column"] == "id"
    assert res.data["row"]["name"] == "Bob Johnson"


def test_get_row_with_id_column(dataset: Dataset) -> None:
    res = dataset.get_row("jane@example.com", "email")
    assert res.data["row"]["id"] == "2"


def test_get_row_not_found_lists_sample_ids(dataset: Dataset) -> None:
    res = dataset.get_row("99")
    assert res.ok is True
    assert res.data["found"] is False
    assert res.data["row"] is None
    assert res.data["available_ids"] == ["1", "2", "3", "4", "5"]


def test_get_row_unknown_id_column(dataset: Dataset) -> None:
    res = dataset.get_row("1", "nope")
    assert res.error.code == QueryErrorCode.INVALID_COLUMN
    assert res.error.details["parameter"] == "idColumn"


def test_list_columns(dataset: Dataset) -> None:
    res = dataset.list_columns()
    assert res.data == {
        "columns": ["id", "name", "email", "age", "department", "salary"],
        "total_columns": 6,
    }


def test_stats_defaults_to_numeric_columns(dataset: Dataset) -> None:
    res = dataset.stats()
    assert res.data["analyzed_columns"] == ["id", "age", "salary"]
    assert res.data["total_rows"] == 5
    salary = res.data["stats"]["salary"]
    assert salary["count"] == 5
    assert salary["sum"] == 375000
    assert salary["mean"] == 75000
    assert salary["median"] == 75000
    assert salary["range"] == 40000


def test_stats_ignores_unknown_requested_columns(dataset: Dataset) -> None:
    res = dataset.stats("age,nope")
    assert res.ok is True
    assert res.data["analyzed_columns"] == ["age"]


def test_unique(dataset: Dataset) -> None:
    res = dataset.unique("department")
    assert res.data == {
        "column": "department",
        "unique_values": ["Engineering", "Marketing", "Sales"],
        "total_unique": 3,
        "total_rows": 5,
    }
    assert dataset.unique("nope").error.code == QueryErrorCode.INVALID_COLUMN


def test_unexpected_failure_becomes_internal_error(dataset: Dataset, monkeypatch) -> None:
    def _boom(rows, term):
        raise RuntimeError("secret detail")

    monkeypatch.setattr(engine, "search", _boom)
    res = dataset.list_rows(search="x")
    assert res.ok is False
    assert res.error.code == QueryErrorCode.INTERNAL_ERROR
    assert res.error.message == GENERIC_ERROR_MESSAGE
    assert "secret" not in str(res.to_dict())
    assert dataset.metrics.count("query.errors") == 1


def test_query_results_serialize(dataset: Dataset) -> None:
    body = dataset.unique("nope").to_dict()
    assert body["ok"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "invalid_column"


# ==============================
# Reload / Subscriptions
# ==============================


def test_reload_replaces_snapshot_and_notifies(dataset: Dataset, people_csv) -> None:
    seen = []
    changes = []
    dataset.subscribe(seen.append)
    dataset.on_change(lambda rows, columns: changes.append((len(rows), columns)))

    people_csv.write_text("id,city\n1,Oslo\n2,Lima\n", encoding="utf-8")
    snap = dataset.reload()

    assert dataset.snapshot() is snap
    assert dataset.columns() == ["id", "city"]
    assert seen == [snap]
    assert changes == [(2, ["id", "city"])]
    assert dataset.metrics.count("reload.success") == 1


def test_failed_reload_keeps_previous_snapshot(dataset: Dataset, people_csv) -> None:
    before = dataset.snapshot()
    seen = []
    dataset.subscribe(seen.append)

    people_csv.write_text('a,b\n"1"x,2\n', encoding="utf-8")
    with pytest.raises(IngestionError):
        dataset.reload()

    assert dataset.snapshot() is before
    assert dataset.list_rows().data["pagination"]["total_rows"] == 5
    assert seen == []
    assert dataset.metrics.count("reload.failure") == 1


def test_unsubscribe_stops_notifications(dataset: Dataset) -> None:
    seen = []
    sub = dataset.subscribe(seen.append)
    assert sub.active is True
    sub.unsubscribe()
    sub.unsubscribe()
    assert sub.active is False
    dataset.reload()
    assert seen == []


def test_failing_listener_does_not_block_others(dataset: Dataset) -> None:
    seen = []

    def _bad(snapshot):
        raise RuntimeError("listener broke")

    dataset.subscribe(_bad)
    dataset.subscribe(seen.append)
    snap = dataset.reload()
    assert seen == [snap]


def test_watch_and_stop(dataset: Dataset) -> None:
    observers = []

    def _factory():
        obs = _FakeObserver()
        observers.append(obs)
        return obs

    assert dataset.watch(stability_window=0.1, observer_factory=_factory) is True
    assert dataset.watching is True
    assert observers[0].started is True
    dataset.stop_watching()
    assert dataset.watching is False
    assert observers[0].stopped is True


def test_watch_without_source_raises() -> None:
    with pytest.raises(IngestionError):
        Dataset().watch()


def test_load_without_source_raises() -> None:
    with pytest.raises(IngestionError):
        Dataset().load()


# ==============================
# Library Conveniences
# ==============================


def test_module_helpers(people_csv, tmp_path) -> None:
    ds = create_dataset(people_csv)
    assert ds.is_loaded is True
    assert quick_load(people_csv).total_rows == 5
    assert validate_csv(people_csv) is True
    assert validate_csv(tmp_path / "missing.csv") is False
    info = get_csv_info(people_csv)
    assert info["file_name"] == "people.csv"
    assert info["columns"][0] == "id"


def test_create_dataset_raises_for_missing_file(tmp_path) -> None:
    with pytest.raises(IngestionError):
        create_dataset(tmp_path / "missing.csv")


# ==============================
# Snapshot Immutability / Numeric Edge
# ==============================


def test_rows_handed_out_cannot_change_the_snapshot(dataset: Dataset) -> None:
    before = dict(dataset.snapshot().rows[0])
    for rows in (dataset.search("john"), dataset.sort("age"), dataset.rows()):
        with pytest.raises(TypeError):
            rows[0]["name"] = "changed"
    with pytest.raises(TypeError):
        dataset.find_by_id("1")["name"] = "changed"
    assert dict(dataset.snapshot().rows[0]) == before


def test_stats_skip_values_that_overflow(tmp_path) -> None:
    path = tmp_path / "big.csv"
    path.write_text("id,v\n1,1e400\n2,5\n", encoding="utf-8")
    ds = create_dataset(path)
    res = ds.stats()
    assert res.ok is True
    assert res.data["stats"]["v"]["count"] == 1
    assert res.data["stats"]["v"]["max"] == 5

# ==============================
# Testing Fixtures
# ==============================
from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from core.config.schema import Settings
from core.dataset.facade import Dataset
from gateway.api import deps as gateway_deps
from gateway.api.http_app import create_app

PEOPLE_CSV = """\
id,name,email,age,department,salary
1,John Doe,john@example.com,30,Engineering,75000
2,Jane Smith,jane@example.com,25,Marketing,65000
3,Bob Johnson,bob@example.com,35,Engineering,85000
4,Alice Brown,alice@example.com,28,Sales,55000
5,Charlie Wilson,charlie@example.com,42,Engineering,95000
"""


def write_csv(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


@pytest.fixture
def people_rows() -> List[Dict[str, Optional[str]]]:
    """Small in-memory row set shaped like a parsed CSV."""
    return [
        {"id": "1", "name": "John Doe", "age": "30", "department": "Engineering"},
        {"id": "2", "name": "Jane Smith", "age": "25", "department": "Marketing"},
        {"id": "3", "name": "Bob Johnson", "age": "35", "department": "Engineering"},
        {"id": "4", "name": "alice brown", "age": None, "department": "Sales"},
    ]


@pytest.fixture
def people_csv(tmp_path: Path) -> Path:
    return write_csv(tmp_path / "people.csv", PEOPLE_CSV)


@pytest.fixture
def dataset(people_csv: Path) -> Dataset:
    """Facade over people.csv, loaded, not watching."""
    ds = Dataset(people_csv)
    ds.load()
    return ds


@pytest.fixture
def app_client(dataset: Dataset) -> TestClient:
    """FastAPI test client wired to the loaded dataset."""
    gateway_deps.get_settings.cache_clear()
    gateway_deps.get_metrics.cache_clear()
    gateway_deps.get_dataset.cache_clear()
    app = create_app(dataset=dataset, settings=Settings())
    return TestClient(app)

# ==============================
# API Dependencies / Singletons
# ==============================
from __future__ import annotations

import logging
from functools import lru_cache

from core.config.loader import load_settings
from core.config.schema import Settings
from core.dataset.errors import IngestionError
from core.dataset.facade import Dataset
from core.logging.metrics import Metrics

logger = logging.getLogger("csv2api.gateway")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_metrics() -> Metrics:
    return Metrics()


@lru_cache(maxsize=1)
def get_dataset() -> Dataset:
    settings = get_settings()
    dataset = Dataset.from_settings(settings, metrics=get_metrics())
    if dataset.source_path is None:
        logger.warning("no dataset.path configured; serving without data")
        return dataset
    try:
        dataset.load()
    except IngestionError as exc:
        # endpoints answer no_data until a later reload succeeds
        logger.error("initial load failed: %s", exc.message, extra={"path": exc.path})
    return dataset

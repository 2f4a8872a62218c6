from __future__ import annotations

import hashlib
import logging

import pandas as pd

from vendor_request_app.core.config import AppConfig
from vendor_request_app.engine.derivation import derive_rows
from vendor_request_app.engine.query import QueryControls, ViewResult, query_view
from vendor_request_app.engine.views import ViewSpec
from vendor_request_app.infrastructure.cache import LruTtlCache

LOGGER = logging.getLogger(__name__)


def snapshot_fingerprint(records: pd.DataFrame) -> str:
    """Content hash of a record snapshot; equal frames hash equal regardless of index."""
    digest = hashlib.sha1("|".join(str(column) for column in records.columns).encode("utf-8"))
    if not records.empty:
        hashed = pd.util.hash_pandas_object(records.astype(str), index=False)
        digest.update(hashed.to_numpy().tobytes())
    return digest.hexdigest()


class ViewBuilder:
    """Derive then query a record snapshot, memoized per (view, snapshot, controls)."""

    def __init__(self, *, enabled: bool, ttl_seconds: int, max_entries: int, page_size: int) -> None:
        self.page_size = int(page_size)
        self._cache = LruTtlCache[tuple[str, str, QueryControls, int], ViewResult](
            enabled=enabled,
            ttl_seconds=ttl_seconds,
            max_entries=max_entries,
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "ViewBuilder":
        return cls(
            enabled=config.view_cache_enabled,
            ttl_seconds=config.view_cache_ttl_seconds,
            max_entries=config.view_cache_max_entries,
            page_size=config.page_size,
        )

    def clear(self) -> None:
        self._cache.clear()

    def build(self, records: pd.DataFrame, controls: QueryControls, view: ViewSpec) -> ViewResult:
        if not self._cache.enabled:
            return self._compute(records, controls, view)
        key = (view.name, snapshot_fingerprint(records), controls, self.page_size)
        return self._cache.get_or_load(key, lambda: self._compute(records, controls, view))

    def _compute(self, records: pd.DataFrame, controls: QueryControls, view: ViewSpec) -> ViewResult:
        rows = derive_rows(records, view.derivation_mode)
        result = query_view(rows, controls, view, page_size=self.page_size)
        LOGGER.debug(
            "Built view. view=%s rows=%s filtered=%s page=%s",
            view.name,
            len(rows.index),
            result.filtered_count,
            controls.page,
            extra={"event": "view_built", "view": view.name},
        )
        return result

from __future__ import annotations

import json
import logging

from scorecard.catalog import MetricCatalog, catalog_from_blob
from scorecard.constants import CATALOG_KEY, STORE_KEY
from scorecard.dates import utc_now_iso
from scorecard.errors import StorageCorruption
from scorecard.migration import migrate_store
from scorecard.models import StoreState

logger = logging.getLogger(__name__)

CORRUPT_SUFFIX = ".corrupt"


class KeyValueStore:
    """String key to string value persistence."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def set_many(self, items: dict) -> None:
        for key, value in items.items():
            self.set(key, value)


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: dict | None = None):
        self._values = dict(initial or {})

    def get(self, key):
        return self._values.get(key)

    def set(self, key, value):
        self._values[key] = value

    def set_many(self, items):
        self._values.update(items)

    def snapshot(self) -> dict:
        return dict(self._values)


def encode_blob(value) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


def decode_blob(raw):
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise StorageCorruption(f"Persisted blob is not valid JSON: {exc}") from exc


class ScorecardRepository:
    def __init__(self, kv: KeyValueStore, catalog_key: str = CATALOG_KEY, store_key: str = STORE_KEY):
        self.kv = kv
        self.catalog_key = catalog_key
        self.store_key = store_key

    def _quarantine(self, key: str, exc: Exception) -> None:
        logger.warning("Stored %s is unreadable (%s); falling back to defaults", key, exc)
        raw = self.kv.get(key)
        if raw is not None:
            self.kv.set(f"{key}{CORRUPT_SUFFIX}", raw)

    def load_catalog(self) -> MetricCatalog:
        try:
            blob = decode_blob(self.kv.get(self.catalog_key))
            if blob is None:
                catalog = MetricCatalog.from_defaults()
                self.kv.set(self.catalog_key, encode_blob(catalog.to_blob()))
                logger.info("Seeded metric catalog with %d default definitions", len(catalog))
                return catalog
            catalog, changed = catalog_from_blob(blob)
        except StorageCorruption as exc:
            self._quarantine(self.catalog_key, exc)
            return MetricCatalog.from_defaults()

        if changed:
            self.kv.set(self.catalog_key, encode_blob(catalog.to_blob()))
            logger.info("Normalized stored metric catalog to the current representation")
        return catalog

    def load_store(self, catalog: MetricCatalog) -> StoreState:
        try:
            blob = decode_blob(self.kv.get(self.store_key))
            state, changed = migrate_store(blob, catalog, utc_now_iso())
        except StorageCorruption as exc:
            self._quarantine(self.store_key, exc)
            return StoreState()

        if changed:
            self.kv.set(self.store_key, encode_blob(state.to_payload()))
        return state

    def save(self, catalog: MetricCatalog | None = None, state: StoreState | None = None) -> None:
        items = {}
        if catalog is not None:
            items[self.catalog_key] = encode_blob(catalog.to_blob())
        if state is not None:
            items[self.store_key] = encode_blob(state.to_payload())
        if items:
            self.kv.set_many(items)

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine

from backend.db_init import KV_TABLE
from scorecard.storage import KeyValueStore

_UPSERT_SQL = (
    f"INSERT INTO {KV_TABLE} (key, value, updated_at) VALUES (:key, :value, :updated_at) "
    "ON CONFLICT(key) DO UPDATE SET value=EXCLUDED.value, updated_at=EXCLUDED.updated_at"
)


class SqlKeyValueStore(KeyValueStore):
    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, key):
        with self.engine.connect() as conn:
            row = conn.execute(
                sql_text(f"SELECT value FROM {KV_TABLE} WHERE key = :key"),
                {"key": key},
            ).fetchone()
        return row[0] if row else None

    def set(self, key, value):
        self.set_many({key: value})

    def set_many(self, items):
        updated_at = datetime.now(timezone.utc).isoformat()
        with self.engine.begin() as conn:
            for key, value in items.items():
                conn.execute(
                    sql_text(_UPSERT_SQL),
                    {"key": key, "value": value, "updated_at": updated_at},
                )

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _normalize_database_url(database_url: str) -> str:
    url = str(database_url or "").strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    return url


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith("sqlite:"))


def build_engine(database_url: str) -> Engine:
    db_url = _normalize_database_url(database_url)
    if _is_memory_sqlite(db_url):
        # One shared connection, or every checkout would see an empty database.
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    elif db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False}, future=True)
    else:
        engine = create_engine(db_url, pool_pre_ping=True, future=True)
    logger.debug("Created engine for %s", engine.url.render_as_string(hide_password=True))
    return engine

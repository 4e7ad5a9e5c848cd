from __future__ import annotations

import asyncio
import logging
import threading
from datetime import date

from scorecard import aggregation, days, exchange
from scorecard.catalog import MetricCatalog
from scorecard.constants import CATALOG_KEY, DEFAULT_STEP_TOLERANCE, STORE_KEY
from scorecard.dates import parse_iso_date, today_in_timezone, utc_now_iso, week_monday_for
from scorecard.errors import ImportInProgressError, ParseError, SchemaError
from scorecard.migration import ImportResult, apply_import, parse_payload_text
from scorecard.models import DayEntry, MetricDefinition, WeekStructure, WeekSummary
from scorecard.storage import KeyValueStore, ScorecardRepository

logger = logging.getLogger(__name__)


class ScorecardService:
    """Entry point for every read and mutation of the scorecard.

    The catalog and store are held as values; each mutation computes new
    values, persists them in one write and only then swaps them in, so a
    failed operation leaves both memory and storage untouched.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        today_getter=None,
        step_tolerance: float = DEFAULT_STEP_TOLERANCE,
        timezone_name: str = "local",
        catalog_key: str = CATALOG_KEY,
        store_key: str = STORE_KEY,
    ):
        self.repository = ScorecardRepository(kv, catalog_key=catalog_key, store_key=store_key)
        self.step_tolerance = step_tolerance
        self.timezone_name = timezone_name or "local"
        self._today_getter = today_getter or (lambda: today_in_timezone(self.timezone_name))
        self._lock = threading.RLock()
        self._import_lock = asyncio.Lock()

        with self._lock:
            self.catalog = self.repository.load_catalog()
            self.state = self.repository.load_store(self.catalog)

    def today(self) -> date:
        return parse_iso_date(self._today_getter())

    # Metric catalog

    def resolve_active_definitions(self, day) -> list[MetricDefinition]:
        return self.catalog.resolve_active_definitions(day)

    def resolve_definition(self, metric_id: str, day) -> MetricDefinition | None:
        return self.catalog.resolve_definition(metric_id, day)

    def snapshot_for_date_range(self, start, end) -> list[MetricDefinition]:
        return self.catalog.snapshot_for_date_range(start, end)

    def _commit_catalog(self, catalog: MetricCatalog) -> MetricCatalog:
        self.repository.save(catalog=catalog)
        self.catalog = catalog
        return catalog

    def append_metric_version(self, definition, effective_from) -> MetricCatalog:
        with self._lock:
            return self._commit_catalog(self.catalog.append_version(definition, effective_from, self.today()))

    def retire_metric(self, metric_id: str, retire_from) -> MetricCatalog:
        with self._lock:
            return self._commit_catalog(self.catalog.retire(metric_id, retire_from, self.today()))

    # Day records

    def get_day(self, day) -> DayEntry | None:
        return days.get_day(self.state, day)

    def save_day(self, day, raw_values: dict | None) -> DayEntry:
        with self._lock:
            entry = days.build_day_entry(
                self.catalog,
                day,
                raw_values,
                saved_at=utc_now_iso(),
                tolerance=self.step_tolerance,
            )
            state = days.put_day(self.state, entry)
            self.repository.save(state=state)
            self.state = state
        logger.info("Saved %s", entry.day.iso_date.isoformat())
        return entry

    def delete_day(self, day) -> None:
        with self._lock:
            state = days.delete_day(self.state, day)
            self.repository.save(state=state)
            self.state = state
        logger.info("Deleted %s", days.day_key(day))

    # Weeks

    def get_week_structure(self, week_monday) -> WeekStructure:
        return days.get_week_structure(self.state, week_monday)

    def set_week_structure(self, week_monday, structure: WeekStructure) -> WeekStructure:
        with self._lock:
            state = days.set_week_structure(self.state, week_monday, structure, utc_now_iso())
            self.repository.save(state=state)
            self.state = state
        logger.info("Updated weekly structure for %s", week_monday_for(week_monday).isoformat())
        return structure

    def summarize_week(self, week_monday) -> WeekSummary:
        return aggregation.summarize_week(self.catalog, self.state, week_monday)

    def list_recent_weeks(self, limit: int = 10) -> list[WeekSummary]:
        state = self.state
        return [
            aggregation.summarize_week(self.catalog, state, monday)
            for monday in aggregation.weeks_with_data(state)[:limit]
        ]

    # Exchange

    def export_day(self, day) -> dict:
        return exchange.export_day(self.state, day)

    def export_week(self, week_monday) -> dict:
        return exchange.export_week(self.catalog, self.state, week_monday, self.timezone_name)

    def export_all(self) -> dict:
        return exchange.export_all(self.catalog, self.state, self.timezone_name)

    def import_text(self, text) -> ImportResult:
        with self._lock:
            try:
                payload = parse_payload_text(text)
                catalog, state, result = apply_import(payload, self.catalog, self.state, utc_now_iso())
            except (ParseError, SchemaError) as exc:
                logger.warning("Import rejected: %s", exc)
                raise
            catalog_changed = catalog is not self.catalog
            self.repository.save(catalog=catalog if catalog_changed else None, state=state)
            self.catalog = catalog
            self.state = state
        logger.info("%s (%s, %d days)", result.describe(), result.schema, len(result.days))
        return result

    async def import_from(self, read, wait: bool = True) -> ImportResult:
        """Await ``read()`` for the raw payload, then merge it synchronously.

        Only one import runs at a time; later ones queue, or fail fast with
        ``wait=False``.
        """
        if not wait and self._import_lock.locked():
            raise ImportInProgressError("Another import is still running.")
        async with self._import_lock:
            raw = await read()
            return self.import_text(raw)

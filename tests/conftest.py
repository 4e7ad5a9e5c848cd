from datetime import date

import pytest

from scorecard.catalog import MetricCatalog
from scorecard.service import ScorecardService
from scorecard.storage import MemoryKeyValueStore

TODAY = date(2024, 3, 6)


@pytest.fixture
def catalog():
    return MetricCatalog.from_defaults()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def service(kv):
    return ScorecardService(kv, today_getter=lambda: TODAY)

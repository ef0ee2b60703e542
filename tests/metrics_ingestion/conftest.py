"""
Shared fixtures for metrics ingestion tests.
"""

from datetime import datetime, timezone

import pytest

from metrics_ingestion.clock import FixedClock
from metrics_ingestion.types import CollectorConfig

from tests.metrics_ingestion.fakes import make_config


@pytest.fixture
def fixed_time() -> datetime:
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_time) -> FixedClock:
    return FixedClock(fixed_time)


@pytest.fixture
def config() -> CollectorConfig:
    return make_config()

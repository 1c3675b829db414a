"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from config import ServiceConfig
from models import EarthquakeNotification
from state import SeenStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _no_dry_run(monkeypatch):
    monkeypatch.delenv("DRY_RUN", raising=False)


@pytest.fixture
def sample_config():
    return ServiceConfig(
        check_interval=300,
        telegram_api_key="123:abc",
        telegram_chat_id="-1001",
    )


@pytest.fixture
def sample_notification():
    return EarthquakeNotification(
        id="us7000abcd",
        timestamp=1768478400,
        magnitude=6.1,
        location="45 km SW of Somewhere, Chile",
        url="https://earthquake.usgs.gov/earthquakes/eventpage/us7000abcd",
        latitude=-33.5,
        longitude=-71.25,
    )


@pytest.fixture
def seen_store(tmp_path):
    return SeenStore(tmp_path / "seen.json", retention_seconds=72 * 3600)


@pytest.fixture
def load_fixture():
    """Return a function that loads a JSON fixture."""
    def _load(name: str):
        with open(FIXTURES_DIR / name) as f:
            return json.load(f)
    return _load

import os
from datetime import UTC, datetime

import pytest


@pytest.fixture(autouse=True)
def mock_home(tmp_path, monkeypatch):
    """Points HOME at a temp dir and clears CADENCE_* variables so config is isolated."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("CADENCE_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def tz():
    return UTC


@pytest.fixture
def now():
    """A fixed reference instant: 2024-03-10 09:00 UTC."""
    return datetime(2024, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
def now_ms(now):
    return int(now.timestamp() * 1000)


@pytest.fixture
def mature():
    """A stage-3 record with a ten day interval and no penalties."""
    return {"review_count": 5, "interval_days": 10, "ease": 2.5, "penalty_level": 0}

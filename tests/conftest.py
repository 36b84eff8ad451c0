"""
Pytest configuration and shared fixtures for csvglicko tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from csvglicko.config import ENV_PREFIX
from csvglicko.glicko2 import Glicko2Rating

SETTINGS_VARIABLES = [
    "DEFAULT_RATING",
    "DEFAULT_DEVIATION",
    "DEFAULT_VOLATILITY",
    "TAU",
    "TOLERANCE",
    "MAX_BRACKET_ITERATIONS",
    "MAX_ITERATIONS",
    "PROVISIONAL_THRESHOLD",
]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (large randomized sweeps)"
    )


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-slow", action="store_true", default=False, help="Run slow randomized sweeps"
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is specified."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="Need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def glickman_player() -> Glicko2Rating:
    """The player from Glickman's worked example."""
    return Glicko2Rating(rating=1500, deviation=200, volatility=0.06)


@pytest.fixture
def glickman_games() -> list[tuple[Glicko2Rating, float]]:
    """Opponents and scores from Glickman's worked example: win, loss, loss."""
    return [
        (Glicko2Rating(rating=1400, deviation=30), 1.0),
        (Glicko2Rating(rating=1550, deviation=100), 0.0),
        (Glicko2Rating(rating=1700, deviation=300), 0.0),
    ]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every CSVGLICKO_* variable from the environment."""
    for name in SETTINGS_VARIABLES:
        monkeypatch.delenv(ENV_PREFIX + name, raising=False)
    return monkeypatch


@pytest.fixture
def write_games(tmp_path):
    """Write CSV text to a file and return its path."""
    def _write(text: str, name: str = "games.csv") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write

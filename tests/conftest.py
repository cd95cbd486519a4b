import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from tastesim.data_model import DataModel, GenericDataModel  # noqa: E402
from tastesim.refresh import RefreshHelper  # noqa: E402


@pytest.fixture
def fresh_config(monkeypatch):
    """
    Reload config after the test has set environment overrides.
    """
    import tastesim.config as config

    def _reload():
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


@pytest.fixture
def ratings_model():
    """Build users 'test1', 'test2', ... rating items 0..n-1 with the given values."""

    def _build(*rows):
        return GenericDataModel(
            {
                f"test{u + 1}": {item: value for item, value in enumerate(values) if value is not None}
                for u, values in enumerate(rows)
            }
        )

    return _build


class ExplodingDataModel(DataModel):
    """Data model that fails the test if any query reaches it."""

    def __init__(self):
        self.refresh_calls = 0
        self._refresh_helper = RefreshHelper(self, self._count_refresh)

    def _count_refresh(self):
        self.refresh_calls += 1

    def _fail(self, *args, **kwargs):
        raise AssertionError("data model should not have been queried")

    user_ids = item_ids = num_users = num_items = _fail
    item_ids_from_user = preferences_from_user = preferences_for_item = _fail
    preference_value = num_users_with_preference_for = has_preference_values = _fail

    def refresh(self, already_refreshed=None):
        self._refresh_helper.refresh(already_refreshed)


@pytest.fixture
def exploding_model():
    return ExplodingDataModel()


@pytest.fixture
def small_model():
    """
    Four users over five items with a mix of rated and boolean preferences.
    """
    return GenericDataModel(
        {
            "alice": {"i1": 5.0, "i2": 3.0, "i3": 2.5},
            "bob": {"i1": 4.0, "i2": 2.0, "i4": 1.0},
            "carol": {"i2": 4.5, "i3": 1.0, "i5": None},
            "dave": {"i4": 0.0, "i5": None},
        }
    )

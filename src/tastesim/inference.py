"""Preference inference from a user's own average preference."""

from __future__ import annotations

import logging
import threading
from typing import Hashable

from .data_model import DataModel
from .refresh import RefreshedSet, RefreshHelper
from .similarity import PreferenceInferrer

logger = logging.getLogger(__name__)


class AveragingPreferenceInferrer(PreferenceInferrer):
    """
    Infers a missing preference as the mean of the user's known preference values.

    Averages are memoised per user until the next refresh. Users without any
    valued preference get 0.0.
    """

    def __init__(self, data_model: DataModel):
        self.data_model = data_model
        self._averages: dict[Hashable, float] = {}
        self._lock = threading.Lock()
        self._refresh_helper = RefreshHelper(self, self._clear_averages)
        self._refresh_helper.add_dependency(data_model)

    def infer_preference(self, user_id: Hashable, item_id: Hashable) -> float:
        with self._lock:
            cached = self._averages.get(user_id)
        if cached is not None:
            return cached

        values = [v for v in self.data_model.preferences_from_user(user_id).values() if v is not None]
        average = sum(values) / len(values) if values else 0.0
        with self._lock:
            self._averages[user_id] = average
        return average

    def _clear_averages(self) -> None:
        with self._lock:
            dropped = len(self._averages)
            self._averages.clear()
        logger.debug(f"Cleared {dropped} cached user averages")

    def refresh(self, already_refreshed: RefreshedSet | None = None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self) -> str:
        return f"AveragingPreferenceInferrer(data_model={self.data_model!r})"

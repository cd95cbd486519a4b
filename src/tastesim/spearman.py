"""
Spearman rank correlation similarity.

Ranks the two preference sequences over their common items (ties receive
the average of the ranks they span) and returns the Pearson correlation of
those ranks.
"""

from __future__ import annotations

import logging
import math
from typing import Hashable, Mapping

import numpy as np
from scipy.stats import rankdata

from .data_model import DataModel
from .errors import DomainUndefinedError, InvalidArgumentError
from .refresh import RefreshedSet, RefreshHelper
from .similarity import ItemSimilarity, PreferenceInferrer, UserSimilarity, require_ids

logger = logging.getLogger(__name__)

# Fewer paired observations leave the correlation undefined
MIN_COMMON_ITEMS = 2


def rank_correlation(xs, ys) -> float:
    """
    Spearman correlation of two paired value sequences.

    Raises:
        DomainUndefinedError: fewer than two pairs, or all values tied on one side
    """
    x = np.asarray(xs, dtype=np.float64)
    y = np.asarray(ys, dtype=np.float64)
    if x.shape != y.shape:
        raise InvalidArgumentError(f"Sequences differ in length: {x.size} vs {y.size}")
    if x.size < MIN_COMMON_ITEMS:
        raise DomainUndefinedError(
            f"Rank correlation needs at least {MIN_COMMON_ITEMS} common items, got {x.size}"
        )

    x_dev = rankdata(x, method="average") - (x.size + 1) / 2.0
    y_dev = rankdata(y, method="average") - (y.size + 1) / 2.0
    x_norm = float(np.dot(x_dev, x_dev))
    y_norm = float(np.dot(y_dev, y_dev))
    if x_norm == 0.0 or y_norm == 0.0:
        raise DomainUndefinedError("Rank correlation is undefined when all values are tied")

    correlation = float(np.dot(x_dev, y_dev)) / math.sqrt(x_norm * y_norm)
    return max(-1.0, min(1.0, correlation))


def _paired_values(
    prefs1: Mapping[Hashable, float | None],
    prefs2: Mapping[Hashable, float | None],
) -> tuple[list[float], list[float]]:
    common = sorted(k for k, v in prefs1.items() if v is not None and prefs2.get(k) is not None)
    return [prefs1[k] for k in common], [prefs2[k] for k in common]


class SpearmanCorrelationSimilarity(UserSimilarity, ItemSimilarity):
    """
    Rank correlation between two users' (or two items') preference values.

    With a preference inferrer attached, items preferred by only one of the
    two users are included with the other user's value inferred.
    """

    def __init__(self, data_model: DataModel):
        self.data_model = data_model
        self._inferrer: PreferenceInferrer | None = None
        self._refresh_helper = RefreshHelper(self)
        self._refresh_helper.add_dependency(data_model)

    @property
    def preference_inferrer(self) -> PreferenceInferrer | None:
        return self._inferrer

    def set_preference_inferrer(self, inferrer: PreferenceInferrer) -> None:
        if inferrer is None:
            raise InvalidArgumentError("inferrer must not be None")
        self._refresh_helper.remove_dependency(self._inferrer)
        self._refresh_helper.add_dependency(inferrer)
        self._inferrer = inferrer

    def _inferred_pairs(
        self,
        user_id1: Hashable,
        user_id2: Hashable,
        prefs1: Mapping[Hashable, float | None],
        prefs2: Mapping[Hashable, float | None],
    ) -> tuple[list[float], list[float]]:
        xs, ys = [], []
        for item_id in sorted(set(prefs1) | set(prefs2)):
            x = prefs1.get(item_id)
            y = prefs2.get(item_id)
            if x is None and item_id not in prefs1:
                x = self._inferrer.infer_preference(user_id1, item_id)
            if y is None and item_id not in prefs2:
                y = self._inferrer.infer_preference(user_id2, item_id)
            if x is None or y is None:
                # Boolean preference: nothing to rank.
                continue
            xs.append(x)
            ys.append(y)
        return xs, ys

    def user_similarity(self, user_id1: Hashable, user_id2: Hashable) -> float:
        require_ids(user_id1, user_id2)
        prefs1 = self.data_model.preferences_from_user(user_id1)
        prefs2 = self.data_model.preferences_from_user(user_id2)

        if self._inferrer is None:
            xs, ys = _paired_values(prefs1, prefs2)
        else:
            xs, ys = self._inferred_pairs(user_id1, user_id2, prefs1, prefs2)
        return rank_correlation(xs, ys)

    def item_similarity(self, item_id1: Hashable, item_id2: Hashable) -> float:
        require_ids(item_id1, item_id2)
        xs, ys = _paired_values(
            self.data_model.preferences_for_item(item_id1),
            self.data_model.preferences_for_item(item_id2),
        )
        return rank_correlation(xs, ys)

    def refresh(self, already_refreshed: RefreshedSet | None = None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self) -> str:
        return f"SpearmanCorrelationSimilarity(data_model={self.data_model!r})"

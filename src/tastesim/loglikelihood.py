"""
Log-likelihood ratio similarity.

Scores how unlikely the observed co-occurrence of two users (or items) would
be if their preferences were independent, using Dunning's G-test statistic
(twoLogLambda) over a 2x2 contingency table. Only set membership is used;
preference values are ignored.

See Ted Dunning, "Accurate Methods for the Statistics of Surprise and
Coincidence", Computational Linguistics 19(1), 1993.
"""

from __future__ import annotations

import logging
import math
from typing import Hashable, Iterable

import numpy as np

from .data_model import DataModel
from .errors import UnsupportedCapabilityError
from .refresh import RefreshedSet, RefreshHelper
from .similarity import ItemSimilarity, PreferenceInferrer, UserSimilarity, require_ids

logger = logging.getLogger(__name__)


def safe_log(d: float) -> float:
    """Natural log, with non-positive inputs mapped to 0 instead of -inf."""
    return 0.0 if d <= 0.0 else math.log(d)


def log_l(p: float, k: float, n: float) -> float:
    return k * safe_log(p) + (n - k) * safe_log(1.0 - p)


def _ratio(k: float, n: float) -> float:
    # k <= n always, so an empty row contributes nothing to log_l.
    return k / n if n else 0.0


def two_log_lambda(k1: float, k2: float, n1: float, n2: float) -> float:
    """
    G-test statistic for the table with k1 of n1 and k2 of n2 successes.

    Args:
        k1: Count preferring both
        k2: Count preferring the first but not the second
        n1: Count preferring the second
        n2: Total minus n1
    """
    p = _ratio(k1 + k2, n1 + n2)
    return 2.0 * (
        log_l(_ratio(k1, n1), k1, n1)
        + log_l(_ratio(k2, n2), k2, n2)
        - log_l(p, k1, n1)
        - log_l(p, k2, n2)
    )


def log_likelihood_score(k1: float, k2: float, n1: float, n2: float) -> float:
    """Map twoLogLambda from [0, inf) onto [0, 1)."""
    # Rounding can push a zero statistic slightly negative.
    log_likelihood = max(0.0, two_log_lambda(k1, k2, n1, n2))
    return 1.0 - 1.0 / (1.0 + log_likelihood)


class LogLikelihoodSimilarity(UserSimilarity, ItemSimilarity):
    """Log-likelihood similarity over users or items of a data model."""

    def __init__(self, data_model: DataModel):
        self.data_model = data_model
        self._refresh_helper = RefreshHelper(self)
        self._refresh_helper.add_dependency(data_model)

    def set_preference_inferrer(self, inferrer: PreferenceInferrer) -> None:
        raise UnsupportedCapabilityError("LogLikelihoodSimilarity does not use preference values")

    def user_similarity(self, user_id1: Hashable, user_id2: Hashable) -> float:
        require_ids(user_id1, user_id2)
        prefs1 = self.data_model.item_ids_from_user(user_id1)
        prefs2 = self.data_model.item_ids_from_user(user_id2)

        prefs1_size = len(prefs1)
        prefs2_size = len(prefs2)
        if prefs1_size < prefs2_size:
            intersection_size = sum(1 for item_id in prefs1 if item_id in prefs2)
        else:
            intersection_size = sum(1 for item_id in prefs2 if item_id in prefs1)
        num_items = self.data_model.num_items()

        return log_likelihood_score(
            intersection_size,
            prefs1_size - intersection_size,
            prefs2_size,
            num_items - prefs2_size,
        )

    def item_similarity(self, item_id1: Hashable, item_id2: Hashable) -> float:
        require_ids(item_id1, item_id2)
        preferring1and2 = self.data_model.num_users_with_preference_for(item_id1, item_id2)
        preferring1 = self.data_model.num_users_with_preference_for(item_id1)
        preferring2 = self.data_model.num_users_with_preference_for(item_id2)
        num_users = self.data_model.num_users()

        return log_likelihood_score(
            preferring1and2,
            preferring1 - preferring1and2,
            preferring2,
            num_users - preferring2,
        )

    def item_similarities(self, item_id: Hashable, other_ids: Iterable[Hashable]) -> np.ndarray:
        other_ids = list(other_ids)
        require_ids(item_id, *other_ids)
        # Marginals for item_id are shared by every pair in the batch.
        preferring1 = self.data_model.num_users_with_preference_for(item_id)
        num_users = self.data_model.num_users()

        scores = np.empty(len(other_ids), dtype=np.float64)
        for idx, other in enumerate(other_ids):
            preferring1and2 = self.data_model.num_users_with_preference_for(item_id, other)
            preferring2 = self.data_model.num_users_with_preference_for(other)
            scores[idx] = log_likelihood_score(
                preferring1and2,
                preferring1 - preferring1and2,
                preferring2,
                num_users - preferring2,
            )
        return scores

    def refresh(self, already_refreshed: RefreshedSet | None = None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self) -> str:
        return f"LogLikelihoodSimilarity(data_model={self.data_model!r})"

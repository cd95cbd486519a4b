"""
Capability contracts shared by all similarity metrics.

A recommendation engine holds a UserSimilarity or ItemSimilarity without
knowing which metric implements it. Preference inference is an optional
capability: metrics that cannot use an inferrer raise
UnsupportedCapabilityError from ``set_preference_inferrer`` instead of
ignoring it.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Hashable, Iterable

import numpy as np

from .errors import InvalidArgumentError
from .refresh import Refreshable


def require_ids(*ids: Hashable) -> None:
    """Raise InvalidArgumentError if any identifier is missing."""
    if any(i is None for i in ids):
        raise InvalidArgumentError(f"Identifier must not be None, got {ids!r}")


class PreferenceInferrer(Refreshable):
    """Estimates the preference a user would express for an item they have not rated."""

    @abstractmethod
    def infer_preference(self, user_id: Hashable, item_id: Hashable) -> float: ...


class UserSimilarity(Refreshable):
    """Similarity between two users."""

    @abstractmethod
    def user_similarity(self, user_id1: Hashable, user_id2: Hashable) -> float: ...

    @abstractmethod
    def set_preference_inferrer(self, inferrer: PreferenceInferrer) -> None:
        """
        Attach an inferrer used to fill in missing preferences.

        Raises:
            UnsupportedCapabilityError: if the metric cannot use inferred values
        """

    def score(self, id1: Hashable, id2: Hashable) -> float:
        return self.user_similarity(id1, id2)

    def configure_preference_inference(self, inferrer: PreferenceInferrer) -> None:
        self.set_preference_inferrer(inferrer)


class ItemSimilarity(Refreshable):
    """Similarity between two items."""

    @abstractmethod
    def item_similarity(self, item_id1: Hashable, item_id2: Hashable) -> float: ...

    def item_similarities(self, item_id: Hashable, other_ids: Iterable[Hashable]) -> np.ndarray:
        """Similarity of ``item_id`` to each of ``other_ids``, in order."""
        return np.array([self.item_similarity(item_id, other) for other in other_ids], dtype=np.float64)

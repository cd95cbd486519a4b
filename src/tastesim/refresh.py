"""
Cascading refresh for graphs of stateful components.

A refresh request travels from the component it was issued to through all
of its collaborators. Every participant records itself in a shared
RefreshedSet, so each component refreshes at most once per cascade even when
collaborators are shared or reference each other in a cycle.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Iterator

logger = logging.getLogger(__name__)


class Refreshable(ABC):
    """A component that can reload its state and that of its collaborators."""

    @abstractmethod
    def refresh(self, already_refreshed: RefreshedSet | None = None) -> None:
        """
        Refresh this component and, transitively, its collaborators.

        Args:
            already_refreshed: Components already handled in the current
                cascade. ``None`` marks the start of a new cascade.
        """


class RefreshedSet:
    """
    Identity-keyed set of components visited during one cascade.

    Membership uses object identity, never ``__eq__``/``__hash__``, so two
    structurally equal components are still refreshed separately. References
    are held until the set is discarded. Not thread-safe.
    """

    def __init__(self):
        self._members: dict[int, object] = {}

    def add(self, component: object) -> bool:
        """Record ``component``; return False if it was already present."""
        key = id(component)
        if key in self._members:
            return False
        self._members[key] = component
        return True

    def __contains__(self, component: object) -> bool:
        return id(component) in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[object]:
        return iter(self._members.values())

    def __repr__(self) -> str:
        return f"RefreshedSet({len(self._members)} components)"


def build_refreshed(already_refreshed: RefreshedSet | None) -> RefreshedSet:
    """Return the cascade's set, creating an empty one at the cascade root."""
    return RefreshedSet() if already_refreshed is None else already_refreshed


class RefreshHelper:
    """
    Reusable refresh logic for a component with collaborators.

    Dependencies are refreshed first, then the owner's own ``refresh_runnable``.
    A second refresh of the same owner that starts while one is still running
    (from another thread) is skipped rather than queued.
    """

    def __init__(self, owner: object, refresh_runnable: Callable[[], None] | None = None):
        self._owner = owner
        self._refresh_runnable = refresh_runnable
        self._dependencies: list[Refreshable] = []
        self._lock = threading.Lock()

    @property
    def dependencies(self) -> tuple[Refreshable, ...]:
        return tuple(self._dependencies)

    def add_dependency(self, dependency: Refreshable | None) -> None:
        if dependency is not None:
            self._dependencies.append(dependency)

    def remove_dependency(self, dependency: Refreshable | None) -> None:
        if dependency is None:
            return
        self._dependencies = [d for d in self._dependencies if d is not dependency]

    def refresh(self, already_refreshed: RefreshedSet | None = None) -> bool:
        """
        Run one step of the cascade for the owner.

        Returns:
            True if the owner was refreshed, False if it had already been
            visited in this cascade or a concurrent refresh was in progress.
        """
        refreshed = build_refreshed(already_refreshed)
        if not refreshed.add(self._owner):
            logger.debug(f"Skipping {type(self._owner).__name__}: already refreshed in this cascade")
            return False

        if not self._lock.acquire(blocking=False):
            logger.debug(f"Skipping {type(self._owner).__name__}: refresh already in progress")
            return False
        try:
            for dependency in self._dependencies:
                dependency.refresh(refreshed)
            if self._refresh_runnable is not None:
                self._refresh_runnable()
        finally:
            self._lock.release()
        return True

"""
Preference data sources consumed by the similarity metrics.

A data model answers membership, count and value queries over a sparse
user -> item preference matrix. Two implementations are provided: an
in-memory GenericDataModel backed by scipy sparse matrices, and a
FileDataModel that loads a delimited text file and reloads it on refresh.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from abc import abstractmethod
from pathlib import Path
from typing import Any, Hashable, Iterable, Mapping

import numpy as np
from scipy.sparse import csr_matrix

from .config import FILE_COMMENT_PREFIX, MIN_RELOAD_INTERVAL
from .errors import DataSourceError, InvalidArgumentError, NoSuchItemError, NoSuchUserError
from .refresh import Refreshable, RefreshedSet, RefreshHelper

logger = logging.getLogger(__name__)


class DataModel(Refreshable):
    """Read-only view of user -> item preferences."""

    @abstractmethod
    def user_ids(self) -> list[Hashable]:
        """All user ids, in ascending order."""

    @abstractmethod
    def item_ids(self) -> list[Hashable]:
        """All item ids, in ascending order."""

    @abstractmethod
    def num_users(self) -> int: ...

    @abstractmethod
    def num_items(self) -> int: ...

    @abstractmethod
    def item_ids_from_user(self, user_id: Hashable) -> frozenset:
        """Ids of the items ``user_id`` has expressed a preference for."""

    @abstractmethod
    def preferences_from_user(self, user_id: Hashable) -> dict[Hashable, float | None]: ...

    @abstractmethod
    def preferences_for_item(self, item_id: Hashable) -> dict[Hashable, float | None]: ...

    @abstractmethod
    def preference_value(self, user_id: Hashable, item_id: Hashable) -> float | None:
        """Stored value, or None when no value is recorded for the pair."""

    @abstractmethod
    def num_users_with_preference_for(self, *item_ids: Hashable) -> int:
        """Count users preferring every one of one or two items."""

    @abstractmethod
    def has_preference_values(self) -> bool:
        """False for boolean (membership-only) data."""


class GenericDataModel(DataModel):
    """
    In-memory data model.

    Preferences are stored in a CSR matrix (users x items) with a CSC copy
    for per-item queries. Missing values (boolean preferences) are stored as
    NaN so explicit 0.0 ratings remain distinct from absent ones.
    """

    def __init__(self, preferences: Mapping[Hashable, Mapping[Hashable, Any]]):
        """
        Args:
            preferences: Dict mapping user id -> {item id: value or None}
        """
        self._user_ids = sorted(preferences)
        all_items = set()
        for prefs in preferences.values():
            all_items.update(prefs)
        self._item_ids = sorted(all_items)

        self._user_index = {user_id: idx for idx, user_id in enumerate(self._user_ids)}
        self._item_index = {item_id: idx for idx, item_id in enumerate(self._item_ids)}

        rows, cols, values = [], [], []
        for user_id, prefs in preferences.items():
            user_idx = self._user_index[user_id]
            for item_id, value in prefs.items():
                if value is not None:
                    value = float(value)
                    if not math.isfinite(value):
                        raise InvalidArgumentError(f"Non-finite preference {value!r} for ({user_id!r}, {item_id!r})")
                rows.append(user_idx)
                cols.append(self._item_index[item_id])
                values.append(np.nan if value is None else value)

        shape = (len(self._user_ids), len(self._item_ids))
        if rows:
            matrix = csr_matrix((values, (rows, cols)), shape=shape, dtype=np.float64)
        else:
            matrix = csr_matrix(shape, dtype=np.float64)
        matrix.sort_indices()
        self._by_user = matrix
        self._by_item = matrix.tocsc()
        self._by_item.sort_indices()
        self._has_values = bool(values) and not bool(np.isnan(values).any())

        self._refresh_helper = RefreshHelper(self)

        logger.debug(f"Built preference matrix: {shape[0]} users x {shape[1]} items, {len(values)} preferences")

    @classmethod
    def from_records(cls, records: Iterable[tuple]) -> "GenericDataModel":
        """Build a model from ``(user_id, item_id)`` or ``(user_id, item_id, value)`` tuples."""
        preferences: dict[Hashable, dict[Hashable, float | None]] = {}
        for record in records:
            if len(record) == 2:
                user_id, item_id = record
                value = None
            elif len(record) == 3:
                user_id, item_id, value = record
            else:
                raise InvalidArgumentError(f"Expected 2 or 3 fields per record, got {len(record)}")
            preferences.setdefault(user_id, {})[item_id] = value
        return cls(preferences)

    def _user_row(self, user_id: Hashable) -> int:
        try:
            return self._user_index[user_id]
        except (KeyError, TypeError):
            raise NoSuchUserError(user_id) from None

    def _item_col(self, item_id: Hashable) -> int:
        try:
            return self._item_index[item_id]
        except (KeyError, TypeError):
            raise NoSuchItemError(item_id) from None

    def _row_slice(self, row: int) -> tuple[np.ndarray, np.ndarray]:
        start, end = self._by_user.indptr[row], self._by_user.indptr[row + 1]
        return self._by_user.indices[start:end], self._by_user.data[start:end]

    def _col_slice(self, col: int) -> tuple[np.ndarray, np.ndarray]:
        start, end = self._by_item.indptr[col], self._by_item.indptr[col + 1]
        return self._by_item.indices[start:end], self._by_item.data[start:end]

    @staticmethod
    def _to_value(raw: float) -> float | None:
        return None if np.isnan(raw) else float(raw)

    def user_ids(self) -> list[Hashable]:
        return list(self._user_ids)

    def item_ids(self) -> list[Hashable]:
        return list(self._item_ids)

    def num_users(self) -> int:
        return len(self._user_ids)

    def num_items(self) -> int:
        return len(self._item_ids)

    def item_ids_from_user(self, user_id: Hashable) -> frozenset:
        cols, _ = self._row_slice(self._user_row(user_id))
        return frozenset(self._item_ids[col] for col in cols)

    def preferences_from_user(self, user_id: Hashable) -> dict[Hashable, float | None]:
        cols, data = self._row_slice(self._user_row(user_id))
        return {self._item_ids[col]: self._to_value(raw) for col, raw in zip(cols, data)}

    def preferences_for_item(self, item_id: Hashable) -> dict[Hashable, float | None]:
        rows, data = self._col_slice(self._item_col(item_id))
        return {self._user_ids[row]: self._to_value(raw) for row, raw in zip(rows, data)}

    def preference_value(self, user_id: Hashable, item_id: Hashable) -> float | None:
        row = self._user_row(user_id)
        col = self._item_col(item_id)
        cols, data = self._row_slice(row)
        pos = int(np.searchsorted(cols, col))
        if pos < len(cols) and cols[pos] == col:
            return self._to_value(data[pos])
        return None

    def num_users_with_preference_for(self, *item_ids: Hashable) -> int:
        if len(item_ids) == 1:
            rows, _ = self._col_slice(self._item_col(item_ids[0]))
            return int(rows.size)
        if len(item_ids) == 2:
            rows_a, _ = self._col_slice(self._item_col(item_ids[0]))
            rows_b, _ = self._col_slice(self._item_col(item_ids[1]))
            return int(np.intersect1d(rows_a, rows_b, assume_unique=True).size)
        raise InvalidArgumentError(f"Expected 1 or 2 item ids, got {len(item_ids)}")

    def has_preference_values(self) -> bool:
        return self._has_values

    def refresh(self, already_refreshed: RefreshedSet | None = None) -> None:
        # Nothing to reload; participate in the cascade only.
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self) -> str:
        return f"GenericDataModel(users={self.num_users()}, items={self.num_items()})"


def _parse_line(line: str, delimiter: str, line_no: int, path: Path) -> tuple[str, str, float | None]:
    fields = [f.strip() for f in line.split(delimiter)]
    if len(fields) < 2 or len(fields) > 3 or not fields[0] or not fields[1]:
        raise DataSourceError(f"{path}:{line_no}: expected 'user{delimiter}item[{delimiter}value]', got {line!r}")
    value = None
    if len(fields) == 3 and fields[2]:
        try:
            value = float(fields[2])
        except ValueError:
            raise DataSourceError(f"{path}:{line_no}: invalid preference value {fields[2]!r}") from None
        if not math.isfinite(value):
            raise DataSourceError(f"{path}:{line_no}: non-finite preference value {fields[2]!r}")
    return fields[0], fields[1], value


def _detect_delimiter(line: str) -> str:
    return "\t" if "\t" in line else ","


class FileDataModel(DataModel):
    """
    Data model backed by a delimited text file.

    Each non-blank, non-comment line is ``user,item`` or ``user,item,value``
    (comma or tab separated, detected from the first data line). Ids are kept
    as strings. Queries are delegated to a GenericDataModel snapshot that is
    swapped atomically when ``refresh`` detects the file changed.
    """

    def __init__(
        self,
        path: str | Path,
        delimiter: str | None = None,
        min_reload_interval: float = MIN_RELOAD_INTERVAL,
    ):
        if min_reload_interval < 0:
            raise InvalidArgumentError("min_reload_interval must be non-negative")
        self.path = Path(path)
        self._delimiter = delimiter
        self.min_reload_interval = min_reload_interval

        self._lock = threading.Lock()
        self._delegate: GenericDataModel | None = None
        self._loaded_mtime: float | None = None
        self._last_load = 0.0

        self._refresh_helper = RefreshHelper(self, self._reload_if_changed)
        self._load()

    def _read_preferences(self) -> dict[str, dict[str, float | None]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DataSourceError(f"Cannot read preference file {self.path}: {e}") from e

        preferences: dict[str, dict[str, float | None]] = {}
        delimiter = self._delimiter
        for line_no, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith(FILE_COMMENT_PREFIX):
                continue
            if delimiter is None:
                delimiter = _detect_delimiter(line)
            user_id, item_id, value = _parse_line(line, delimiter, line_no, self.path)
            preferences.setdefault(user_id, {})[item_id] = value
        return preferences

    def _load(self) -> None:
        try:
            mtime = self.path.stat().st_mtime
        except OSError as e:
            raise DataSourceError(f"Cannot stat preference file {self.path}: {e}") from e

        delegate = GenericDataModel(self._read_preferences())
        with self._lock:
            self._delegate = delegate
            self._loaded_mtime = mtime
            self._last_load = time.time()
        logger.info(f"Loaded {delegate.num_users()} users and {delegate.num_items()} items from {self.path}")

    def _reload_if_changed(self) -> None:
        if time.time() - self._last_load < self.min_reload_interval:
            logger.debug(f"Skipping reload of {self.path}: within minimum reload interval")
            return
        try:
            mtime = self.path.stat().st_mtime
        except OSError as e:
            raise DataSourceError(f"Cannot stat preference file {self.path}: {e}") from e
        if mtime == self._loaded_mtime:
            logger.debug(f"Skipping reload of {self.path}: file unchanged")
            return
        self._load()

    @property
    def delegate(self) -> GenericDataModel:
        with self._lock:
            return self._delegate

    def user_ids(self) -> list[Hashable]:
        return self.delegate.user_ids()

    def item_ids(self) -> list[Hashable]:
        return self.delegate.item_ids()

    def num_users(self) -> int:
        return self.delegate.num_users()

    def num_items(self) -> int:
        return self.delegate.num_items()

    def item_ids_from_user(self, user_id: Hashable) -> frozenset:
        return self.delegate.item_ids_from_user(user_id)

    def preferences_from_user(self, user_id: Hashable) -> dict[Hashable, float | None]:
        return self.delegate.preferences_from_user(user_id)

    def preferences_for_item(self, item_id: Hashable) -> dict[Hashable, float | None]:
        return self.delegate.preferences_for_item(item_id)

    def preference_value(self, user_id: Hashable, item_id: Hashable) -> float | None:
        return self.delegate.preference_value(user_id, item_id)

    def num_users_with_preference_for(self, *item_ids: Hashable) -> int:
        return self.delegate.num_users_with_preference_for(*item_ids)

    def has_preference_values(self) -> bool:
        return self.delegate.has_preference_values()

    def refresh(self, already_refreshed: RefreshedSet | None = None) -> None:
        self._refresh_helper.refresh(already_refreshed)

    def __repr__(self) -> str:
        return f"FileDataModel(path={str(self.path)!r})"

"""In-memory gist cache plus the persisted key/value slots.

The cache is an insertion-ordered list of EntityNodes with an id index kept
in step with every mutation. The persisted slots (followed users, opened
gists, sort type, sort direction) live in a :class:`StorageBackend`.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from gistree.errors import ConfigurationError
from gistree.models import EntityNode
from gistree.storage.backends import MemoryBackend, StorageBackend

logger = logging.getLogger(__name__)


class SortType(str, Enum):
    NAME = "name"
    CREATION_TIME = "creationTime"
    UPDATE_TIME = "updateTime"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class GlobalStorageGroup(str, Enum):
    """Persisted ordered lists."""

    FOLLOWED_USERS = "followedUsers"
    OPENED_GISTS = "openedGists"


class GlobalStateKey(str, Enum):
    """Persisted scalar settings."""

    SORT_TYPE = "sortType"
    SORT_DIRECTION = "sortDirection"


DEFAULT_SORT_TYPE = SortType.NAME
DEFAULT_SORT_DIRECTION = SortDirection.ASCENDING

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _coerce(enum_type: type[Enum], value: Any, what: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise ConfigurationError(f"Unsupported {what}: {value!r}") from None


def _timestamp(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sort_key(sort_type: SortType):
    """Key function for ``sort_type``.

    Names compare case-insensitively on the description, falling back to
    the gist id when there is no description.
    """
    if sort_type is SortType.NAME:
        return lambda node: (node.gist.description or node.id).lower()
    if sort_type is SortType.CREATION_TIME:
        return lambda node: _timestamp(node.created_at)
    return lambda node: _timestamp(node.updated_at)


class Store:
    """Authoritative cache of known gists and owner of the sort order."""

    def __init__(self, backend: Optional[StorageBackend] = None):
        self.backend = backend or MemoryBackend()
        self._gists: list[EntityNode] = []
        self._index: dict[str, int] = {}

    # --- gist cache -----------------------------------------------------

    @property
    def gists(self) -> list[EntityNode]:
        """Snapshot of the cache in its current order."""
        return list(self._gists)

    def __len__(self) -> int:
        return len(self._gists)

    def __contains__(self, gist_id: str) -> bool:
        return gist_id in self._index

    def get(self, gist_id: str) -> Optional[EntityNode]:
        position = self._index.get(gist_id)
        return None if position is None else self._gists[position]

    def upsert(self, *nodes: EntityNode) -> None:
        """Replace nodes in place by id, appending the ones not yet cached."""
        for node in nodes:
            position = self._index.get(node.id)
            if position is None:
                self._index[node.id] = len(self._gists)
                self._gists.append(node)
            else:
                self._gists[position] = node

    def remove(self, gist_id: str) -> Optional[EntityNode]:
        """Drop a gist from the cache; returns the removed node, if any."""
        position = self._index.get(gist_id)
        if position is None:
            return None
        node = self._gists.pop(position)
        self._reindex()
        return node

    def clear(self) -> None:
        self._gists = []
        self._index = {}

    def _reindex(self) -> None:
        self._index = {node.id: position for position, node in enumerate(self._gists)}

    # --- sorting --------------------------------------------------------

    def sort_gists(
        self,
        sort_type: Union[SortType, str],
        direction: Union[SortDirection, str],
        gists: Optional[Iterable[EntityNode]] = None,
    ) -> list[EntityNode]:
        """Sort gists and remember (sort_type, direction) as the new default.

        Without an explicit list the cached gists are sorted. The cache keeps
        its insertion order. The sort is stable and never touches the network.
        """
        sort_type = _coerce(SortType, sort_type, "sort type")
        direction = _coerce(SortDirection, direction, "sort direction")

        result = self._sorted(self._gists if gists is None else gists, sort_type, direction)

        self.set_from_global_state(GlobalStateKey.SORT_TYPE, sort_type)
        self.set_from_global_state(GlobalStateKey.SORT_DIRECTION, direction)
        return result

    def apply_sort(self, gists: Iterable[EntityNode]) -> list[EntityNode]:
        """Sort with the persisted (type, direction) without re-persisting it."""
        return self._sorted(gists, self.sort_type, self.sort_direction)

    @staticmethod
    def _sorted(
        gists: Iterable[EntityNode],
        sort_type: SortType,
        direction: SortDirection,
    ) -> list[EntityNode]:
        return sorted(gists, key=sort_key(sort_type), reverse=direction is SortDirection.DESCENDING)

    @property
    def sort_type(self) -> SortType:
        return self.get_from_global_state(GlobalStateKey.SORT_TYPE)

    @property
    def sort_direction(self) -> SortDirection:
        return self.get_from_global_state(GlobalStateKey.SORT_DIRECTION)

    # --- persisted lists ------------------------------------------------

    def read_from_global_storage(self, group: Union[GlobalStorageGroup, str]) -> list[str]:
        """Return the persisted list for ``group``, empty when unset."""
        group = _coerce(GlobalStorageGroup, group, "global storage group")
        return list(self.backend.get(group.value) or [])

    def add_to_global_storage(self, group: Union[GlobalStorageGroup, str], value: str) -> None:
        """Append ``value`` unless it is already stored."""
        values = self.read_from_global_storage(group)
        if value in values:
            return
        values.append(value)
        self.backend.set(GlobalStorageGroup(group).value, values)
        logger.debug("Added %s to %s", value, GlobalStorageGroup(group).value)

    def remove_from_global_storage(self, group: Union[GlobalStorageGroup, str], value: str) -> None:
        """Remove every occurrence of ``value``; no-op when absent."""
        values = self.read_from_global_storage(group)
        remaining = [item for item in values if item != value]
        if len(remaining) == len(values):
            return
        self.backend.set(GlobalStorageGroup(group).value, remaining)
        logger.debug("Removed %s from %s", value, GlobalStorageGroup(group).value)

    def clear_global_storage(self) -> None:
        """Reset every persisted slot. The gist cache is left alone."""
        for group in GlobalStorageGroup:
            self.backend.set(group.value, [])
        for key in GlobalStateKey:
            self.backend.delete(key.value)
        logger.info("Global storage cleared")

    def purge_global_storage(self) -> None:
        self.clear_global_storage()

    # --- persisted scalars ----------------------------------------------

    def get_from_global_state(self, key: Union[GlobalStateKey, str]) -> Any:
        """Typed read of sortType / sortDirection, with defaults."""
        key = _coerce(GlobalStateKey, key, "global state key")
        raw = self.backend.get(key.value)
        if key is GlobalStateKey.SORT_TYPE:
            return DEFAULT_SORT_TYPE if raw is None else _coerce(SortType, raw, "sort type")
        return DEFAULT_SORT_DIRECTION if raw is None else _coerce(SortDirection, raw, "sort direction")

    def set_from_global_state(self, key: Union[GlobalStateKey, str], value: Any) -> None:
        key = _coerce(GlobalStateKey, key, "global state key")
        if key is GlobalStateKey.SORT_TYPE:
            value = _coerce(SortType, value, "sort type")
        else:
            value = _coerce(SortDirection, value, "sort direction")
        self.backend.set(key.value, value.value)

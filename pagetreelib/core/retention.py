"""
Bounded retention of collapsed subtrees.

A collapsed item's child cache contributes nothing to the flat view but keeps
its loaded pages around so re-expanding is instant. This module caps how many
such subtrees stay attached, dropping the least recently collapsed first.
"""

import logging
from typing import Callable, Set

from cachetools import LRUCache

from .cache import Cache

logger = logging.getLogger(__name__)


class _CollapsedSubCaches(LRUCache):
    """LRU of collapsed sub-caches that reports whatever it evicts."""

    def __init__(self, maxsize: int, on_evict: Callable[[Cache], None]):
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self):
        key, sub_cache = super().popitem()
        self._on_evict(sub_cache)
        return key, sub_cache


class CollapsedSubCacheRetention:
    """
    Keeps at most ``max_collapsed`` collapsed subtrees attached to a cache tree.

    Call ``sweep`` after effective sizes were recalculated. Only the topmost
    collapsed level of a branch is tracked; its descendants go with it.
    Detaching a collapsed subtree never changes an effective size, since such
    a subtree already counts as zero rows.

    Example:
        retention = CollapsedSubCacheRetention(max_collapsed=20)
        root.recalculate_effective_size()
        retention.sweep(root)
    """

    def __init__(self, max_collapsed: int):
        """
        Initialize retention.

        Args:
            max_collapsed: Collapsed subtrees to keep; 0 drops them at once
        """
        if max_collapsed < 0:
            raise ValueError("max_collapsed cannot be negative")
        self.max_collapsed = max_collapsed
        self.evictions = 0
        self._collapsed = self._new_store()

    def _new_store(self):
        if self.max_collapsed == 0:
            return None
        return _CollapsedSubCaches(self.max_collapsed, self._detach)

    def __len__(self) -> int:
        return len(self._collapsed) if self._collapsed is not None else 0

    def __contains__(self, sub_cache: Cache) -> bool:
        return self._collapsed is not None and sub_cache in self._collapsed

    def sweep(self, root: Cache) -> int:
        """
        Track newly collapsed subtrees and evict beyond the limit.

        Args:
            root: Root of the live cache tree

        Returns:
            Number of subtrees detached by this sweep
        """
        seen: Set[Cache] = set()
        before = self.evictions
        self._visit(root, seen)

        # Forget subtrees that were re-expanded or detached elsewhere
        if self._collapsed is not None:
            for sub_cache in [key for key in self._collapsed if key not in seen]:
                del self._collapsed[sub_cache]

        return self.evictions - before

    def _visit(self, cache: Cache, seen: Set[Cache]) -> None:
        for _, sub_cache in cache.sub_caches:
            if not self._is_collapsed(sub_cache):
                self._visit(sub_cache, seen)
            elif self._collapsed is None:
                self._detach(sub_cache)
            else:
                seen.add(sub_cache)
                if sub_cache not in self._collapsed:
                    self._collapsed[sub_cache] = sub_cache

    def _detach(self, sub_cache: Cache) -> None:
        parent = sub_cache.parent_cache
        if parent is None or parent.get_sub_cache(sub_cache.parent_index) is not sub_cache:
            return
        parent.remove_sub_cache(sub_cache.parent_index)
        self.evictions += 1
        logger.debug("Dropped collapsed sub-cache at index %s (level %d)",
                     sub_cache.parent_index, parent.level + 1)

    @staticmethod
    def _is_collapsed(sub_cache: Cache) -> bool:
        parent = sub_cache.parent_cache
        if parent is None or not parent.has_item(sub_cache.parent_index):
            return False
        return not sub_cache.is_expanded(parent.get_item(sub_cache.parent_index))

    def clear(self) -> None:
        """Forget every tracked subtree without detaching anything."""
        # MutableMapping.clear() goes through popitem(), which would detach
        self._collapsed = self._new_store()

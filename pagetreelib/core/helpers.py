"""Flat index <-> tree path translation.

Pure functions over a cache tree. A flat index addresses a row as if every
expanded level were spliced into its parent right after the parent item.
"""

import math
from dataclasses import dataclass
from typing import Any, List, Sequence

from .cache import Cache


@dataclass(frozen=True)
class FlatIndexInfo:
    """Where a flat index currently lands in the cache tree."""

    cache: Cache        # Deepest cache containing the row
    index: int          # Local index within that cache
    page: int           # Page of ``index`` within that cache
    level: int          # Tree depth (root = 0)
    flat_index: int     # The flat index that was resolved
    item: Any = None    # Loaded value, None when not loaded
    loaded: bool = False


def get_flat_index_info(cache: Cache, flat_index: int, level: int = 0) -> FlatIndexInfo:
    """Resolve a flat index to the deepest cache and local index holding it.

    Args:
        cache: Cache to resolve within (normally the root)
        flat_index: Flat index relative to ``cache``
        level: Depth of ``cache``

    Returns:
        FlatIndexInfo describing the row; ``loaded`` is False for rows that
        are not fetched yet or lie outside the effective range
    """
    return _resolve(cache, flat_index, flat_index, level)


def _resolve(cache: Cache, level_index: int, flat_index: int, level: int) -> FlatIndexInfo:
    for sub_index, sub_cache in cache.sub_caches:
        if level_index <= sub_index:
            break
        if level_index <= sub_index + sub_cache.effective_size:
            return _resolve(sub_cache, level_index - sub_index - 1, flat_index, level + 1)
        level_index -= sub_cache.effective_size

    return FlatIndexInfo(
        cache=cache,
        index=level_index,
        page=level_index // cache.page_size,
        level=level,
        flat_index=flat_index,
        item=cache.get_item(level_index),
        loaded=cache.has_item(level_index),
    )


def get_flat_index_by_path(cache: Cache, path: Sequence[float], flat_index: int = 0) -> int:
    """Convert a per-level index path into a flat index.

    Each segment is clamped into its level; ``math.inf`` selects the last
    item of the level. The walk stops early where a level has no (visible)
    child cache, ignoring the remaining segments.

    Args:
        cache: Cache the path starts in (normally the root)
        path: Local indexes, one per level; empty behaves like ``[0]``
        flat_index: Flat offset of ``cache`` itself

    Returns:
        Flat index of the addressed row
    """
    level_index = path[0] if path else 0
    if level_index == math.inf:
        level_index = cache.size - 1
    level_index = int(max(0, min(cache.size - 1, level_index)))

    flat_index_on_level = cache.get_flat_index(level_index)
    sub_cache = cache.get_sub_cache(level_index)
    remaining = path[1:]
    if sub_cache is not None and sub_cache.effective_size > 0 and remaining:
        return get_flat_index_by_path(sub_cache, remaining, flat_index + flat_index_on_level + 1)
    return flat_index + flat_index_on_level


def get_index_path(info: FlatIndexInfo) -> List[int]:
    """Rebuild the per-level path of a resolved row.

    The result addresses the same row through ``get_flat_index_by_path``.
    """
    path = [info.index]
    cache = info.cache
    while cache.parent_cache is not None:
        path.append(cache.parent_index)
        cache = cache.parent_cache
    path.reverse()
    return path

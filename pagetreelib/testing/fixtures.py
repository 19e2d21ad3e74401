"""Test fixtures for PageTreeLib consumers.

These fixtures provide controlled access to cache tree state for testing
purposes without making the tree layout part of the public API.
"""

from typing import Any, Dict, Iterator, List, Tuple

from ..core.cache import Cache


class CacheTestHelper:
    """Public test fixture for cache tree verification.

    Accepts either a controller (anything with ``root_cache``) or a Cache.
    The controller's current root is looked up on every call, so the helper
    keeps working across ``clear_cache``.

    Example:
        helper = CacheTestHelper(controller)
        summary = helper.get_summary()
        assert summary['pending_pages'] == 0
        assert helper.pending_requests() == []
    """

    def __init__(self, source):
        """Initialize with a controller or a cache.

        Args:
            source: Controller exposing ``root_cache``, or a Cache
        """
        self._source = source

    @property
    def root(self) -> Cache:
        if isinstance(self._source, Cache):
            return self._source
        return self._source.root_cache

    def iter_caches(self) -> Iterator[Tuple[Tuple[int, ...], Cache]]:
        """Walk the tree depth-first, parents before children.

        Yields:
            ``(path, cache)`` where path lists the parent indexes leading
            to the cache (empty for the root)
        """
        stack = [((), self.root)]
        while stack:
            path, cache = stack.pop()
            yield path, cache
            for index, sub_cache in reversed(cache.sub_caches):
                stack.append((path + (index,), sub_cache))

    def get_summary(self) -> Dict[str, Any]:
        """Returns high-level cache tree state for testing.

        Returns:
            Dictionary containing:
            - total_caches: Number of caches in the tree, root included
            - loaded_items: Loaded items across all caches
            - pending_pages: Pending requests across all caches
            - max_level: Deepest level with a cache
            - effective_size: Effective size of the root
        """
        total = loaded = pending = max_level = 0
        for path, cache in self.iter_caches():
            total += 1
            loaded += len(cache.items)
            pending += len(cache.pending_requests)
            max_level = max(max_level, len(path))
        return {
            'total_caches': total,
            'loaded_items': loaded,
            'pending_pages': pending,
            'max_level': max_level,
            'effective_size': self.root.effective_size,
        }

    def pending_requests(self) -> List[Tuple[Tuple[int, ...], int]]:
        """All pending requests as ``(cache path, page)`` pairs."""
        return [(path, page)
                for path, cache in self.iter_caches()
                for page in sorted(cache.pending_requests)]

    def get_cache(self, *path: int) -> Cache:
        """Get the cache reached by following parent indexes from the root.

        Raises:
            KeyError: If no cache exists at that path
        """
        cache = self.root
        for index in path:
            sub_cache = cache.get_sub_cache(index)
            if sub_cache is None:
                raise KeyError(f"No sub-cache at {path}")
            cache = sub_cache
        return cache

    def expected_effective_size(self, cache: Cache = None) -> int:
        """Effective size computed from scratch, for checking the cached value."""
        if cache is None:
            cache = self.root
        parent = cache.parent_cache
        if parent is not None and parent.has_item(cache.parent_index):
            if not cache.is_expanded(parent.get_item(cache.parent_index)):
                return 0
        return cache.size + sum(self.expected_effective_size(sub) for _, sub in cache.sub_caches)

"""Per-level paging cache.

One Cache exists for the root level and one for every expanded parent item
whose children have been accessed. Each holds a sparse, page-aligned item
buffer, the pages currently being fetched, and its child caches keyed by the
parent item's local index.
"""

import weakref
from typing import Any, Callable, Dict, List, Optional, Tuple


class Cache:
    """
    Paging cache for one level of a (possibly) hierarchical dataset.

    The ``effective_size`` of a cache is the number of rows a flattened view
    of its subtree shows: its own ``size`` plus the effective size of every
    expanded child. It is always derived by ``recalculate_effective_size``,
    never assigned from the outside.

    Children are owned by their parent. The way back up is a weak reference,
    so a discarded tree is collected as soon as nothing else holds it.
    """

    def __init__(self,
                 page_size: int,
                 size: int = 0,
                 is_expanded: Optional[Callable[[Any], bool]] = None,
                 parent_cache: Optional['Cache'] = None,
                 parent_index: Optional[int] = None):
        """
        Initialize a cache level.

        Args:
            page_size: Number of items per page
            size: Known number of direct items on this level
            is_expanded: Predicate telling whether an item is expanded
            parent_cache: Cache holding this level's parent item (None for root)
            parent_index: Local index of the parent item in ``parent_cache``
        """
        self.page_size = page_size
        self.size = size or 0
        self.effective_size = self.size
        self.is_expanded = is_expanded or (lambda item: False)
        self.parent_index = parent_index
        self._parent_ref = weakref.ref(parent_cache) if parent_cache is not None else None
        # Depth is fixed at creation; an orphan keeps it after its parent is gone
        self.level = parent_cache.level + 1 if parent_cache is not None else 0
        # Set once a fetched first page came back without items
        self.received_empty = False

        self.items: Dict[int, Any] = {}
        self.pending_requests: Dict[int, Callable] = {}
        self._sub_cache_by_index: Dict[int, 'Cache'] = {}

    def __repr__(self) -> str:
        return (f"Cache(level={self.level}, parent_index={self.parent_index}, "
                f"size={self.size}, effective_size={self.effective_size})")

    @property
    def parent_cache(self) -> Optional['Cache']:
        """Cache holding this level's parent item, or None for the root."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def parent_item(self) -> Any:
        """Loaded item this level belongs to, or None for the root."""
        parent = self.parent_cache
        if parent is None:
            return None
        return parent.items.get(self.parent_index)

    @property
    def is_loading(self) -> bool:
        """Whether this cache or any descendant has a pending request."""
        if self.pending_requests:
            return True
        return any(sub_cache.is_loading for sub_cache in self._sub_cache_by_index.values())

    @property
    def sub_caches(self) -> List[Tuple[int, 'Cache']]:
        """Child caches as ``(index, cache)`` pairs in item order."""
        return sorted(self._sub_cache_by_index.items())

    def recalculate_effective_size(self) -> None:
        """Recalculate effective size for this cache and all descendants.

        Children are recalculated before their parent. A level whose parent
        item is loaded but collapsed contributes nothing, however much of it
        is loaded.
        """
        children_total = 0
        for sub_cache in self._sub_cache_by_index.values():
            sub_cache.recalculate_effective_size()
            children_total += sub_cache.effective_size

        if self._is_collapsed():
            self.effective_size = 0
        else:
            self.effective_size = self.size + children_total

    def _is_collapsed(self) -> bool:
        parent = self.parent_cache
        if parent is None or self.parent_index not in parent.items:
            return False
        return not self.is_expanded(parent.items[self.parent_index])

    def set_page(self, page: int, items: List[Any]) -> None:
        """Store items for a page, overwriting what was loaded there.

        Args:
            page: Page number
            items: Items of the page, in order
        """
        start = page * self.page_size
        for offset, item in enumerate(items):
            self.items[start + offset] = item

    def is_page_loaded(self, page: int) -> bool:
        """Check whether the first slot of a page holds a loaded item."""
        return page * self.page_size in self.items

    def has_item(self, index: int) -> bool:
        """Check whether an item is loaded at a local index."""
        return index in self.items

    def get_item(self, index: int) -> Any:
        """Get the loaded item at a local index, or None when absent."""
        return self.items.get(index)

    def get_sub_cache(self, index: int) -> Optional['Cache']:
        """Get the child cache of the item at a local index."""
        return self._sub_cache_by_index.get(index)

    def create_sub_cache(self, index: int) -> 'Cache':
        """Create and attach a child cache for the item at a local index.

        The new cache starts empty and inherits page size and expansion
        predicate from this one.
        """
        sub_cache = Cache(self.page_size, 0, self.is_expanded, parent_cache=self, parent_index=index)
        self._sub_cache_by_index[index] = sub_cache
        return sub_cache

    def remove_sub_cache(self, index: int) -> Optional['Cache']:
        """Detach the child cache of the item at a local index.

        Returns:
            The detached cache, or None if there was none
        """
        return self._sub_cache_by_index.pop(index, None)

    def get_flat_index(self, index: int) -> int:
        """Convert a local index into a flat index within this subtree.

        The index is clamped to ``[0, size - 1]`` and shifted by the effective
        size of every child level that comes before it.
        """
        clamped = max(0, min(self.size - 1, index))
        flat_index = clamped
        for sub_index, sub_cache in self.sub_caches:
            if sub_index >= clamped:
                break
            flat_index += sub_cache.effective_size
        return flat_index

"""Data provider controller.

Owns the root cache, drives page fetches through an injected data provider,
and keeps effective sizes consistent as pages arrive in any order.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import ControllerConfig, PageEvent, PageRequest
from .cache import Cache
from .helpers import FlatIndexInfo, get_flat_index_by_path, get_flat_index_info
from .retention import CollapsedSubCacheRetention

logger = logging.getLogger(__name__)

PageListener = Callable[[PageEvent, Cache, int], None]
DataProvider = Callable[[Dict[str, Any], Callable[..., None]], None]


class DataProviderController:
    """
    Lazily loads a paged, possibly hierarchical dataset.

    Consumers address rows through a flat index. The controller resolves it
    to a ``(cache, local index)`` pair, fetches missing pages through the
    data provider, and emits ``PageEvent`` notifications so consumers know
    when to re-query.

    The data provider is called as ``data_provider(params, callback)`` where
    ``params`` holds ``page``, ``page_size``, ``parent_item`` and whatever
    ``data_provider_params()`` returns. It must call ``callback(items,
    size=None)`` exactly once, now or later, on the same thread.

    Example:
        def provider(params, callback):
            start = params['page'] * params['page_size']
            callback(rows[start:start + params['page_size']], len(rows))

        controller = DataProviderController(page_size=50, data_provider=provider)
        controller.ensure_first_page_loaded()
        info = controller.get_flat_index_info(10)
    """

    def __init__(self,
                 size: int = 0,
                 page_size: int = 50,
                 is_expanded: Optional[Callable[[Any], bool]] = None,
                 data_provider: Optional[DataProvider] = None,
                 data_provider_params: Optional[Callable[[], Dict[str, Any]]] = None,
                 retain_collapsed: Optional[int] = None):
        """
        Initialize the controller.

        Args:
            size: Known number of root items
            page_size: Items per fetch
            is_expanded: Predicate telling whether an item is expanded
            data_provider: Fetch function, see class docstring
            data_provider_params: Supplier of extra fetch params (sorting, filters)
            retain_collapsed: Collapsed subtrees to keep cached (None = all)
        """
        config = ControllerConfig(
            size=size,
            page_size=page_size,
            data_provider=data_provider,
            retain_collapsed=retain_collapsed,
        )
        if is_expanded is not None:
            config.is_expanded = is_expanded
        if data_provider_params is not None:
            config.data_provider_params = data_provider_params

        errors = config.validate()
        if errors:
            raise ValueError("; ".join(errors))

        self.size = config.size
        self.page_size = config.page_size
        self.is_expanded = config.is_expanded
        self.data_provider = config.data_provider
        self.data_provider_params = config.data_provider_params
        self._retention = (CollapsedSubCacheRetention(config.retain_collapsed)
                           if config.retain_collapsed is not None else None)
        self._listeners: Dict[PageEvent, List[PageListener]] = {event: [] for event in PageEvent}
        self.root_cache = self._create_root_cache()

    @classmethod
    def from_config(cls, config: ControllerConfig) -> 'DataProviderController':
        """Create a controller from a ControllerConfig."""
        return cls(
            size=config.size,
            page_size=config.page_size,
            is_expanded=config.is_expanded,
            data_provider=config.data_provider,
            data_provider_params=config.data_provider_params,
            retain_collapsed=config.retain_collapsed,
        )

    @property
    def effective_size(self) -> int:
        """Number of rows in the flattened view."""
        return self.root_cache.effective_size

    def is_loading(self) -> bool:
        """Whether any page of the live tree is being fetched."""
        return self.root_cache.is_loading

    # Listener registration

    def add_listener(self, event: PageEvent, listener: PageListener) -> None:
        """Subscribe to a page event; listeners get ``(event, cache, page)``."""
        self._listeners[event].append(listener)

    def remove_listener(self, event: PageEvent, listener: PageListener) -> None:
        """Unsubscribe a listener; unknown listeners are ignored."""
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    def _emit(self, event: PageEvent, cache: Cache, page: int) -> None:
        for listener in list(self._listeners[event]):
            listener(event, cache, page)

    # Global parameters

    def set_size(self, size: int) -> None:
        """Set the number of root items."""
        if size < 0:
            raise ValueError("size cannot be negative")
        self.size = size
        self.root_cache.size = size
        self.recalculate_effective_size()

    def set_page_size(self, page_size: int) -> None:
        """Change the page size, discarding everything cached."""
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self.clear_cache()

    def set_data_provider(self, data_provider: Optional[DataProvider]) -> None:
        """Swap the data provider, discarding everything cached."""
        self.data_provider = data_provider
        self.clear_cache()

    def recalculate_effective_size(self) -> None:
        """Recalculate effective sizes of the whole tree.

        Call after anything that changes which items are expanded.
        """
        self.root_cache.recalculate_effective_size()
        if self._retention is not None:
            self._retention.sweep(self.root_cache)

    def clear_cache(self) -> None:
        """Replace the cache tree with an empty root of the current size.

        Requests in flight for the old tree are not cancelled; their results
        are dropped when they arrive.
        """
        logger.debug("Clearing cache (size=%d, page_size=%d)", self.size, self.page_size)
        self.root_cache = self._create_root_cache()
        if self._retention is not None:
            self._retention.clear()

    def _create_root_cache(self) -> Cache:
        # Late-bound so that reassigning self.is_expanded reaches existing caches
        return Cache(self.page_size, self.size, lambda item: self.is_expanded(item))

    # Index translation

    def get_flat_index_info(self, flat_index: int) -> FlatIndexInfo:
        """Resolve a flat index to its cache, local index, page and level."""
        return get_flat_index_info(self.root_cache, flat_index)

    def get_flat_index_by_path(self, path: Sequence[float]) -> int:
        """Convert a per-level index path (``math.inf`` = last) to a flat index."""
        return get_flat_index_by_path(self.root_cache, path)

    def get_page_by_index(self, index: int) -> int:
        """Page containing a local index."""
        return index // self.page_size

    # Loading

    def ensure_flat_index_loaded(self, flat_index: int) -> None:
        """Request the page holding a flat index unless it is loaded or pending."""
        if flat_index < 0:
            return
        info = self.get_flat_index_info(flat_index)
        if not info.loaded:
            self._load_cache_page(info.cache, info.page)

    def ensure_flat_index_children_loaded(self, flat_index: int) -> None:
        """Make sure an expanded row's children have their first page requested."""
        if flat_index < 0:
            return
        info = self.get_flat_index_info(flat_index)
        if not info.loaded or not self.is_expanded(info.item):
            return

        sub_cache = info.cache.get_sub_cache(info.index)
        if sub_cache is None:
            sub_cache = info.cache.create_sub_cache(info.index)

        # A level that answered with no children never gets a slot on page 0
        if not sub_cache.is_page_loaded(0) and not sub_cache.received_empty:
            self._load_cache_page(sub_cache, 0)

    def ensure_first_page_loaded(self) -> None:
        """Request the first root page unless it is loaded or pending."""
        if not self.root_cache.is_page_loaded(0):
            self._load_cache_page(self.root_cache, 0)

    def _load_cache_page(self, cache: Cache, page: int) -> None:
        if self.data_provider is None or page in cache.pending_requests:
            return

        request = PageRequest(
            page=page,
            page_size=self.page_size,
            parent_item=cache.parent_item,
            extra=dict(self.data_provider_params() or {}),
        )
        is_sub_level = cache.parent_cache is not None

        def callback(items: List[Any], size: Optional[int] = None) -> None:
            if not self._is_live(cache):
                cache.pending_requests.pop(page, None)
                logger.debug("Dropping stale page %d for a discarded cache", page)
                return

            items = list(items)
            if size is not None:
                cache.size = size
            elif is_sub_level:
                cache.size = len(items)

            cache.set_page(page, items)
            if page == 0:
                cache.received_empty = not items
            self.recalculate_effective_size()
            logger.debug("Received page %d (%d items) at level %d, effective size %d",
                         page, len(items), cache.level, self.effective_size)

            self._emit(PageEvent.PAGE_RECEIVED, cache, page)
            cache.pending_requests.pop(page, None)
            self._emit(PageEvent.PAGE_LOADED, cache, page)

        cache.pending_requests[page] = callback
        logger.debug("Requesting page %d at level %d", page, cache.level)
        self._emit(PageEvent.PAGE_REQUESTED, cache, page)

        self._request_page(cache, request.to_params(), callback)

    def _request_page(self, cache: Cache, params: Dict[str, Any],
                      callback: Callable[..., None]) -> None:
        """Hand a fetch for ``cache`` to the data provider."""
        self.data_provider(params, callback)

    def _is_live(self, cache: Cache) -> bool:
        """Whether a cache is still reachable from the current root."""
        node = cache
        parent = node.parent_cache
        while parent is not None:
            if parent.get_sub_cache(node.parent_index) is not node:
                return False
            node, parent = parent, parent.parent_cache
        return node is self.root_cache

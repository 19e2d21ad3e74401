"""High-level API for PageTreeLib.

Convenience functions for the way a virtualized list talks to a controller:
ask for a window of rows, then read back whatever is loaded.
"""

from typing import Iterator, List, Optional

from .config import PageEvent
from .core.controller import DataProviderController
from .core.helpers import FlatIndexInfo


def ensure_rows_loaded(controller: DataProviderController, start: int, stop: int) -> int:
    """
    Request everything needed to show rows ``start`` to ``stop - 1``.

    Loaded rows whose item is expanded get their children requested, missing
    rows get their page requested. The range is cut at the effective size,
    which may grow while this runs when the provider answers synchronously.
    Nothing is requested while the effective size is 0; call
    ``controller.ensure_first_page_loaded()`` first when the root size is
    not known up front.

    Args:
        controller: Controller to drive
        start: First flat index
        stop: Flat index after the last one

    Returns:
        Number of fetches issued
    """
    requested = []

    def count(event, cache, page):
        requested.append((cache, page))

    controller.add_listener(PageEvent.PAGE_REQUESTED, count)
    try:
        flat_index = max(0, start)
        while flat_index < min(stop, controller.effective_size):
            info = controller.get_flat_index_info(flat_index)
            if not info.loaded:
                controller.ensure_flat_index_loaded(flat_index)
            elif controller.is_expanded(info.item):
                controller.ensure_flat_index_children_loaded(flat_index)
            flat_index += 1
    finally:
        controller.remove_listener(PageEvent.PAGE_REQUESTED, count)

    return len(requested)


def iter_rows(controller: DataProviderController,
              start: int = 0,
              stop: Optional[int] = None) -> Iterator[FlatIndexInfo]:
    """
    Iterate resolved rows of the flattened view without loading anything.

    Args:
        controller: Controller to read from
        start: First flat index
        stop: Flat index after the last one (default: effective size)

    Yields:
        FlatIndexInfo per row; check ``loaded`` before using ``item``
    """
    end = controller.effective_size if stop is None else min(stop, controller.effective_size)
    for flat_index in range(max(0, start), end):
        yield controller.get_flat_index_info(flat_index)


def get_loaded_items(controller: DataProviderController,
                     start: int = 0,
                     stop: Optional[int] = None) -> List:
    """
    Get the items of a row range, with None for rows not loaded yet.

    Args:
        controller: Controller to read from
        start: First flat index
        stop: Flat index after the last one (default: effective size)

    Returns:
        List of items in flat order
    """
    return [info.item for info in iter_rows(controller, start, stop)]

"""
High-level async API for PageTreeLib.

These helpers keep requesting and awaiting pages until a row range (or a
path) no longer changes, the way a virtual list settles after scrolling.
"""

import logging
from typing import List, Sequence

from ..api import ensure_rows_loaded, iter_rows
from ..core.helpers import FlatIndexInfo
from .controller import AsyncDataProviderController

logger = logging.getLogger(__name__)


async def _ensure_first_page(controller: AsyncDataProviderController) -> None:
    if controller.effective_size == 0:
        controller.ensure_first_page_loaded()
        await controller.wait_until_idle()


async def load_rows_async(controller: AsyncDataProviderController,
                          start: int,
                          stop: int,
                          max_rounds: int = 100) -> List[FlatIndexInfo]:
    """
    Load rows ``start`` to ``stop - 1`` including the children of expanded rows.

    Repeats request-then-wait rounds until a round issues no new fetch.
    Pages an error policy leaves pending are not retried.

    Args:
        controller: Async controller to drive
        start: First flat index
        stop: Flat index after the last one
        max_rounds: Give up after this many rounds (a provider returning
            fewer items than the size it reports never settles)

    Returns:
        Resolved rows of the range, cut at the effective size
    """
    await _ensure_first_page(controller)

    for _ in range(max_rounds):
        requested = ensure_rows_loaded(controller, start, stop)
        await controller.wait_until_idle()
        if requested == 0:
            break
    else:
        logger.warning("Rows %d-%d did not settle after %d rounds", start, stop, max_rounds)

    return list(iter_rows(controller, start, stop))


async def resolve_path_async(controller: AsyncDataProviderController,
                             path: Sequence[float],
                             max_rounds: int = 100) -> int:
    """
    Resolve a per-level index path to a flat index, loading levels on the way.

    Like scrolling to a nested row: each round loads the row the path
    currently points at (and its children when expanded) until the flat
    index stops moving.

    Args:
        controller: Async controller to drive
        path: Local indexes per level, ``math.inf`` for the last item
        max_rounds: Give up after this many rounds

    Returns:
        Flat index of the deepest reachable row on the path
    """
    await _ensure_first_page(controller)

    target = None
    for _ in range(max_rounds):
        flat_index = controller.get_flat_index_by_path(path)
        requested = ensure_rows_loaded(controller, flat_index, flat_index + 1)
        await controller.wait_until_idle()
        if requested == 0 and flat_index == target:
            return flat_index
        target = flat_index

    logger.warning("Path %r did not settle after %d rounds", list(path), max_rounds)
    return controller.get_flat_index_by_path(path)

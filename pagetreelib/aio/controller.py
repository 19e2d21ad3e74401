"""Async data provider controller.

Bridges coroutine data providers onto the callback protocol of
DataProviderController. Every fetch runs as an asyncio task; its result is
applied through the same completion callback, on the event loop thread, so
the cache tree is never mutated concurrently.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.cache import Cache
from ..core.controller import DataProviderController
from .error_policies import RETRY, ErrorPolicy, FailFastPolicy

logger = logging.getLogger(__name__)

AsyncDataProvider = Callable[[Dict[str, Any]], Awaitable[Any]]


def unpack_page_result(result: Any):
    """Split a provider result into ``(items, size)``.

    A provider returns either a list of items or an ``(items, size)`` tuple.
    """
    if isinstance(result, tuple):
        items, size = result
        return list(items), size
    return list(result), None


class AsyncDataProviderController(DataProviderController):
    """
    Controller for coroutine data providers.

    The provider is ``async def provider(params)`` returning a list of items
    or ``(items, size)``. The ``ensure_*`` methods must be called while an
    event loop is running, since they schedule tasks on it.

    Example:
        async def provider(params):
            rows = await backend.fetch(params['page'], params['page_size'])
            return rows.items, rows.total

        controller = AsyncDataProviderController(data_provider=provider)
        controller.ensure_first_page_loaded()
        await controller.wait_until_idle()
    """

    def __init__(self,
                 size: int = 0,
                 page_size: int = 50,
                 is_expanded: Optional[Callable[[Any], bool]] = None,
                 data_provider: Optional[AsyncDataProvider] = None,
                 data_provider_params: Optional[Callable[[], Dict[str, Any]]] = None,
                 retain_collapsed: Optional[int] = None,
                 error_policy: Optional[ErrorPolicy] = None):
        """
        Initialize the controller.

        Args:
            size: Known number of root items
            page_size: Items per fetch
            is_expanded: Predicate telling whether an item is expanded
            data_provider: Coroutine function fetching one page
            data_provider_params: Supplier of extra fetch params (sorting, filters)
            retain_collapsed: Collapsed subtrees to keep cached (None = all)
            error_policy: What to do when the provider raises (default fail fast)
        """
        self.error_policy = error_policy or FailFastPolicy()
        self._tasks: Dict[asyncio.Task, Cache] = {}
        self._failures: List[BaseException] = []
        super().__init__(
            size=size,
            page_size=page_size,
            is_expanded=is_expanded,
            data_provider=data_provider,
            data_provider_params=data_provider_params,
            retain_collapsed=retain_collapsed,
        )

    @property
    def async_data_provider(self) -> Optional[AsyncDataProvider]:
        """The coroutine provider pages are fetched with."""
        return self.data_provider

    def set_error_policy(self, policy: ErrorPolicy) -> None:
        """Replace the error policy; applies to failures from now on."""
        self.error_policy = policy

    @property
    def pending_tasks(self) -> int:
        """Number of fetch tasks still running for the live cache tree."""
        return len(self._live_tasks())

    def _live_tasks(self) -> List[asyncio.Task]:
        return [task for task, cache in self._tasks.items() if self._is_live(cache)]

    async def wait_until_idle(self) -> None:
        """
        Wait until no fetch task of the live cache tree is running.

        Tasks started while waiting (for instance by PAGE_RECEIVED listeners
        loading children) are awaited too. Fetches for a discarded tree keep
        running in the background but are neither awaited nor reported.
        Pages a policy left pending do not have a task and are not waited for.

        Raises:
            Exception: The first error a live fetch task failed with since
                the last call
        """
        tasks = self._live_tasks()
        while tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            tasks = self._live_tasks()

        if self._failures:
            failure = self._failures[0]
            self._failures.clear()
            raise failure

    def _request_page(self, cache: Cache, params: Dict[str, Any],
                      callback: Callable[..., None]) -> None:
        task = asyncio.get_running_loop().create_task(
            self._fetch(self.data_provider, params, callback))
        self._tasks[task] = cache
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        cache = self._tasks.pop(task)
        if task.cancelled() or task.exception() is None:
            return
        if self._is_live(cache):
            self._failures.append(task.exception())
        else:
            logger.debug("Ignoring failed fetch for a discarded cache: %r", task.exception())

    async def _fetch(self, provider: AsyncDataProvider, params: Dict[str, Any],
                     callback: Callable[..., None]) -> None:
        attempt = 0
        while True:
            try:
                result = await provider(params)
                break
            except Exception as error:
                attempt += 1
                decision = await self.error_policy.handle(error, params, attempt)
                if decision is RETRY:
                    logger.debug("Retrying page %s (attempt %d)", params.get('page'), attempt + 1)
                    continue
                if decision is None:
                    logger.debug("Leaving page %s pending after provider error", params.get('page'))
                    return
                result = decision
                break

        items, size = unpack_page_result(result)
        callback(items, size)

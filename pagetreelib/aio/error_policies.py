"""
Error handling policies for async data providers.

When a coroutine data provider raises, the async controller asks a policy
what to do with the failed page: re-raise, deliver a fallback result, retry
the fetch, or leave the page pending.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from cachetools import LRUCache

logger = logging.getLogger(__name__)

PageResult = Tuple[List[Any], Optional[int]]


class _Retry:
    """Marker returned by a policy to request another provider attempt."""

    def __repr__(self) -> str:
        return 'RETRY'


RETRY = _Retry()


class ErrorPolicy(ABC):
    """
    Base class for provider error policies.

    ``handle`` returns one of:
        - a ``(items, size)`` result delivered as if the provider returned it
        - ``RETRY`` to call the provider again with the same params
        - ``None`` to leave the page pending (rows keep showing as loading)
    or raises to fail the fetch task.
    """

    @abstractmethod
    async def handle(self, error: Exception, params: Dict[str, Any], attempt: int) -> Any:
        """
        Handle an error raised by the data provider.

        Args:
            error: The exception that was raised
            params: Params of the failed fetch
            attempt: Number of failed attempts so far for this fetch (1-based)

        Returns:
            A page result, ``RETRY`` or None
        """
        pass

    @staticmethod
    def _record(error: Exception, params: Dict[str, Any], attempt: int) -> Dict[str, Any]:
        return {
            'page': params.get('page'),
            'parent_item': params.get('parent_item'),
            'attempt': attempt,
            'error': error,
            'error_type': type(error).__name__,
            'error_message': str(error),
        }


class FailFastPolicy(ErrorPolicy):
    """
    Policy that immediately re-raises any error.

    This is the default. The fetch task fails, its page stays pending, and
    ``AsyncDataProviderController.wait_until_idle`` raises the error.
    """

    async def handle(self, error: Exception, params: Dict[str, Any], attempt: int) -> Any:
        """Re-raise the error immediately."""
        raise error


class ContinueOnErrorsPolicy(ErrorPolicy):
    """
    Policy that logs errors and keeps going.

    Errors are collected for later inspection. The failed page either gets
    ``fallback`` delivered (e.g. ``([], 0)`` to show an empty level) or, with
    no fallback, stays pending.
    """

    def __init__(self, verbose: bool = True, fallback: Optional[PageResult] = None):
        """
        Initialize the policy.

        Args:
            verbose: If True, log a warning for every error
            fallback: Result delivered in place of the failed page
        """
        self.errors: List[Dict[str, Any]] = []
        self.failed_pages: List[int] = []
        self.verbose = verbose
        self.fallback = fallback

    async def handle(self, error: Exception, params: Dict[str, Any], attempt: int) -> Any:
        """Record the error, log it, and return the fallback."""
        self.errors.append(self._record(error, params, attempt))
        self.failed_pages.append(params.get('page'))

        if self.verbose:
            logger.warning("Data provider failed for page %s (parent %r): %s",
                           params.get('page'), params.get('parent_item'), error)

        return self.fallback

    def get_statistics(self) -> dict:
        """
        Get statistics about errors encountered.

        Returns:
            Dictionary with error counts and details
        """
        error_types: Dict[str, int] = {}
        for record in self.errors:
            error_types[record['error_type']] = error_types.get(record['error_type'], 0) + 1
        return {
            'total_errors': len(self.errors),
            'failed_pages': len(self.failed_pages),
            'error_types': error_types,
            'errors': self.errors,
        }


class CollectErrorsPolicy(ErrorPolicy):
    """
    Policy that collects all errors without logging.

    Failed pages stay pending. Useful when errors are presented in bulk by
    the caller.
    """

    def __init__(self):
        """Initialize the policy."""
        self.errors: List[Dict[str, Any]] = []

    async def handle(self, error: Exception, params: Dict[str, Any], attempt: int) -> Any:
        """Silently collect the error."""
        self.errors.append(self._record(error, params, attempt))
        return None


class RetryPolicy(ErrorPolicy):
    """
    Policy that retries failed fetches with exponential backoff.

    The delay before retry ``n`` is ``base_delay * backoff_factor ** (n - 1)``.
    After ``max_retries`` retries the last error is re-raised.

    ``retry_counts`` maps ``(page, parent id)`` to the retries made so far.
    The parent id comes from ``item_id`` (e.g. ``ExpandedItems.get_item_id``),
    else the parent item itself, or its repr when it is not hashable. Only
    the ``max_tracked`` most recently retried pages are kept.
    """

    def __init__(self, max_retries: int = 3, backoff_factor: float = 2.0, base_delay: float = 0.0,
                 item_id: Optional[Callable[[Any], Any]] = None, max_tracked: int = 1024):
        """
        Initialize retry policy.

        Args:
            max_retries: Maximum number of retry attempts
            backoff_factor: Multiplier for exponential backoff
            base_delay: Delay in seconds before the first retry
            item_id: Function returning a parent item's id for ``retry_counts``
            max_tracked: Pages to keep in ``retry_counts``
        """
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.base_delay = base_delay
        self.item_id = item_id
        self.retry_counts: LRUCache = LRUCache(maxsize=max_tracked)

    def _parent_key(self, parent_item: Any) -> Any:
        if parent_item is None:
            return None
        if self.item_id is not None:
            return self.item_id(parent_item)
        try:
            hash(parent_item)
        except TypeError:
            return repr(parent_item)
        return parent_item

    async def handle(self, error: Exception, params: Dict[str, Any], attempt: int) -> Any:
        """Sleep and ask for a retry, or re-raise once retries are used up."""
        if attempt > self.max_retries:
            raise error

        key = (params.get('page'), self._parent_key(params.get('parent_item')))
        self.retry_counts[key] = self.retry_counts.get(key, 0) + 1

        delay = self.base_delay * (self.backoff_factor ** (attempt - 1))
        if delay > 0:
            await asyncio.sleep(delay)
        return RETRY


class ThresholdPolicy(ErrorPolicy):
    """
    Policy that tolerates errors up to a threshold, then fails fast.

    Useful when some errors are expected but too many indicate a systemic
    problem (e.g. the backend is down). Tolerated pages stay pending.
    """

    def __init__(self, max_errors: int = 10, verbose: bool = True):
        """
        Initialize threshold policy.

        Args:
            max_errors: Maximum errors to tolerate before failing
            verbose: If True, log warnings for errors
        """
        self.max_errors = max_errors
        self.error_count = 0
        self.verbose = verbose
        self.errors: List[Exception] = []

    async def handle(self, error: Exception, params: Dict[str, Any], attempt: int) -> Any:
        """Handle error if under threshold, otherwise raise."""
        self.error_count += 1
        self.errors.append(error)

        if self.error_count > self.max_errors:
            raise RuntimeError(f"Error threshold exceeded ({self.max_errors} errors)") from error

        if self.verbose:
            logger.warning("[%d/%d] Data provider failed for page %s: %s",
                           self.error_count, self.max_errors, params.get('page'), error)
        return None

"""
Tests for AsyncDataProviderController - coroutine providers on asyncio.
"""

import asyncio
import logging

import pytest

from pagetreelib import PageEvent
from pagetreelib.aio import (
    AsyncDataProviderController,
    CollectErrorsPolicy,
    ContinueOnErrorsPolicy,
    FailFastPolicy,
    RetryPolicy,
    ThresholdPolicy,
    unpack_page_result,
)


class FutureProvider:
    """Coroutine provider whose results are set by the test."""

    def __init__(self):
        self.calls = []

    async def __call__(self, params):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((params, future))
        return await future

    def respond(self, number, result):
        self.calls[number][1].set_result(result)

    def fail(self, number, error):
        self.calls[number][1].set_exception(error)


class AsyncTreeProvider:
    """Coroutine provider answering from a nested dict after a short sleep."""

    def __init__(self, children, delay=0.0):
        self.children = children
        self.delay = delay
        self.calls = []

    async def __call__(self, params):
        self.calls.append(params)
        await asyncio.sleep(self.delay)
        level = self.children.get(params['parent_item'], [])
        start = params['page'] * params['page_size']
        return level[start:start + params['page_size']], len(level)


class FlakyProvider:
    """Raises ``failures`` times, then answers."""

    def __init__(self, failures, items=('a', 'b')):
        self.failures = failures
        self.items = list(items)
        self.calls = 0

    async def __call__(self, params):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"attempt {self.calls} failed")
        return self.items


class TestUnpackPageResult:
    """Test provider result normalization."""

    def test_list(self):
        assert unpack_page_result(['a', 'b']) == (['a', 'b'], None)

    def test_tuple(self):
        assert unpack_page_result((['a'], 10)) == (['a'], 10)

    def test_tuple_without_size(self):
        assert unpack_page_result((('a', 'b'), None)) == (['a', 'b'], None)


class TestWithoutLoop:
    """Test behaviour outside a running event loop."""

    def test_requires_running_loop(self):
        """Scheduling a fetch needs a running loop."""
        controller = AsyncDataProviderController(size=4, data_provider=FutureProvider())

        with pytest.raises(RuntimeError):
            controller.ensure_flat_index_loaded(0)


@pytest.mark.asyncio
class TestAsyncFetching:
    """Test the async fetch cycle."""

    async def test_list_result_keeps_root_size(self):
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=5, page_size=2, data_provider=provider)

        controller.ensure_flat_index_loaded(3)
        await asyncio.sleep(0)
        assert controller.is_loading() is True
        assert controller.pending_tasks == 1

        provider.respond(0, ['c', 'd'])
        await controller.wait_until_idle()

        assert controller.root_cache.size == 5
        assert controller.get_flat_index_info(3).item == 'd'
        assert controller.is_loading() is False
        assert controller.pending_tasks == 0

    async def test_tuple_result_sets_size(self):
        provider = FutureProvider()
        controller = AsyncDataProviderController(page_size=2, data_provider=provider)

        controller.ensure_first_page_loaded()
        await asyncio.sleep(0)
        provider.respond(0, (['a', 'b'], 7))
        await controller.wait_until_idle()

        assert controller.effective_size == 7

    async def test_params_reach_provider(self):
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=10, page_size=4, data_provider=provider,
                                                 data_provider_params=lambda: {'filters': ['f']})

        controller.ensure_flat_index_loaded(9)
        await asyncio.sleep(0)

        params, _ = provider.calls[0]
        assert params == {'page': 2, 'page_size': 4, 'parent_item': None, 'filters': ['f']}
        provider.respond(0, [])
        await controller.wait_until_idle()

    async def test_deduplicated_while_pending(self):
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=10, page_size=5, data_provider=provider)

        for flat_index in range(5):
            controller.ensure_flat_index_loaded(flat_index)
        await asyncio.sleep(0)

        assert len(provider.calls) == 1
        provider.respond(0, list('abcde'))
        await controller.wait_until_idle()

    async def test_out_of_order(self):
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=6, page_size=2, data_provider=provider)

        for flat_index in (0, 2, 4):
            controller.ensure_flat_index_loaded(flat_index)
        await asyncio.sleep(0)

        provider.respond(2, ['e', 'f'])
        await asyncio.sleep(0)
        provider.respond(0, ['a', 'b'])
        provider.respond(1, ['c', 'd'])
        await controller.wait_until_idle()

        assert [controller.get_flat_index_info(i).item for i in range(6)] == list('abcdef')

    async def test_stale_result_after_page_size_change(self):
        """The discarded tree's late result leaves the live tree idle and empty."""
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=6, page_size=2, data_provider=provider)

        controller.ensure_flat_index_loaded(2)
        await asyncio.sleep(0)
        controller.set_page_size(3)
        assert controller.is_loading() is False

        provider.respond(0, (['c', 'd'], 100))
        await controller.wait_until_idle()

        assert controller.is_loading() is False
        assert controller.root_cache.items == {}
        assert controller.effective_size == 6

    async def test_set_data_provider(self):
        old = FutureProvider()
        new = AsyncTreeProvider({None: ['x', 'y']})
        controller = AsyncDataProviderController(page_size=2, data_provider=old)
        controller.ensure_first_page_loaded()
        await asyncio.sleep(0)

        controller.set_data_provider(new)
        assert controller.async_data_provider is new
        controller.ensure_first_page_loaded()
        old.respond(0, (['old'], 1))
        await controller.wait_until_idle()

        assert controller.get_flat_index_info(0).item == 'x'
        assert controller.effective_size == 2

    async def test_discarded_fetch_failure_not_reported(self):
        """An old backend failing after a provider swap does not break the live tree."""
        old = FutureProvider()
        controller = AsyncDataProviderController(page_size=2, data_provider=old)
        controller.ensure_first_page_loaded()
        await asyncio.sleep(0)

        controller.set_data_provider(AsyncTreeProvider({None: ['x', 'y']}))
        controller.ensure_first_page_loaded()
        old.fail(0, OSError("old backend"))
        await asyncio.sleep(0)
        await controller.wait_until_idle()

        assert controller.get_flat_index_info(0).item == 'x'
        assert controller.is_loading() is False

    async def test_discarded_fetch_not_awaited(self):
        """A hung fetch of the discarded tree does not block waiting."""
        old = FutureProvider()
        controller = AsyncDataProviderController(size=4, page_size=2, data_provider=old)
        controller.ensure_flat_index_loaded(0)
        await asyncio.sleep(0)

        controller.clear_cache()
        assert controller.is_loading() is False
        assert controller.pending_tasks == 0

        await asyncio.wait_for(controller.wait_until_idle(), 0.5)

        old.respond(0, ['late', 'late'])
        await asyncio.sleep(0)
        assert controller.root_cache.items == {}

    async def test_sub_level_loading(self):
        children = {None: ['a', 'b'], 'a': ['a0', 'a1', 'a2']}
        controller = AsyncDataProviderController(page_size=10,
                                                 data_provider=AsyncTreeProvider(children),
                                                 is_expanded=lambda item: item == 'a')
        controller.ensure_first_page_loaded()
        await controller.wait_until_idle()

        controller.ensure_flat_index_children_loaded(0)
        await controller.wait_until_idle()

        assert controller.effective_size == 5
        assert controller.get_flat_index_info(3).item == 'a2'
        assert controller.get_flat_index_info(3).level == 1

    async def test_wait_includes_listener_tasks(self):
        """Fetches started by PAGE_RECEIVED listeners are awaited too."""
        children = {None: ['a', 'b'], 'a': ['a0'], 'a0': ['a0x']}
        controller = AsyncDataProviderController(page_size=10,
                                                 data_provider=AsyncTreeProvider(children, delay=0.001),
                                                 is_expanded=lambda item: item in ('a', 'a0'))

        def load_children(event, cache, page):
            for flat_index in range(controller.effective_size):
                controller.ensure_flat_index_children_loaded(flat_index)

        controller.add_listener(PageEvent.PAGE_RECEIVED, load_children)
        controller.ensure_first_page_loaded()
        await controller.wait_until_idle()

        items = [controller.get_flat_index_info(i).item for i in range(controller.effective_size)]
        assert items == ['a', 'a0', 'a0x', 'b']


@pytest.mark.asyncio
class TestAsyncErrorPolicies:
    """Test how provider failures are handled."""

    async def test_default_fail_fast(self):
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=4, page_size=2, data_provider=provider)
        assert isinstance(controller.error_policy, FailFastPolicy)

        controller.ensure_flat_index_loaded(0)
        await asyncio.sleep(0)
        provider.fail(0, ValueError("backend down"))

        with pytest.raises(ValueError, match="backend down"):
            await controller.wait_until_idle()

        # Page stays pending; the failure is reported once
        assert controller.is_loading() is True
        await controller.wait_until_idle()

    async def test_continue_with_fallback(self):
        policy = ContinueOnErrorsPolicy(verbose=False, fallback=(['placeholder'], 1))
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=4, page_size=2, data_provider=provider,
                                                 error_policy=policy)

        controller.ensure_flat_index_loaded(0)
        await asyncio.sleep(0)
        provider.fail(0, ConnectionError("timeout"))
        await controller.wait_until_idle()

        assert controller.get_flat_index_info(0).item == 'placeholder'
        assert controller.effective_size == 1
        assert controller.is_loading() is False
        assert policy.get_statistics()['total_errors'] == 1
        assert policy.failed_pages == [0]

    async def test_continue_logs_warning(self, caplog):
        policy = ContinueOnErrorsPolicy(verbose=True)
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=4, page_size=2, data_provider=provider,
                                                 error_policy=policy)

        with caplog.at_level(logging.WARNING, logger='pagetreelib.aio.error_policies'):
            controller.ensure_flat_index_loaded(2)
            await asyncio.sleep(0)
            provider.fail(0, ConnectionError("timeout"))
            await controller.wait_until_idle()

        assert "page 1" in caplog.text
        assert controller.is_loading() is True

    async def test_collect_errors_leaves_page_pending(self):
        policy = CollectErrorsPolicy()
        controller = AsyncDataProviderController(size=4, page_size=2,
                                                 data_provider=FlakyProvider(failures=1),
                                                 error_policy=policy)

        controller.ensure_flat_index_loaded(0)
        await controller.wait_until_idle()

        assert len(policy.errors) == 1
        assert policy.errors[0]['error_type'] == 'ConnectionError'
        assert controller.is_loading() is True

        # A pending page is not requested again
        controller.ensure_flat_index_loaded(0)
        await controller.wait_until_idle()
        assert len(policy.errors) == 1

    async def test_retry_then_succeed(self):
        provider = FlakyProvider(failures=2)
        controller = AsyncDataProviderController(size=2, page_size=2, data_provider=provider,
                                                 error_policy=RetryPolicy(max_retries=3))

        controller.ensure_flat_index_loaded(0)
        await controller.wait_until_idle()

        assert provider.calls == 3
        assert controller.get_flat_index_info(1).item == 'b'
        assert controller.is_loading() is False

    async def test_retry_exhausted(self):
        provider = FlakyProvider(failures=5)
        controller = AsyncDataProviderController(size=2, page_size=2, data_provider=provider,
                                                 error_policy=RetryPolicy(max_retries=1))

        controller.ensure_flat_index_loaded(0)
        with pytest.raises(ConnectionError, match="attempt 2"):
            await controller.wait_until_idle()

        assert provider.calls == 2

    async def test_retry_counts_keyed_by_parent_id(self):
        """Refetched parent objects with the same id share one counter."""
        policy = RetryPolicy(max_retries=5, item_id=lambda item: item['id'])
        error = ConnectionError("timeout")

        await policy.handle(error, {'page': 0, 'parent_item': {'id': 1}}, 1)
        await policy.handle(error, {'page': 0, 'parent_item': {'id': 1, 'name': 'again'}}, 2)
        await policy.handle(error, {'page': 0, 'parent_item': {'id': 2}}, 1)

        assert policy.retry_counts[(0, 1)] == 2
        assert policy.retry_counts[(0, 2)] == 1

    async def test_retry_counts_bounded(self):
        policy = RetryPolicy(max_tracked=2)
        error = ConnectionError("timeout")

        for page in range(3):
            await policy.handle(error, {'page': page, 'parent_item': None}, 1)

        assert len(policy.retry_counts) == 2
        assert (0, None) not in policy.retry_counts

    async def test_threshold(self):
        provider = FutureProvider()
        controller = AsyncDataProviderController(size=4, page_size=2, data_provider=provider,
                                                 error_policy=ThresholdPolicy(max_errors=1, verbose=False))

        controller.ensure_flat_index_loaded(0)
        controller.ensure_flat_index_loaded(2)
        await asyncio.sleep(0)
        provider.fail(0, OSError("first"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        provider.fail(1, OSError("second"))

        with pytest.raises(RuntimeError, match="threshold exceeded"):
            await controller.wait_until_idle()

    async def test_set_error_policy(self):
        provider = FlakyProvider(failures=1)
        controller = AsyncDataProviderController(size=2, page_size=2, data_provider=provider)
        policy = CollectErrorsPolicy()

        controller.set_error_policy(policy)
        controller.ensure_flat_index_loaded(0)
        await controller.wait_until_idle()

        assert controller.error_policy is policy
        assert len(policy.errors) == 1

"""Asynchronous implementation of PageTreeLib.

Coroutine data providers, scheduled as asyncio tasks, with pluggable error
policies for failed fetches.
"""

from .controller import AsyncDataProviderController, unpack_page_result

from .error_policies import (
    RETRY,
    ErrorPolicy,
    FailFastPolicy,
    ContinueOnErrorsPolicy,
    CollectErrorsPolicy,
    RetryPolicy,
    ThresholdPolicy,
)

from .api import (
    load_rows_async,
    resolve_path_async,
)

__all__ = [
    # Controller
    'AsyncDataProviderController',
    'unpack_page_result',
    # Error policies
    'RETRY',
    'ErrorPolicy',
    'FailFastPolicy',
    'ContinueOnErrorsPolicy',
    'CollectErrorsPolicy',
    'RetryPolicy',
    'ThresholdPolicy',
    # High-level API
    'load_rows_async',
    'resolve_path_async',
]

"""Testing utilities for PageTreeLib consumers."""

from .fixtures import CacheTestHelper

__all__ = ['CacheTestHelper']

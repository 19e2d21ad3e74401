"""Core paging cache components.

Everything here runs on the caller's thread. Data providers hand results
back through a callback, either immediately or later.
"""

from .cache import Cache
from .helpers import (
    FlatIndexInfo,
    get_flat_index_info,
    get_flat_index_by_path,
    get_index_path,
)
from .controller import DataProviderController
from .expansion import ExpandedItems, get_by_path
from .retention import CollapsedSubCacheRetention

__all__ = [
    'Cache',
    'FlatIndexInfo',
    'get_flat_index_info',
    'get_flat_index_by_path',
    'get_index_path',
    'DataProviderController',
    'ExpandedItems',
    'get_by_path',
    'CollapsedSubCacheRetention',
]

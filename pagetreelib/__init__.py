"""PageTreeLib - Lazy paging cache for flat and hierarchical data.

PageTreeLib loads only the pages of a (possibly huge, possibly nested) dataset
that a virtualized list actually shows, and exposes every expanded level
through one flat, zero-based row index.

Choose your implementation:
━━━━━━━━━━━━━━━━━━━━━━━━━━
Callback providers:
    from pagetreelib.core import DataProviderController

Coroutine providers:
    from pagetreelib.aio import AsyncDataProviderController
━━━━━━━━━━━━━━━━━━━━━━━━━━

Both share the same cache tree and index mapping; the async controller
only changes how pages are fetched.
"""

__version__ = "0.1.0"

from . import core
from . import aio

from .config import ControllerConfig, PageEvent, PageRequest
from .core import (
    Cache,
    FlatIndexInfo,
    DataProviderController,
    ExpandedItems,
)
from .aio import AsyncDataProviderController
from .api import ensure_rows_loaded, iter_rows, get_loaded_items

__all__ = [
    "__version__",
    "core",
    "aio",
    # Configuration
    "ControllerConfig",
    "PageEvent",
    "PageRequest",
    # Core
    "Cache",
    "FlatIndexInfo",
    "DataProviderController",
    "ExpandedItems",
    "AsyncDataProviderController",
    # High-level API
    "ensure_rows_loaded",
    "iter_rows",
    "get_loaded_items",
]

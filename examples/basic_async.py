#!/usr/bin/env python3
"""
Basic async example: a paged category tree behind a slow backend.

This example demonstrates:
- A coroutine data provider returning ``(items, size)``
- Expanding items by id with ExpandedItems
- Loading a window of rows and resolving a nested path
"""

import asyncio
import logging
import math
import sys
from pathlib import Path

# Add parent directory to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

from pagetreelib import ExpandedItems
from pagetreelib.aio import (
    AsyncDataProviderController,
    ContinueOnErrorsPolicy,
    load_rows_async,
    resolve_path_async,
)


async def fetch_categories(params):
    """Pretend backend: every category has a few sub-categories."""
    await asyncio.sleep(0.01)
    parent = params['parent_item']
    if parent is None:
        total, prefix, depth = 250, "cat", 0
    else:
        total, prefix, depth = 12, parent['id'], parent['depth'] + 1
    start = params['page'] * params['page_size']
    stop = min(start + params['page_size'], total)
    items = [{'id': f"{prefix}/{i}", 'depth': depth} for i in range(start, stop)]
    return items, total


def show(rows):
    for row in rows:
        if row.loaded:
            print(f"  {row.flat_index:4d}  {'  ' * row.level}{row.item['id']}")
        else:
            print(f"  {row.flat_index:4d}  {'  ' * row.level}...")


async def main():
    expanded = ExpandedItems(item_id_path='id')
    controller = AsyncDataProviderController(
        page_size=20,
        data_provider=fetch_categories,
        is_expanded=expanded.is_expanded,
        retain_collapsed=10,
        error_policy=ContinueOnErrorsPolicy(),
    )
    expanded.on_change.append(controller.recalculate_effective_size)

    print("First rows:")
    show(await load_rows_async(controller, 0, 5))

    expanded.expand({'id': 'cat/1'})
    expanded.expand({'id': 'cat/1/3'})
    print("\nAfter expanding cat/1 and cat/1/3:")
    show(await load_rows_async(controller, 0, 25))

    flat_index = await resolve_path_async(controller, [1, 3, math.inf])
    print(f"\nLast child of cat/1/3 is row {flat_index}:")
    show(await load_rows_async(controller, flat_index, flat_index + 1))

    print(f"\nTotal rows: {controller.effective_size:,}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("PageTreeLib - Basic Async Example")
    print("=" * 50)
    asyncio.run(main())

#!/usr/bin/env python3
"""
Callback-style data provider with deferred responses.

This example demonstrates:
- A provider that answers later, the way a network client would
- Page events for showing loading state
- Out-of-order responses landing in the right rows
"""

import sys
from pathlib import Path

# Add parent directory to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

from pagetreelib import DataProviderController, PageEvent, get_loaded_items


class DeferredBackend:
    """Queues requests until ``flush`` answers them (newest first)."""

    def __init__(self, total):
        self.total = total
        self.queue = []

    def __call__(self, params, callback):
        self.queue.append((params, callback))

    def flush(self):
        while self.queue:
            params, callback = self.queue.pop()
            start = params['page'] * params['page_size']
            stop = min(start + params['page_size'], self.total)
            callback([f"row {i}" for i in range(start, stop)], self.total)


def main():
    backend = DeferredBackend(total=40)
    controller = DataProviderController(size=40, page_size=8, data_provider=backend)

    def on_event(event, cache, page):
        print(f"  {event.value:15s} page {page} (level {cache.level})")

    for event in PageEvent:
        controller.add_listener(event, on_event)

    print("Scrolling to rows 10-25:")
    for flat_index in range(10, 26):
        controller.ensure_flat_index_loaded(flat_index)
    print(f"  loading: {controller.is_loading()}")

    print("\nBackend answers:")
    backend.flush()
    print(f"  loading: {controller.is_loading()}")

    print("\nVisible rows:")
    for flat_index, item in enumerate(get_loaded_items(controller, 10, 26), start=10):
        print(f"  {flat_index:3d}: {item}")


if __name__ == "__main__":
    print("PageTreeLib - Callback Provider Example")
    print("=" * 50)
    main()

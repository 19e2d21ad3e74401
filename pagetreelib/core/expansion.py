"""Expansion state keyed by item id.

Items handed out by a data provider are often fresh objects on every fetch,
so expansion is tracked by an id derived from the item rather than by
identity. ``ExpandedItems.is_expanded`` plugs straight into a controller.
"""

from typing import Any, Callable, Iterable, List, Optional


def get_by_path(path: str, item: Any) -> Any:
    """Read a dotted path from nested mappings and/or attributes.

    Args:
        path: Dotted path such as ``"id"`` or ``"meta.key"``
        item: Object to read from

    Returns:
        The value found, or None if any step is missing
    """
    value = item
    for part in path.split('.'):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


class ExpandedItems:
    """Set of expanded items compared by id.

    Example:
        expanded = ExpandedItems(item_id_path='id')
        controller = DataProviderController(is_expanded=expanded.is_expanded)
        expanded.on_change.append(controller.recalculate_effective_size)
        expanded.expand({'id': 7, 'name': 'Reports'})
    """

    def __init__(self,
                 items: Iterable[Any] = (),
                 item_id: Optional[Callable[[Any], Any]] = None,
                 item_id_path: Optional[str] = None,
                 on_change: Optional[Callable[[], None]] = None):
        """
        Initialize expansion state.

        Args:
            items: Items expanded from the start
            item_id: Function returning an item's id (takes precedence)
            item_id_path: Dotted path to an item's id
            on_change: Called after every actual change
        """
        self.item_id = item_id
        self.item_id_path = item_id_path
        self.on_change: List[Callable[[], None]] = [on_change] if on_change else []
        self._items: List[Any] = []
        self._keys = set()
        for item in items:
            self._add(item)

    def get_item_id(self, item: Any) -> Any:
        """Id used to compare items; the item itself when nothing is configured."""
        if self.item_id is not None:
            return self.item_id(item)
        if self.item_id_path:
            return get_by_path(self.item_id_path, item)
        return item

    def items_equal(self, item1: Any, item2: Any) -> bool:
        return self.get_item_id(item1) == self.get_item_id(item2)

    @property
    def items(self) -> List[Any]:
        """Expanded items in the order they were expanded."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: Any) -> bool:
        return self.is_expanded(item)

    def is_expanded(self, item: Any) -> bool:
        """Whether an item (by id) is expanded."""
        return self.get_item_id(item) in self._keys

    def expand(self, item: Any) -> bool:
        """Expand an item.

        Returns:
            True if the item was not expanded before
        """
        if self.is_expanded(item):
            return False
        self._add(item)
        self._notify()
        return True

    def collapse(self, item: Any) -> bool:
        """Collapse an item.

        Returns:
            True if the item was expanded before
        """
        if not self.is_expanded(item):
            return False
        key = self.get_item_id(item)
        self._keys.discard(key)
        self._items = [i for i in self._items if self.get_item_id(i) != key]
        self._notify()
        return True

    def toggle(self, item: Any) -> bool:
        """Flip an item's expansion; returns the new state."""
        if self.is_expanded(item):
            self.collapse(item)
            return False
        self.expand(item)
        return True

    def clear(self) -> None:
        """Collapse everything."""
        if not self._items:
            return
        self._items = []
        self._keys.clear()
        self._notify()

    def _add(self, item: Any) -> None:
        key = self.get_item_id(item)
        if key in self._keys:
            return
        self._items.append(item)
        self._keys.add(key)

    def _notify(self) -> None:
        for callback in list(self.on_change):
            callback()

"""Configuration system for PageTreeLib.

This module defines how users specify a controller: how many root items
exist, how large a page is, which items are expanded, and where pages come
from. It also names the notifications a controller emits.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional


class PageEvent(Enum):
    """Notifications emitted by a controller for every page fetch.

    Emitted in declaration order. Consumers rely on the order to toggle
    loading indicators before data is applied.
    """
    PAGE_REQUESTED = "page-requested"   # Pending entry registered, provider about to run
    PAGE_RECEIVED = "page-received"     # Items stored, sizes recalculated
    PAGE_LOADED = "page-loaded"         # Pending entry cleared


def _never_expanded(item: Any) -> bool:
    return False


def _no_extra_params() -> Dict[str, Any]:
    return {}


@dataclass
class ControllerConfig:
    """Complete configuration for a data provider controller.

    Capabilities (``is_expanded``, ``data_provider``,
    ``data_provider_params``) are plain callables so they can be swapped at
    runtime through the controller's setters.
    """

    # Sizing
    size: int = 0                # Root item count, unless the provider reports it
    page_size: int = 50          # Items per fetch

    # Injected capabilities
    is_expanded: Callable[[Any], bool] = _never_expanded
    data_provider: Optional[Callable[..., Any]] = None
    data_provider_params: Callable[[], Dict[str, Any]] = _no_extra_params

    # Sub-cache housekeeping
    retain_collapsed: Optional[int] = None  # None = keep every collapsed subtree

    @classmethod
    def flat(cls, page_size: int = 50, size: int = 0) -> 'ControllerConfig':
        """Create config for a flat (single level) list.

        Args:
            page_size: Items per fetch
            size: Known root item count

        Returns:
            ControllerConfig where nothing is ever expanded
        """
        return cls(size=size, page_size=page_size)

    @classmethod
    def tree(cls, expanded: Iterable[Any], page_size: int = 50,
             retain_collapsed: Optional[int] = None) -> 'ControllerConfig':
        """Create config for a tree whose expanded items are known up front.

        Args:
            expanded: Items (compared by equality) that start expanded
            page_size: Items per fetch
            retain_collapsed: Collapsed subtrees to keep cached

        Returns:
            ControllerConfig with a membership-based ``is_expanded``
        """
        expanded_items = list(expanded)
        return cls(
            page_size=page_size,
            is_expanded=lambda item: item in expanded_items,
            retain_collapsed=retain_collapsed,
        )

    def validate(self) -> List[str]:
        """Validate configuration for consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.size < 0:
            errors.append("size cannot be negative")

        if self.page_size <= 0:
            errors.append("page_size must be positive")

        if self.retain_collapsed is not None and self.retain_collapsed < 0:
            errors.append("retain_collapsed cannot be negative")

        if not callable(self.is_expanded):
            errors.append("is_expanded must be callable")

        if self.data_provider is not None and not callable(self.data_provider):
            errors.append("data_provider must be callable")

        if not callable(self.data_provider_params):
            errors.append("data_provider_params must be callable")

        return errors


@dataclass
class PageRequest:
    """Snapshot of a fetch, handed to listeners that want more than the event."""

    page: int
    page_size: int
    parent_item: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> Dict[str, Any]:
        """Build the params mapping passed to the data provider."""
        params = {
            'page': self.page,
            'page_size': self.page_size,
            'parent_item': self.parent_item,
        }
        params.update(self.extra)
        return params

"""
Per-panel category visibility for overlay graphs.
Each panel keeps its own set of enabled categories; panels never share state.
"""
import logging
import threading
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from activity_engine.models import EventCategory, PanelToggleState, TimeBucket

logger = logging.getLogger(__name__)

CategoryLike = Union[EventCategory, str]


class PanelSelectionController:
    """
    Holds the toggle state of every mounted graph panel.

    Panels are created on first use with all categories enabled and destroyed
    by close_panel. Toggles on one panel are serialised by that panel's lock;
    a registry lock guards panel creation and removal.
    """

    def __init__(self):
        self._panels: Dict[str, PanelToggleState] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _panel(self, panel_id: str):
        """Return (state, lock) for a panel, creating it if needed."""
        with self._registry_lock:
            if panel_id not in self._panels:
                self._panels[panel_id] = PanelToggleState(panel_id=panel_id)
                self._locks[panel_id] = threading.Lock()
                logger.debug(f"Opened panel {panel_id}")
            return self._panels[panel_id], self._locks[panel_id]

    def open_panel(self, panel_id: str,
                   categories: Optional[Iterable[CategoryLike]] = None) -> FrozenSet[EventCategory]:
        """
        Mount a panel, optionally with an explicit initial set of categories.

        Re-opening an existing panel with categories replaces its selection.

        Returns:
            FrozenSet[EventCategory]: Enabled categories after opening
        """
        enabled = None
        if categories is not None:
            enabled = {EventCategory.parse(category) for category in categories}
        state, lock = self._panel(panel_id)
        if enabled is not None:
            with lock:
                state.enabled_categories = enabled
        return self.enabled_categories(panel_id)

    def close_panel(self, panel_id: str) -> bool:
        """
        Unmount a panel and drop its state.

        Returns:
            bool: True if the panel existed
        """
        with self._registry_lock:
            existed = self._panels.pop(panel_id, None) is not None
            self._locks.pop(panel_id, None)
        if existed:
            logger.debug(f"Closed panel {panel_id}")
        return existed

    def panel_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._panels)

    def toggle(self, panel_id: str, category: CategoryLike) -> bool:
        """
        Flip a category's visibility on one panel.

        Args:
            panel_id: Panel to change
            category: EventCategory or its string value

        Returns:
            bool: True if the category is enabled after the toggle

        Raises:
            UnknownCategory: If category names no known category
        """
        category = EventCategory.parse(category)
        state, lock = self._panel(panel_id)
        with lock:
            if category in state.enabled_categories:
                state.enabled_categories.discard(category)
                enabled = False
            else:
                state.enabled_categories.add(category)
                enabled = True
        logger.debug(f"Panel {panel_id}: {category.value} {'enabled' if enabled else 'disabled'}")
        return enabled

    def is_enabled(self, panel_id: str, category: CategoryLike) -> bool:
        return EventCategory.parse(category) in self.enabled_categories(panel_id)

    def enabled_categories(self, panel_id: str) -> FrozenSet[EventCategory]:
        """Snapshot of the panel's enabled categories."""
        state, lock = self._panel(panel_id)
        with lock:
            return frozenset(state.enabled_categories)

    def visible_series(self, panel_id: str, buckets: Iterable[TimeBucket]) -> List[TimeBucket]:
        """
        Restrict each bucket's counts to the panel's enabled categories.

        Disabled categories are left out of the returned counts entirely,
        not reported as zero.

        Args:
            panel_id: Panel whose selection applies
            buckets: Buckets from bucketize_events

        Returns:
            List[TimeBucket]: New buckets with filtered counts, same boundaries
        """
        enabled = self.enabled_categories(panel_id)
        return [
            TimeBucket(
                bucket_start=bucket.bucket_start,
                bucket_end=bucket.bucket_end,
                counts={category: count for category, count in bucket.counts.items() if category in enabled}
            )
            for bucket in buckets
        ]

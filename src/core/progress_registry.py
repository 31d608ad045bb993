"""
Progress Registry

This module relates viewport slots (and thumbnail slots) to the image currently
being fetched for them, so that load progress notifications from the image
fetch service can be routed to the right place.

Inputs:
    - In-flight registrations from the viewport load controller / thumbnails
    - Progress notifications (image_id, percent_complete)

Outputs:
    - viewport_progress(viewport_index, percent) signals
    - thumbnail_progress(thumbnail_index, percent) signals

Requirements:
    - PySide6 for signals
"""

from typing import Dict, List, Optional
from PySide6.QtCore import QObject, Signal


class ProgressRegistry(QObject):
    """
    Process-wide map of slot index -> in-flight image identifier.

    An entry exists only while a fetch for that slot is outstanding. Updates
    are plain dict writes, so they are visible to the next routed progress
    notification immediately.
    """

    # Signals
    viewport_progress = Signal(int, int)  # viewport_index, percent_complete
    thumbnail_progress = Signal(int, int)  # thumbnail_index, percent_complete

    def __init__(self):
        super().__init__()
        self._viewport_loading: Dict[int, str] = {}
        self._thumbnail_loading: Dict[int, str] = {}

    # --- viewports ---

    def set_viewport_loading(self, viewport_index: int, image_id: str) -> None:
        """Record the image being fetched for a viewport, replacing any previous entry."""
        self._viewport_loading[viewport_index] = image_id

    def clear_viewport_loading(self, viewport_index: int) -> bool:
        """
        Remove the in-flight entry of a viewport.

        Returns:
            True if an entry was removed, False if there was none
        """
        return self._viewport_loading.pop(viewport_index, None) is not None

    def get_viewport_loading(self, viewport_index: int) -> Optional[str]:
        return self._viewport_loading.get(viewport_index)

    def get_viewports_loading(self, image_id: str) -> List[int]:
        """Return the viewport indices currently fetching an image."""
        return [index for index, loading in self._viewport_loading.items() if loading == image_id]

    # --- thumbnails ---

    def set_thumbnail_loading(self, thumbnail_index: int, image_id: str) -> None:
        self._thumbnail_loading[thumbnail_index] = image_id

    def clear_thumbnail_loading(self, thumbnail_index: int) -> bool:
        return self._thumbnail_loading.pop(thumbnail_index, None) is not None

    def get_thumbnails_loading(self, image_id: str) -> List[int]:
        return [index for index, loading in self._thumbnail_loading.items() if loading == image_id]

    # --- routing ---

    def route_progress(self, image_id: str, percent_complete: int) -> List[int]:
        """
        Route a progress notification to every slot loading the image.

        Args:
            image_id: Image being fetched
            percent_complete: Progress percentage (clamped to 0-100)

        Returns:
            Viewport indices the progress was routed to
        """
        percent = max(0, min(100, int(percent_complete)))
        viewport_indices = self.get_viewports_loading(image_id)
        for viewport_index in viewport_indices:
            self.viewport_progress.emit(viewport_index, percent)
        for thumbnail_index in self.get_thumbnails_loading(image_id):
            self.thumbnail_progress.emit(thumbnail_index, percent)
        return viewport_indices

    def reset(self) -> None:
        """Drop every entry (used when the viewer is reset and between tests)."""
        self._viewport_loading.clear()
        self._thumbnail_loading.clear()

"""
Stack Prefetch

This module implements background prefetching of the images around a
viewport's stack cursor. Prefetching is switched on and off per render surface;
the arbiter keeps it enabled on at most one surface at a time.

Inputs:
    - Enable/disable requests for render surfaces
    - new_image notifications of enabled surfaces

Outputs:
    - Fetch requests for neighbouring, not yet cached images

Requirements:
    - core.image_fetch_service for loading/caching
    - core.signal_subscription for per-surface listeners
"""

from concurrent.futures import Future
from typing import Dict, List

from core.signal_subscription import Subscription, disconnect_all
from gui.render_surface import RenderSurface
from utils.debug_log import debug_log


class StackPrefetcher:
    """
    Prefetches stack neighbours of the cursor for enabled surfaces.

    Neighbours are requested nearest first, alternating after/before the
    cursor, up to max_images on each side.
    """

    def __init__(self, fetch_service, max_images: int = 5):
        """
        Initialize the prefetcher.

        Args:
            fetch_service: ImageFetchService (fetch / is_cached)
            max_images: Neighbours requested on each side of the cursor
        """
        self.fetch_service = fetch_service
        self.max_images = max(0, int(max_images))
        self._subscriptions: Dict[RenderSurface, List[Subscription]] = {}

    def enable(self, surface: RenderSurface) -> None:
        """
        Enable prefetching on a surface and prefetch around its cursor.

        Args:
            surface: Render surface with a stack tool state
        """
        if surface not in self._subscriptions:
            self._subscriptions[surface] = [
                Subscription(surface.new_image, lambda _image_id, s=surface: self.prefetch(s)),
                Subscription(surface.disabled, lambda s=surface: self.disable(s)),
            ]
        self.prefetch(surface)

    def disable(self, surface: RenderSurface) -> None:
        """Disable prefetching on a surface (no-op if it was not enabled)."""
        subscriptions = self._subscriptions.pop(surface, None)
        if subscriptions:
            disconnect_all(subscriptions)

    def is_enabled(self, surface: RenderSurface) -> bool:
        return surface in self._subscriptions

    def enabled_surfaces(self) -> List[RenderSurface]:
        return list(self._subscriptions)

    def get_prefetch_order(self, current_index: int, count: int) -> List[int]:
        """
        Get the stack indices to prefetch around a cursor.

        Args:
            current_index: Cursor position
            count: Stack length

        Returns:
            Indices nearest first, excluding the cursor itself
        """
        order = []
        for distance in range(1, self.max_images + 1):
            for index in (current_index + distance, current_index - distance):
                if 0 <= index < count:
                    order.append(index)
        return order

    def prefetch(self, surface: RenderSurface) -> List[str]:
        """
        Request the neighbours of the surface's displayed image.

        Returns:
            Image ids requested by this call
        """
        if not self.is_enabled(surface):
            return []
        stack = surface.get_stack()
        if stack is None or not stack.is_navigable():
            return []

        current_index = stack.current_image_id_index
        displayed = surface.image_id
        if displayed is not None:
            try:
                current_index = stack.index_of(displayed)
            except ValueError:
                pass

        requested = []
        for index in self.get_prefetch_order(current_index, len(stack)):
            image_id = stack.image_ids[index]
            if self.fetch_service.is_cached(image_id):
                continue
            future = self.fetch_service.fetch(image_id)
            future.add_done_callback(self._on_prefetched)
            requested.append(image_id)
        return requested

    def _on_prefetched(self, future: Future) -> None:
        """Prefetch failures only matter once the image is actually displayed."""
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            print(f"[PREFETCH] Prefetch failed: {error}")
            debug_log("stack_prefetch._on_prefetched", "prefetch failed", {"error": str(error)})

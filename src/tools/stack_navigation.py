"""
Stack Navigation

This module moves a viewport through the images of its bound stack (scrolling,
arrow keys, clip playback). The target image is fetched through the image
fetch service and displayed once it resolves, keeping the current pan/zoom and
window/level.

Inputs:
    - Navigation requests (next, previous, first, last, explicit index)
    - Render surfaces carrying a stack tool state

Outputs:
    - Displayed images (and therefore new_image notifications)

Requirements:
    - core.image_fetch_service for loading/caching
"""

from concurrent.futures import Future
from typing import Optional

from gui.render_surface import RenderSurface
from utils.debug_log import debug_log


class StackNavigator:
    """
    Navigates render surfaces through their stacks.

    Features:
    - Next / previous with optional wrap-around
    - First / last / explicit index
    - Mouse wheel handling
    """

    def __init__(self, fetch_service):
        """
        Initialize the navigator.

        Args:
            fetch_service: ImageFetchService used to load target images
        """
        self.fetch_service = fetch_service

    def get_displayed_index(self, surface: RenderSurface) -> Optional[int]:
        """Return the stack index of the displayed image, or the cursor when unknown."""
        stack = surface.get_stack()
        if stack is None:
            return None
        if surface.image_id is not None:
            try:
                return stack.index_of(surface.image_id)
            except ValueError:
                pass
        return stack.current_image_id_index

    def scroll_to_index(self, surface: RenderSurface, index: int) -> Optional[Future]:
        """
        Display the stack image at an index.

        Args:
            surface: Target surface
            index: Stack index; out-of-range values are clamped

        Returns:
            The fetch Future, or None when there is nothing to do
        """
        stack = surface.get_stack()
        if stack is None or not surface.is_enabled():
            return None
        index = max(0, min(int(index), len(stack) - 1))
        if index == self.get_displayed_index(surface):
            return None

        image_id = stack.image_ids[index]
        future = self.fetch_service.fetch(image_id)

        def display(done: Future) -> None:
            # The surface may have been rebound or released while fetching
            if done.cancelled() or not surface.is_enabled() or surface.get_stack() is not stack:
                return
            error = done.exception()
            if error is not None:
                print(f"[VIEWPORT] Could not load {image_id}: {error}")
                debug_log("stack_navigation.display", "fetch failed", {"image_id": image_id, "error": str(error)})
                return
            stack.set_current_index(index)
            surface.display_image(done.result(), surface.get_viewport())

        future.add_done_callback(display)
        return future

    def next_image(self, surface: RenderSurface, wrap: bool = False) -> Optional[Future]:
        """Navigate to the next image; wraps to the first image when wrap is True."""
        current = self.get_displayed_index(surface)
        stack = surface.get_stack()
        if current is None or stack is None:
            return None
        if current < len(stack) - 1:
            return self.scroll_to_index(surface, current + 1)
        if wrap:
            return self.scroll_to_index(surface, 0)
        return None

    def previous_image(self, surface: RenderSurface, wrap: bool = False) -> Optional[Future]:
        """Navigate to the previous image; wraps to the last image when wrap is True."""
        current = self.get_displayed_index(surface)
        stack = surface.get_stack()
        if current is None or stack is None:
            return None
        if current > 0:
            return self.scroll_to_index(surface, current - 1)
        if wrap:
            return self.scroll_to_index(surface, len(stack) - 1)
        return None

    def first_image(self, surface: RenderSurface) -> Optional[Future]:
        return self.scroll_to_index(surface, 0)

    def last_image(self, surface: RenderSurface) -> Optional[Future]:
        stack = surface.get_stack()
        if stack is None:
            return None
        return self.scroll_to_index(surface, len(stack) - 1)

    def handle_wheel_event(self, surface: RenderSurface, delta: int) -> bool:
        """
        Handle mouse wheel event for navigation.

        Args:
            surface: Surface under the wheel
            delta: Wheel delta (positive = scroll up, negative = scroll down)

        Returns:
            True if event was handled, False otherwise
        """
        if surface.get_stack() is None or delta == 0:
            return False
        if delta > 0:
            self.previous_image(surface)
        else:
            self.next_image(surface)
        return True

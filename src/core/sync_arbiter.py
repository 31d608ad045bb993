"""
Reference-Line / Prefetch Arbiter

This module enforces the cross-viewport exclusivity rules:
- at most one viewport prefetches its stack at any time;
- the viewport being compared against has its own reference lines off, and
  every other viewport displaying an image shows reference lines.

Both rules are enforced by resetting all viewports and then enabling the
chosen ones, never by toggling individual viewports.

Inputs:
    - Viewport index to favour (the active or freshly loaded viewport)
    - Mounted containers from the viewport layout

Outputs:
    - Prefetch enabled on exactly the chosen viewport (when its stack allows)
    - Reference lines enabled on every other displayed viewport

Requirements:
    - tools.stack_prefetch / tools.reference_lines for the actual tools
"""

from typing import List

from gui.viewport_layout import ViewportLayout
from tools.reference_lines import ImageSynchronizer, ReferenceLineTool
from tools.stack_prefetch import StackPrefetcher
from utils.debug_log import debug_log


class ReferenceLinePrefetchArbiter:
    """
    Arbitrates stack prefetch and reference-line overlays across viewports.
    """

    def __init__(self, layout: ViewportLayout, prefetcher: StackPrefetcher,
                 reference_line_tool: ReferenceLineTool, synchronizer: ImageSynchronizer):
        """
        Initialize the arbiter.

        Args:
            layout: Viewport layout providing the mounted containers
            prefetcher: Stack prefetch engine
            reference_line_tool: Reference-line overlay tool
            synchronizer: Shared cross-viewport image synchronizer
        """
        self.layout = layout
        self.prefetcher = prefetcher
        self.reference_line_tool = reference_line_tool
        self.synchronizer = synchronizer

    def enable_prefetch(self, viewport_index: int) -> bool:
        """
        Make a viewport the only one prefetching.

        Prefetch is disabled on every mounted viewport with an enabled surface,
        then enabled on the given viewport if its stack has more than one image.

        Args:
            viewport_index: Viewport to prefetch for

        Returns:
            True if prefetch was enabled on the viewport
        """
        debug_log("sync_arbiter.enable_prefetch", "enable prefetch", {"viewport": viewport_index})
        for container in self.layout.containers():
            if container.surface.is_enabled():
                self.prefetcher.disable(container.surface)

        surface = self.layout.get_surface(viewport_index)
        if surface is None or not surface.is_enabled():
            return False
        stack = surface.get_stack()
        if stack is None or not stack.is_navigable():
            return False
        self.prefetcher.enable(surface)
        return True

    def show_reference_lines(self, viewport_index: int) -> List[int]:
        """
        Hide reference lines on a viewport and show them on all other displayed viewports.

        Viewports without a displayed image, or whose surface cannot be
        resolved, are skipped silently; this is the normal state of a viewport
        being mounted or torn down concurrently.

        Args:
            viewport_index: Viewport whose image the others are compared against

        Returns:
            Indices of the viewports that now show reference lines
        """
        debug_log("sync_arbiter.show_reference_lines", "show reference lines", {"viewport": viewport_index})
        surface = self.layout.get_surface(viewport_index)
        if surface is not None:
            self.reference_line_tool.disable(surface)

        enabled = []
        for container in self.layout.containers():
            if container.index == viewport_index:
                continue
            try:
                other = container.surface
                image_id = other.image_id
            except (AttributeError, RuntimeError):
                continue
            if not image_id or not other.is_enabled():
                continue
            self.reference_line_tool.enable(other, self.synchronizer)
            enabled.append(container.index)
        return enabled

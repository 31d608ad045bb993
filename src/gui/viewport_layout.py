"""
Viewport Layout Manager

This module manages the viewport slots of the viewer (1x1, 1x2, 2x1, 2x2) and
the containers currently mounted in them. A slot index is the viewport identity
used throughout the loading and synchronization code; it is stable while the
slot is mounted and reused after teardown.

Inputs:
    - Layout mode selection (1x1, 1x2, 2x1, 2x2)
    - Mount/unmount requests

Outputs:
    - Mounted containers and their render surfaces
    - viewport_mounted / viewport_unmounted / layout_changed signals

Requirements:
    - PySide6 for signals
    - ViewportContainer / RenderSurface for slot contents
"""

from PySide6.QtCore import QObject, Signal
from typing import Dict, List, Literal, Optional

from gui.render_surface import RenderSurface
from gui.viewport_container import ViewportContainer


LayoutMode = Literal["1x1", "1x2", "2x1", "2x2"]

_SLOT_COUNTS = {"1x1": 1, "1x2": 2, "2x1": 2, "2x2": 4}


class ViewportLayout(QObject):
    """
    Tracks the viewport slots and the containers mounted in them.

    Features:
    - Layout mode switching
    - Slot mount/unmount with index reuse
    - Surface -> slot index resolution
    """

    # Signals
    viewport_mounted = Signal(int)  # viewport index
    viewport_unmounted = Signal(int)  # viewport index
    layout_changed = Signal(str)  # layout mode

    def __init__(self, layout_mode: LayoutMode = "1x1"):
        """
        Initialize the layout.

        Args:
            layout_mode: Initial layout mode
        """
        super().__init__()
        self.current_layout: LayoutMode = "1x1"
        self._containers: Dict[int, ViewportContainer] = {}
        self.set_layout(layout_mode)

    def set_layout(self, layout_mode: LayoutMode) -> List[int]:
        """
        Set the layout mode.

        Args:
            layout_mode: Layout mode ("1x1", "1x2", "2x1", or "2x2")

        Returns:
            Mounted slot indices that no longer fit the layout; the caller is
            responsible for tearing them down
        """
        if layout_mode not in _SLOT_COUNTS:
            return []
        if layout_mode != self.current_layout:
            self.current_layout = layout_mode
            self.layout_changed.emit(layout_mode)
        return [index for index in self.mounted_indices() if index >= self.slot_count()]

    def get_layout_mode(self) -> LayoutMode:
        return self.current_layout

    def slot_count(self) -> int:
        """Return the number of slots of the current layout mode."""
        return _SLOT_COUNTS[self.current_layout]

    def mount(self, index: int) -> ViewportContainer:
        """
        Mount a container with a fresh render surface in a slot.

        Mounting an already mounted slot returns its existing container.

        Args:
            index: Slot index (0-based)

        Returns:
            The slot's ViewportContainer

        Raises:
            IndexError: if the index is outside the current layout
        """
        if not 0 <= index < self.slot_count():
            raise IndexError(f"Viewport index {index} is outside layout {self.current_layout}")
        container = self._containers.get(index)
        if container is None:
            container = ViewportContainer(index, RenderSurface(f"viewport-{index}"))
            self._containers[index] = container
            self.viewport_mounted.emit(index)
        return container

    def unmount(self, index: int) -> Optional[ViewportContainer]:
        """
        Remove a slot's container.

        Args:
            index: Slot index

        Returns:
            The removed container, or None if the slot was not mounted
        """
        container = self._containers.pop(index, None)
        if container is not None:
            self.viewport_unmounted.emit(index)
        return container

    def is_mounted(self, index: int) -> bool:
        return index in self._containers

    def get_container(self, index: int) -> Optional[ViewportContainer]:
        return self._containers.get(index)

    def get_surface(self, index: int) -> Optional[RenderSurface]:
        container = self._containers.get(index)
        return container.surface if container else None

    def containers(self) -> List[ViewportContainer]:
        """Return mounted containers ordered by slot index."""
        return [self._containers[index] for index in sorted(self._containers)]

    def mounted_indices(self) -> List[int]:
        return sorted(self._containers)

    def index_of(self, surface: RenderSurface) -> Optional[int]:
        """
        Resolve a surface to its slot index.

        Returns:
            Slot index, or None if the surface is not mounted
        """
        for index, container in self._containers.items():
            if container.surface is surface:
                return index
        return None

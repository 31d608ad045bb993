"""
Viewport Container

This module implements the container of one viewport slot: it owns the slot's
render surface and the presentation flags around it (empty marker, drag-and-drop
instructions, overlay, loading indicator, load progress and the active highlight).

Inputs:
    - Empty/loading/loaded state changes from the viewport load controller
    - Highlight changes from the activation coordinator
    - Load progress from the progress registry

Outputs:
    - highlight_changed(bool) when the active highlight toggles
    - progress_changed(int) when load progress changes

Requirements:
    - PySide6 for signals
    - RenderSurface for image display
"""

from PySide6.QtCore import QObject, Signal

from gui.render_surface import RenderSurface


class ViewportContainer(QObject):
    """
    Container for one viewport slot.

    Features:
    - Active highlight
    - Empty state with instructions
    - Loading indicator and progress percentage
    """

    # Signals
    highlight_changed = Signal(bool)  # True = highlighted as active
    progress_changed = Signal(int)  # percent complete

    def __init__(self, index: int, surface: RenderSurface):
        """
        Initialize the container.

        Args:
            index: Viewport slot index
            surface: Render surface of the slot
        """
        super().__init__()
        self.index = index
        self.surface = surface
        self.is_active = False
        self.is_empty = True
        self.instructions_visible = False
        self.overlay_visible = False
        self.loading_indicator_visible = False
        self.load_progress = 0

    def set_active(self, active: bool) -> None:
        """
        Set the active highlight.

        Args:
            active: True if this viewport is the active one
        """
        if self.is_active != active:
            self.is_active = active
            self.highlight_changed.emit(active)

    def show_empty(self) -> None:
        """Show the empty state: instructions visible, no loading indicator, no overlay."""
        self.is_empty = True
        self.loading_indicator_visible = False
        self.instructions_visible = True
        self.overlay_visible = False

    def show_loading(self) -> None:
        """Show the loading indicator for a new load."""
        self.loading_indicator_visible = True
        self.set_load_progress(0)

    def show_loaded(self) -> None:
        """Clear the empty marker, hide instructions and show the overlay."""
        self.is_empty = False
        self.loading_indicator_visible = False
        self.instructions_visible = False
        self.overlay_visible = True

    def show_error(self) -> None:
        """Hide the loading indicator after a failed load."""
        self.loading_indicator_visible = False

    def set_load_progress(self, percent: int) -> None:
        if self.load_progress != percent:
            self.load_progress = percent
            self.progress_changed.emit(percent)

    def __repr__(self) -> str:
        return f"ViewportContainer(index={self.index}, active={self.is_active}, empty={self.is_empty})"

"""
Render Surface

This module implements the headless render target a viewport draws into. It
holds the displayed image, the view settings applied to it, per-tool state
(stack, playback, reference lines), and emits the notifications the viewport
load controller listens to.

Inputs:
    - Enable/disable/display/resize requests
    - User interaction events (mouse, wheel, touch)

Outputs:
    - image_rendered() after every render
    - new_image(image_id) when the displayed image changes
    - interaction(event_type) for activation tracking
    - disabled() when the surface is released

Requirements:
    - PySide6 for signals
"""

from typing import Any, Dict, List, Optional
from PySide6.QtCore import QObject, Signal

from core.view_settings import ViewSettings


# User interaction event types that can make a viewport the active one
INTERACTION_EVENTS = (
    "mouse_down",
    "mouse_down_activate",
    "mouse_click",
    "mouse_drag",
    "mouse_up",
    "mouse_wheel",
    "tap",
    "touch_press",
    "touch_start",
    "touch_start_active",
    "multi_touch_drag_start",
)


class RenderSurface(QObject):
    """
    Render target of one viewport slot.

    Features:
    - Enable/disable lifecycle
    - Displayed image and view settings
    - Named tool state storage
    - Orientation markers of the displayed image
    """

    # Signals
    image_rendered = Signal()
    new_image = Signal(str)  # image_id
    interaction = Signal(str)  # event type
    disabled = Signal()

    def __init__(self, name: str = ""):
        """
        Initialize the surface (disabled until enable() is called).

        Args:
            name: Optional label used in diagnostics
        """
        super().__init__()
        self.name = name
        self.enabled = False
        self.image = None
        self.viewport: Optional[ViewSettings] = None
        self.orientation_markers: Optional[Dict[str, str]] = None
        self.width = 0
        self.height = 0
        self.render_count = 0
        self._tool_state: Dict[str, List[Any]] = {}

    def enable(self) -> None:
        """Enable the surface for display."""
        self.enabled = True

    def disable(self) -> None:
        """
        Release the surface.

        Clears the displayed image and all tool state, then emits disabled()
        so synchronizers and tools holding the surface drop it.
        """
        if not self.enabled:
            return
        self.enabled = False
        self.image = None
        self.viewport = None
        self.orientation_markers = None
        self._tool_state.clear()
        self.disabled.emit()

    def is_enabled(self) -> bool:
        return self.enabled

    @property
    def image_id(self) -> Optional[str]:
        """Identifier of the displayed image, or None."""
        return getattr(self.image, 'image_id', None)

    def display_image(self, image, view_settings: Optional[ViewSettings] = None) -> None:
        """
        Display an image.

        Args:
            image: LoadedImage to display
            view_settings: Settings to apply; defaults derived from the image when None

        Raises:
            RuntimeError: if the surface is not enabled
        """
        if not self.enabled:
            raise RuntimeError(f"Render surface {self.name!r} is not enabled")
        previous_image_id = self.image_id
        self.image = image
        if view_settings is not None:
            self.viewport = view_settings.copy()
        else:
            self.viewport = ViewSettings.default_for_image(image)
        if self.image_id != previous_image_id:
            self.new_image.emit(self.image_id)
        self.render()

    def render(self) -> None:
        """Redraw the current image and notify listeners."""
        if not self.enabled or self.image is None:
            return
        self.render_count += 1
        self.image_rendered.emit()

    def get_viewport(self) -> Optional[ViewSettings]:
        """Return a copy of the current view settings, or None when nothing is displayed."""
        return self.viewport.copy() if self.viewport is not None else None

    def set_viewport(self, view_settings: ViewSettings) -> None:
        """Apply new view settings and re-render."""
        if not self.enabled or self.image is None:
            return
        self.viewport = view_settings.copy()
        self.render()

    def set_size(self, width: int, height: int) -> None:
        """Set the pixel size of the drawing area."""
        self.width = max(0, int(width))
        self.height = max(0, int(height))

    def resize(self, fit_to_window: bool = False) -> None:
        """
        Adapt to the current drawing area size.

        Args:
            fit_to_window: When True, reset pan and scale the image to fit the area
        """
        if self.image is None or self.viewport is None:
            return
        if fit_to_window and self.width and self.height and self.image.rows and self.image.columns:
            self.viewport.scale = min(self.width / self.image.columns, self.height / self.image.rows)
            self.viewport.translation_x = 0.0
            self.viewport.translation_y = 0.0
        self.render()

    # --- tool state ---

    def add_tool_state(self, tool_name: str, data: Any) -> None:
        self._tool_state.setdefault(tool_name, []).append(data)

    def clear_tool_state(self, tool_name: str) -> None:
        self._tool_state.pop(tool_name, None)

    def get_tool_state(self, tool_name: str) -> List[Any]:
        """Return the tool state entries for a tool (empty list if none)."""
        return list(self._tool_state.get(tool_name, []))

    def get_stack(self):
        """Return the ImageStack registered for stack tools, or None."""
        entries = self._tool_state.get("stack")
        return entries[0] if entries else None

    # --- interaction ---

    def emit_interaction(self, event_type: str) -> bool:
        """
        Report a user interaction on the surface.

        Args:
            event_type: One of INTERACTION_EVENTS

        Returns:
            True if the event type is an activation-relevant interaction
        """
        if event_type not in INTERACTION_EVENTS:
            return False
        self.interaction.emit(event_type)
        return True

    def __repr__(self) -> str:
        return f"RenderSurface({self.name!r}, enabled={self.enabled}, image={self.image_id!r})"

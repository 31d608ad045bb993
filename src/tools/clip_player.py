"""
Clip Player

This module provides cine clip playback through a viewport's stack: a QTimer
per surface advances the stack navigator at the clip frame rate.

Inputs:
    - Play/stop requests per render surface
    - Frame rate and loop settings (explicit, from DICOM timing tags, or config defaults)

Outputs:
    - Automatic image advancement on the surface
    - playback_state_changed(surface, playing) signals

Requirements:
    - PySide6 for QTimer and signals
    - StackNavigator for image advancement
"""

from typing import Dict, Optional
from PySide6.QtCore import QObject, QTimer, Signal

from gui.render_surface import RenderSurface
from tools.stack_navigation import StackNavigator
from utils.dicom_utils import get_frame_rate


class ClipPlayer(QObject):
    """
    Handles clip playback for viewport stacks.

    Features:
    - One timer per playing surface
    - Frame rate from DICOM timing tags when not given explicitly
    - Loop toggle; non-looping clips stop at the last image
    """

    # Signals
    playback_state_changed = Signal(object, bool)  # surface, True = playing

    def __init__(self, navigator: StackNavigator, default_fps: float = 10.0,
                 default_loop: bool = True, metadata_indexer=None):
        """
        Initialize the clip player.

        Args:
            navigator: StackNavigator used to advance images
            default_fps: Frame rate used when none is given or found
            default_loop: Loop setting used when none is given
            metadata_indexer: Optional indexer used to read DICOM timing tags
        """
        super().__init__()
        self.navigator = navigator
        self.default_fps = default_fps
        self.default_loop = default_loop
        self.metadata_indexer = metadata_indexer
        self._timers: Dict[RenderSurface, QTimer] = {}
        self._loop: Dict[RenderSurface, bool] = {}

    def play_clip(self, surface: RenderSurface, fps: Optional[float] = None,
                  loop: Optional[bool] = None) -> bool:
        """
        Start playback on a surface.

        Args:
            surface: Surface with a navigable stack
            fps: Frames per second; None reads DICOM timing tags or uses the default
            loop: Restart at the first image after the last one; None uses the default

        Returns:
            True if playback started, False if the stack cannot be played
        """
        stack = surface.get_stack()
        if stack is None or not stack.is_navigable() or not surface.is_enabled():
            return False

        if fps is None or fps <= 0:
            fps = None
            if self.metadata_indexer is not None and surface.image_id:
                fps = get_frame_rate(self.metadata_indexer.get_instance(surface.image_id))
            if fps is None:
                fps = self.default_fps
        interval_ms = max(1, int(1000.0 / fps))

        self.stop_clip(surface)
        timer = QTimer(self)
        timer.setSingleShot(False)
        timer.timeout.connect(lambda s=surface: self._advance(s))
        self._timers[surface] = timer
        self._loop[surface] = self.default_loop if loop is None else loop
        timer.start(interval_ms)
        self.playback_state_changed.emit(surface, True)
        return True

    def stop_clip(self, surface: RenderSurface) -> None:
        """Stop playback on a surface (no-op if it is not playing)."""
        timer = self._timers.pop(surface, None)
        self._loop.pop(surface, None)
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()
        self.playback_state_changed.emit(surface, False)

    def is_playing(self, surface: RenderSurface) -> bool:
        return surface in self._timers

    def stop_all(self) -> None:
        for surface in list(self._timers):
            self.stop_clip(surface)

    def _advance(self, surface: RenderSurface) -> None:
        """Advance one image (called by the surface's timer)."""
        stack = surface.get_stack()
        if stack is None or not surface.is_enabled():
            self.stop_clip(surface)
            return
        current = self.navigator.get_displayed_index(surface)
        if current is not None and current >= len(stack) - 1 and not self._loop.get(surface, False):
            self.stop_clip(surface)
            return
        self.navigator.next_image(surface, wrap=True)

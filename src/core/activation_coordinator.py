"""
Activation Coordinator

This module tracks which single viewport is active (receives interaction focus
and gets prefetch / reference-line primacy) and arbitrates activation changes.

Inputs:
    - activate(viewport_index) calls
    - Activation requests raised by user interaction on a viewport surface

Outputs:
    - Active highlight on exactly one mounted container
    - Prefetch enablement and reference-line suppression for the new active viewport
    - active_viewport_changed(viewport_index) signals (-1 when none)

Requirements:
    - PySide6 for signals
    - ReferenceLinePrefetchArbiter for the activation side effects
"""

from collections import deque
from typing import Deque, Optional
from PySide6.QtCore import QObject, Signal

from core.sync_arbiter import ReferenceLinePrefetchArbiter
from gui.viewport_layout import ViewportLayout
from utils.debug_log import debug_log


NO_ACTIVE_VIEWPORT = -1


class ActivationCoordinator(QObject):
    """
    Owner of the process-wide activation state.

    An activate() issued while another activation is still running its side
    effects (e.g. from a signal handler) is queued and applied afterwards, so
    the side-effect sequences of two activations never interleave.
    """

    # Signals
    active_viewport_changed = Signal(int)  # viewport index, -1 when none

    def __init__(self, layout: ViewportLayout, arbiter: ReferenceLinePrefetchArbiter):
        """
        Initialize the coordinator.

        Args:
            layout: Viewport layout providing the containers to highlight
            arbiter: Arbiter applying prefetch / reference-line rules
        """
        super().__init__()
        self.layout = layout
        self.arbiter = arbiter
        self.active_viewport_index: Optional[int] = None
        self._activating = False
        self._pending: Deque[int] = deque()

    def get_active_viewport(self) -> Optional[int]:
        return self.active_viewport_index

    def is_active(self, viewport_index: int) -> bool:
        return self.active_viewport_index == viewport_index

    def set_initial_active_viewport(self, viewport_index: Optional[int]) -> None:
        """
        Set the active viewport without side effects (startup / tab restore).

        The highlight is applied when the viewport is mounted.
        """
        self.active_viewport_index = viewport_index

    def activate(self, viewport_index: int) -> bool:
        """
        Make a viewport the active one.

        No-op when the viewport is already active. Otherwise sets the activation
        state, moves the highlight, enables prefetch on the viewport and hides
        its reference lines while showing them everywhere else.

        Args:
            viewport_index: Viewport to activate

        Returns:
            True if the activation state changed during this call
        """
        if self._activating:
            self._pending.append(viewport_index)
            return False

        self._activating = True
        try:
            changed = self._apply_activation(viewport_index)
            while self._pending:
                self._apply_activation(self._pending.popleft())
        finally:
            self._activating = False
        return changed

    def request_activation(self, viewport_index: int) -> bool:
        """
        Handle an activation request raised by an interaction on a viewport.

        Args:
            viewport_index: Viewport the interaction happened in

        Returns:
            True if the viewport became active
        """
        if viewport_index == self.active_viewport_index:
            return False
        return self.activate(viewport_index)

    def _apply_activation(self, viewport_index: int) -> bool:
        if viewport_index == self.active_viewport_index:
            return False

        self.active_viewport_index = viewport_index
        print(f"[ACTIVATION] Active viewport is now {viewport_index}")
        debug_log("activation_coordinator.activate", "activate", {"viewport": viewport_index})

        self.apply_highlight()
        self.arbiter.enable_prefetch(viewport_index)
        self.arbiter.show_reference_lines(viewport_index)
        self.active_viewport_changed.emit(viewport_index)
        return True

    def apply_highlight(self) -> None:
        """Highlight the active viewport's container and clear all others."""
        for container in self.layout.containers():
            container.set_active(container.index == self.active_viewport_index)

    def forget(self, viewport_index: int) -> None:
        """
        Drop references to a viewport that is being torn down.

        If it was the active viewport, no viewport is active afterwards.
        """
        self._pending = deque(index for index in self._pending if index != viewport_index)
        if self.active_viewport_index == viewport_index:
            self.active_viewport_index = None
            self.active_viewport_changed.emit(NO_ACTIVE_VIEWPORT)

    def reset(self) -> None:
        """Clear the activation state (viewer reset and test isolation)."""
        self.active_viewport_index = None
        self._pending.clear()
        self._activating = False

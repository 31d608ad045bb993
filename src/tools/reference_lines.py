"""
Reference Lines

This module implements the cross-viewport reference-line overlay: a shared
image synchronizer that groups the surfaces taking part, and a tool that, for
each enabled target surface, computes where the image planes displayed in the
other surfaces intersect the target plane and hands those lines to a renderer.

Inputs:
    - Surfaces added to / removed from the synchronizer
    - new_image notifications of synchronized surfaces
    - Image planes from the metadata indexer

Outputs:
    - synchronized(source_surface) signals
    - Reference line segments (target pixel coordinates) per enabled surface

Requirements:
    - PySide6 for signals
    - numpy for plane intersection
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
import numpy as np
from PySide6.QtCore import QObject, Signal

from core.signal_subscription import Subscription, disconnect_all
from gui.render_surface import RenderSurface


Point2D = Tuple[float, float]


class ImageSynchronizer(QObject):
    """
    Group of surfaces whose image changes must update each other's overlays.

    A surface leaves the group automatically when it is disabled.
    """

    # Signals
    synchronized = Signal(object)  # source RenderSurface

    def __init__(self):
        super().__init__()
        self._members: Dict[RenderSurface, List[Subscription]] = {}

    def add(self, surface: RenderSurface) -> None:
        """Add a surface (no-op if it is already a member)."""
        if surface in self._members:
            return
        self._members[surface] = [
            Subscription(surface.new_image, lambda _image_id, s=surface: self.synchronized.emit(s)),
            Subscription(surface.disabled, lambda s=surface: self.remove(s)),
        ]
        self.synchronized.emit(surface)

    def remove(self, surface: RenderSurface) -> None:
        subscriptions = self._members.pop(surface, None)
        if subscriptions:
            disconnect_all(subscriptions)

    def members(self) -> List[RenderSurface]:
        return list(self._members)

    def contains(self, surface: RenderSurface) -> bool:
        return surface in self._members

    def clear(self) -> None:
        for surface in list(self._members):
            self.remove(surface)


def _plane_corners(plane: Dict[str, Any]) -> List[np.ndarray]:
    """Return the four patient-space corners of an image plane, in drawing order."""
    origin = plane["image_position"]
    across = plane["row_cosines"] * plane["columns"] * plane["column_pixel_spacing"]
    down = plane["column_cosines"] * plane["rows"] * plane["row_pixel_spacing"]
    return [origin, origin + across, origin + across + down, origin + down]


def compute_reference_line(target_plane: Optional[Dict[str, Any]],
                           source_plane: Optional[Dict[str, Any]],
                           tolerance: float = 1e-6) -> Optional[Tuple[Point2D, Point2D]]:
    """
    Compute where a source image plane cuts a target image plane.

    Args:
        target_plane: Image plane the line is drawn on (from MetadataIndexer.get_image_plane)
        source_plane: Image plane displayed in another viewport
        tolerance: Numerical tolerance for parallel planes and on-plane corners

    Returns:
        ((column, row), (column, row)) end points in target pixel coordinates, or
        None when the planes do not share a frame of reference, are parallel, or
        the source image does not cross the target plane
    """
    if target_plane is None or source_plane is None:
        return None
    target_frame = target_plane.get("frame_of_reference_uid")
    if not target_frame or target_frame != source_plane.get("frame_of_reference_uid"):
        return None
    if not source_plane.get("rows") or not source_plane.get("columns"):
        return None

    normal = target_plane["normal"]
    if abs(abs(float(np.dot(normal, source_plane["normal"]))) - 1.0) < tolerance:
        return None

    origin = target_plane["image_position"]
    corners = _plane_corners(source_plane)
    distances = [float(np.dot(corner - origin, normal)) for corner in corners]

    points: List[np.ndarray] = []
    for i in range(4):
        p1, p2 = corners[i], corners[(i + 1) % 4]
        d1, d2 = distances[i], distances[(i + 1) % 4]
        if abs(d1) < tolerance:
            candidate = p1
        elif d1 * d2 < 0:
            candidate = p1 + (p2 - p1) * (d1 / (d1 - d2))
        else:
            continue
        if not any(np.allclose(candidate, existing, atol=tolerance) for existing in points):
            points.append(candidate)

    if len(points) < 2:
        return None

    def to_pixel(point: np.ndarray) -> Point2D:
        offset = point - origin
        column = float(np.dot(offset, target_plane["row_cosines"])) / target_plane["column_pixel_spacing"]
        row = float(np.dot(offset, target_plane["column_cosines"])) / target_plane["row_pixel_spacing"]
        return (column, row)

    return (to_pixel(points[0]), to_pixel(points[1]))


class ReferenceLineTool:
    """
    Reference-line overlay per target surface.

    Features:
    - Enable/disable per surface against a shared synchronizer
    - Recomputes lines on every synchronized image change
    - Hands computed lines to a renderer callback (overlay drawing is external)
    """

    def __init__(self, metadata_indexer,
                 renderer: Optional[Callable[[RenderSurface, List[Dict[str, Any]]], None]] = None):
        """
        Initialize the tool.

        Args:
            metadata_indexer: MetadataIndexer providing image planes
            renderer: Optional callback receiving (target_surface, lines)
        """
        self.metadata_indexer = metadata_indexer
        self.renderer = renderer
        self._enabled: Dict[RenderSurface, Tuple[ImageSynchronizer, List[Subscription]]] = {}
        self.lines: Dict[RenderSurface, List[Dict[str, Any]]] = {}

    def enable(self, surface: RenderSurface, synchronizer: ImageSynchronizer) -> None:
        """
        Enable the overlay on a surface.

        Args:
            surface: Target surface
            synchronizer: Synchronizer whose members provide the source planes
        """
        if surface in self._enabled:
            _, subscriptions = self._enabled.pop(surface)
            disconnect_all(subscriptions)
        self._enabled[surface] = (synchronizer, [
            Subscription(synchronizer.synchronized, lambda _source, s=surface: self.update(s)),
            Subscription(surface.disabled, lambda s=surface: self.disable(s)),
        ])
        self.update(surface)

    def disable(self, surface: RenderSurface) -> None:
        """Disable the overlay on a surface and clear its lines."""
        entry = self._enabled.pop(surface, None)
        if entry is None:
            return
        disconnect_all(entry[1])
        self.lines.pop(surface, None)
        if self.renderer is not None:
            self.renderer(surface, [])

    def is_enabled(self, surface: RenderSurface) -> bool:
        return surface in self._enabled

    def enabled_surfaces(self) -> List[RenderSurface]:
        return list(self._enabled)

    def update(self, surface: RenderSurface) -> List[Dict[str, Any]]:
        """
        Recompute the reference lines drawn on a surface.

        Returns:
            List of {'source': surface, 'start': (col, row), 'end': (col, row)}
        """
        entry = self._enabled.get(surface)
        if entry is None:
            return []
        synchronizer = entry[0]
        target_id = surface.image_id
        target_plane = self.metadata_indexer.get_image_plane(target_id) if target_id else None

        lines = []
        if target_plane is not None:
            for source in synchronizer.members():
                if source is surface or source.image_id is None:
                    continue
                source_plane = self.metadata_indexer.get_image_plane(source.image_id)
                segment = compute_reference_line(target_plane, source_plane)
                if segment is not None:
                    lines.append({"source": source, "start": segment[0], "end": segment[1]})

        self.lines[surface] = lines
        if self.renderer is not None:
            self.renderer(surface, lines)
        return lines

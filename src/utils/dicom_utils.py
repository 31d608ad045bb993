"""
DICOM Utility Functions

This module provides helper functions for DICOM attribute access used when
indexing images and synchronizing viewports:
- Image position / orientation lookups
- Pixel spacing lookups
- Patient-orientation marker labels
- Default window/level extraction

Inputs:
    - pydicom.Dataset objects
    - Direction cosine vectors

Outputs:
    - NumPy vectors, spacing tuples, marker strings, window/level values

Requirements:
    - pydicom library
    - numpy for calculations
"""

from typing import Any, Optional, Tuple
import numpy as np
from pydicom.dataset import Dataset
from pydicom.multival import MultiValue


def get_tag_value(dataset: Dataset, keyword: str, default: Any = None) -> Any:
    """
    Get a DICOM attribute by keyword, returning default when missing or empty.

    Args:
        dataset: pydicom Dataset
        keyword: DICOM keyword (e.g. "StudyInstanceUID")
        default: Value returned when the attribute is absent

    Returns:
        Attribute value or default
    """
    value = getattr(dataset, keyword, None)
    if value is None or value == "":
        return default
    return value


def _first_number(value: Any) -> Optional[float]:
    """Return the first number of a (possibly multi-valued) DICOM value."""
    if value is None:
        return None
    try:
        if isinstance(value, (list, tuple, MultiValue)):
            value = value[0]
        return float(value)
    except (TypeError, ValueError, IndexError):
        return None


def get_image_position(dataset: Dataset) -> Optional[np.ndarray]:
    """
    Get ImagePositionPatient from DICOM dataset.

    Args:
        dataset: pydicom Dataset

    Returns:
        NumPy array of [X, Y, Z] coordinates, or None if not available
    """
    pos = getattr(dataset, 'ImagePositionPatient', None)
    if pos is None or len(pos) < 3:
        return None
    try:
        return np.array([float(pos[0]), float(pos[1]), float(pos[2])])
    except (TypeError, ValueError):
        return None


def get_image_orientation(dataset: Dataset) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Get ImageOrientationPatient from DICOM dataset.

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (row_cosine, column_cosine) arrays, or None if not available
    """
    orient = getattr(dataset, 'ImageOrientationPatient', None)
    if orient is None or len(orient) < 6:
        return None
    try:
        row_cosine = np.array([float(orient[0]), float(orient[1]), float(orient[2])])
        col_cosine = np.array([float(orient[3]), float(orient[4]), float(orient[5])])
    except (TypeError, ValueError):
        return None
    # A zero vector carries no orientation
    if not np.any(row_cosine) or not np.any(col_cosine):
        return None
    return (row_cosine, col_cosine)


def get_pixel_spacing(dataset: Dataset) -> Optional[Tuple[float, float]]:
    """
    Get pixel spacing from DICOM dataset.
    Checks Pixel Spacing (0028,0030) first, then Imager Pixel Spacing (0018,1164).

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (row_spacing, column_spacing) in mm, or None if not available
    """
    for keyword in ('PixelSpacing', 'ImagerPixelSpacing'):
        spacing = getattr(dataset, keyword, None)
        if spacing is None or len(spacing) < 2:
            continue
        try:
            row_spacing = float(spacing[0])
            col_spacing = float(spacing[1])
        except (TypeError, ValueError):
            continue
        if row_spacing > 0 and col_spacing > 0:
            return (row_spacing, col_spacing)
    return None


def get_orientation_label(vector: np.ndarray, threshold: float = 0.0001) -> str:
    """
    Get the patient-direction label a direction cosine vector points to.

    Components are listed from the most to the least dominant; components
    below the threshold are ignored. Oblique vectors produce multi-letter
    labels (e.g. "LA").

    Args:
        vector: Direction cosine in patient coordinates (LPS)
        threshold: Minimum absolute component to include

    Returns:
        Label string such as "L", "RA" or "" for a zero vector
    """
    axes = (("L", "R"), ("P", "A"), ("H", "F"))
    components = []
    for axis, value in enumerate(vector[:3]):
        value = float(value)
        if abs(value) <= threshold:
            continue
        positive, negative = axes[axis]
        components.append((abs(value), positive if value > 0 else negative))
    components.sort(key=lambda item: item[0], reverse=True)
    return "".join(label for _, label in components[:3])


def invert_orientation_label(label: str) -> str:
    """Return the label of the opposite direction (e.g. "LA" -> "RP")."""
    opposite = {"L": "R", "R": "L", "A": "P", "P": "A", "H": "F", "F": "H"}
    return "".join(opposite.get(ch, ch) for ch in label)


def get_orientation_markers(row_cosine: np.ndarray, column_cosine: np.ndarray) -> dict:
    """
    Get orientation marker labels for the four edges of an image.

    Row cosines point to the right edge, column cosines to the bottom edge.

    Args:
        row_cosine: Row direction cosine
        column_cosine: Column direction cosine

    Returns:
        Dict with 'top', 'bottom', 'left', 'right' labels
    """
    right = get_orientation_label(row_cosine)
    bottom = get_orientation_label(column_cosine)
    return {
        "top": invert_orientation_label(bottom),
        "bottom": bottom,
        "left": invert_orientation_label(right),
        "right": right,
    }


def get_default_window_level(dataset: Dataset) -> Tuple[Optional[float], Optional[float]]:
    """
    Get the first WindowCenter / WindowWidth pair stored in the dataset.

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (window_center, window_width); entries are None when absent
    """
    center = _first_number(getattr(dataset, 'WindowCenter', None))
    width = _first_number(getattr(dataset, 'WindowWidth', None))
    if width is not None and width <= 0:
        width = None
    return (center, width)


def get_frame_rate(dataset: Optional[Dataset]) -> Optional[float]:
    """
    Extract a playback frame rate (FPS) from a DICOM dataset.

    Checks RecommendedDisplayFrameRate, then CineRate, then FrameTime (ms per frame).

    Args:
        dataset: pydicom Dataset (None is accepted)

    Returns:
        Frame rate in FPS, or None if no timing information is found
    """
    if dataset is None:
        return None
    for keyword in ('RecommendedDisplayFrameRate', 'CineRate'):
        fps = _first_number(getattr(dataset, keyword, None))
        if fps is not None and fps > 0:
            return fps
    frame_time = _first_number(getattr(dataset, 'FrameTime', None))
    if frame_time is not None and frame_time > 0:
        return 1000.0 / frame_time
    return None

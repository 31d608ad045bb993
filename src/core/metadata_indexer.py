"""
Metadata Indexer

This module keeps the per-image metadata lookup consulted by the render layer:
series/study context and stack position for overlays, and the image plane used
for reference lines and orientation markers.

Inputs:
    - Metadata records produced by the stack builder

Outputs:
    - Metadata lookups by image identifier
    - Image plane geometry (numpy vectors) by image identifier

Requirements:
    - numpy for plane geometry
    - utils.dicom_utils for DICOM attribute parsing
"""

from typing import Any, Dict, Optional
import numpy as np

from utils.dicom_utils import (
    get_image_orientation,
    get_image_position,
    get_pixel_spacing,
    get_tag_value,
)


class MetadataIndexer:
    """
    Image identifier -> metadata record lookup.

    Records are never mutated in place; registering an identifier again
    replaces its record wholesale.
    """

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def add_metadata(self, image_id: str, record: Dict[str, Any]) -> None:
        """
        Register (or replace) the metadata record of an image.

        Args:
            image_id: Image identifier
            record: Metadata record; a shallow copy is stored
        """
        self._records[image_id] = dict(record)

    def register_all(self, records: Dict[str, Dict[str, Any]]) -> None:
        """Register every record of a freshly built stack."""
        for image_id, record in records.items():
            self.add_metadata(image_id, record)

    def get_metadata(self, image_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the record for an image, or None if unknown."""
        record = self._records.get(image_id)
        return dict(record) if record is not None else None

    def get_instance(self, image_id: str):
        """Return the pydicom Dataset registered for an image, or None."""
        record = self._records.get(image_id)
        return record.get("instance") if record else None

    def has_image(self, image_id: str) -> bool:
        return image_id in self._records

    def get_image_plane(self, image_id: str) -> Optional[Dict[str, Any]]:
        """
        Derive the image plane of an image.

        Missing or malformed geometry means the plane is unavailable; callers
        treat None as "feature unavailable", never as an error.

        Args:
            image_id: Image identifier

        Returns:
            Dict with 'frame_of_reference_uid', 'row_cosines', 'column_cosines',
            'normal', 'image_position', 'rows', 'columns', 'row_pixel_spacing',
            'column_pixel_spacing'; or None
        """
        instance = self.get_instance(image_id)
        if instance is None:
            return None

        orientation = get_image_orientation(instance)
        position = get_image_position(instance)
        if orientation is None or position is None:
            return None
        row_cosines, column_cosines = orientation

        normal = np.cross(row_cosines, column_cosines)
        norm = np.linalg.norm(normal)
        if norm == 0:
            return None

        spacing = get_pixel_spacing(instance) or (1.0, 1.0)
        try:
            rows = int(get_tag_value(instance, "Rows", 0))
            columns = int(get_tag_value(instance, "Columns", 0))
        except (TypeError, ValueError):
            rows, columns = 0, 0

        return {
            "frame_of_reference_uid": str(get_tag_value(instance, "FrameOfReferenceUID", "")),
            "row_cosines": row_cosines,
            "column_cosines": column_cosines,
            "normal": normal / norm,
            "image_position": position,
            "rows": rows,
            "columns": columns,
            "row_pixel_spacing": spacing[0],
            "column_pixel_spacing": spacing[1],
        }

    def remove(self, image_id: str) -> None:
        self._records.pop(image_id, None)

    def reset(self) -> None:
        """Drop every record."""
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

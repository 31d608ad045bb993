"""
Stack Builder

This module converts a (study, series, start index) load request into an
ordered image identifier stack plus the per-image metadata records that the
metadata indexer registers before the first image is fetched.

Inputs:
    - Study mapping (series UID -> instances) and a series instance list
    - Optional starting index

Outputs:
    - ImageStack with a clamped cursor
    - Metadata records keyed by image identifier

Requirements:
    - pydicom for instance datasets
"""

from typing import Any, Dict, List, Optional, Tuple
from pydicom.dataset import Dataset

from utils.dicom_utils import get_tag_value


IMAGE_ID_SCHEME = "dicom:"


class InvalidRequestError(ValueError):
    """Raised when a load request does not name a study and a non-empty series."""


class ImageStack:
    """
    Ordered image identifiers with a current-position cursor.

    The identifier list is fixed once built; only the cursor moves, and it is
    always kept inside [0, len(image_ids) - 1].
    """

    def __init__(self, image_ids: List[str], current_image_id_index: int = 0):
        if not image_ids:
            raise InvalidRequestError("An image stack needs at least one image")
        self.image_ids: List[str] = list(image_ids)
        self.current_image_id_index = clamp_index(current_image_id_index, len(self.image_ids))

    def __len__(self) -> int:
        return len(self.image_ids)

    @property
    def current_image_id(self) -> str:
        return self.image_ids[self.current_image_id_index]

    def is_navigable(self) -> bool:
        """Single-image stacks have nothing to scroll, prefetch or play."""
        return len(self.image_ids) > 1

    def index_of(self, image_id: str) -> int:
        """
        Get the position of an image identifier.

        Raises:
            ValueError: if the identifier is not part of this stack
        """
        return self.image_ids.index(image_id)

    def set_current_index(self, index: int) -> int:
        """Move the cursor, clamped to the stack bounds. Returns the new index."""
        self.current_image_id_index = clamp_index(index, len(self.image_ids))
        return self.current_image_id_index

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_image_id_index": self.current_image_id_index,
            "image_ids": list(self.image_ids),
        }

    def __repr__(self) -> str:
        return f"ImageStack(current_image_id_index={self.current_image_id_index}, images={len(self.image_ids)})"


def clamp_index(index: Optional[int], length: int) -> int:
    """
    Clamp an index into [0, length - 1].

    Args:
        index: Requested index; None is treated as 0
        length: Number of items (must be positive)

    Returns:
        Clamped index
    """
    if index is None:
        return 0
    try:
        index = int(index)
    except (TypeError, ValueError):
        return 0
    return max(0, min(index, length - 1))


def get_image_id(instance: Dataset, position: int) -> str:
    """
    Derive a stable image identifier for an instance.

    Args:
        instance: pydicom Dataset of the instance
        position: 1-based position of the instance in its series, used when
                  the instance has no SOPInstanceUID

    Returns:
        Identifier of the form "dicom:<study>/<series>/<sop>"
    """
    study_uid = get_tag_value(instance, "StudyInstanceUID", "")
    series_uid = get_tag_value(instance, "SeriesInstanceUID", "")
    sop_uid = get_tag_value(instance, "SOPInstanceUID", "") or str(position)
    return f"{IMAGE_ID_SCHEME}{study_uid}/{series_uid}/{sop_uid}"


def build_stack(
    study: Optional[Dict[str, List[Dataset]]],
    series: Optional[List[Dataset]],
    current_image_id_index: Optional[int] = 0,
) -> Tuple[ImageStack, Dict[str, Dict[str, Any]]]:
    """
    Build the image stack and metadata records for a series.

    Args:
        study: Study mapping (series UID -> instances) owning the series
        series: Ordered instances of the series
        current_image_id_index: Starting cursor; clamped to the stack bounds

    Returns:
        Tuple of (ImageStack, {image_id: metadata record}); metadata records hold
        'instance', 'series', 'study', 'study_instance_uid', 'series_instance_uid',
        'num_images' and the 1-based 'image_index'

    Raises:
        InvalidRequestError: if study or series is missing, or the series is empty
    """
    if study is None:
        raise InvalidRequestError("No study was supplied")
    if series is None:
        raise InvalidRequestError("No series was supplied")
    if len(series) == 0:
        raise InvalidRequestError("The series has no instances")

    num_images = len(series)
    image_ids: List[str] = []
    metadata: Dict[str, Dict[str, Any]] = {}
    for position, instance in enumerate(series, start=1):
        image_id = get_image_id(instance, position)
        # Duplicate SOP instance UIDs would collapse two images into one id
        if image_id in metadata:
            image_id = f"{image_id}#{position}"
        image_ids.append(image_id)
        metadata[image_id] = {
            "instance": instance,
            "series": series,
            "study": study,
            "study_instance_uid": str(get_tag_value(instance, "StudyInstanceUID", "")),
            "series_instance_uid": str(get_tag_value(instance, "SeriesInstanceUID", "")),
            "num_images": num_images,
            "image_index": position,
        }

    return ImageStack(image_ids, current_image_id_index), metadata

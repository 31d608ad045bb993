"""
Image Fetch Service

This module loads and caches decoded images for viewports. Every fetch returns
a concurrent.futures.Future that resolves to a LoadedImage or fails with the
decoding error; the work itself runs on the Qt event loop so completions are
interleaved with user interaction on the same thread.

Inputs:
    - Image identifiers registered with the metadata indexer

Outputs:
    - Futures resolving to LoadedImage objects
    - progress(image_id, percent) signals

Requirements:
    - PySide6 for QTimer deferral and signals
    - numpy for pixel arrays
    - pydicom datasets (through the metadata indexer)
"""

from collections import OrderedDict
from concurrent.futures import Future
from typing import Callable, Dict, Optional
import numpy as np
from PySide6.QtCore import QObject, QTimer, Signal

from core.metadata_indexer import MetadataIndexer
from utils.dicom_utils import get_default_window_level, get_tag_value
from utils.debug_log import debug_log


class LoadedImage:
    """
    A decoded image ready for display.

    Attributes:
        image_id: Image identifier
        pixels: numpy array of stored pixel values (rescale not applied)
        rows / columns: Image matrix size
        window_center / window_width: Default VOI window (None when unknown)
        slope / intercept: Modality rescale parameters
        invert: True for MONOCHROME1 images
    """

    def __init__(self, image_id: str, pixels: np.ndarray, window_center: Optional[float] = None,
                 window_width: Optional[float] = None, slope: float = 1.0, intercept: float = 0.0,
                 invert: bool = False):
        self.image_id = image_id
        self.pixels = pixels
        self.rows = int(pixels.shape[0]) if pixels.ndim >= 2 else 0
        self.columns = int(pixels.shape[1]) if pixels.ndim >= 2 else 0
        self.window_center = window_center
        self.window_width = window_width
        self.slope = slope
        self.intercept = intercept
        self.invert = invert

        if self.window_center is None or self.window_width is None:
            self._compute_window_from_pixels()

    def _compute_window_from_pixels(self) -> None:
        """Fall back to a full-range window computed from the rescaled pixel values."""
        if self.pixels.size == 0:
            return
        low = float(np.min(self.pixels)) * self.slope + self.intercept
        high = float(np.max(self.pixels)) * self.slope + self.intercept
        self.window_width = max(high - low, 1.0)
        self.window_center = low + (high - low) / 2.0

    def __repr__(self) -> str:
        return f"LoadedImage({self.image_id!r}, {self.rows}x{self.columns})"


def decode_dataset(image_id: str, dataset) -> LoadedImage:
    """
    Decode a pydicom Dataset into a LoadedImage.

    Args:
        image_id: Image identifier
        dataset: pydicom Dataset with pixel data

    Returns:
        LoadedImage

    Raises:
        AttributeError / ValueError: if the dataset has no decodable pixel data
    """
    pixels = np.asarray(dataset.pixel_array)
    window_center, window_width = get_default_window_level(dataset)
    try:
        slope = float(get_tag_value(dataset, "RescaleSlope", 1.0))
        intercept = float(get_tag_value(dataset, "RescaleIntercept", 0.0))
    except (TypeError, ValueError):
        slope, intercept = 1.0, 0.0
    photometric = str(get_tag_value(dataset, "PhotometricInterpretation", ""))
    return LoadedImage(
        image_id,
        pixels,
        window_center=window_center,
        window_width=window_width,
        slope=slope,
        intercept=intercept,
        invert=(photometric == "MONOCHROME1"),
    )


class ImageFetchService(QObject):
    """
    Load-and-cache image service.

    Features:
    - One shared Future per in-flight image id
    - Cached images resolve immediately
    - Least recently used images are evicted beyond max_cached_images
    - Progress notifications for the progress registry
    """

    # Signals
    progress = Signal(str, int)  # image_id, percent_complete

    def __init__(self, metadata_indexer: MetadataIndexer,
                 decoder: Optional[Callable[[str, object], LoadedImage]] = None,
                 defer: bool = True,
                 max_cached_images: int = 200):
        """
        Initialize the fetch service.

        Args:
            metadata_indexer: Indexer used to resolve image ids to datasets
            decoder: Optional decoder replacing decode_dataset
            defer: When True, decoding runs on the next event loop iteration;
                   when False it runs inside fetch() (useful without an event loop)
            max_cached_images: Cache capacity; 0 disables caching
        """
        super().__init__()
        self.metadata_indexer = metadata_indexer
        self.decoder = decoder or decode_dataset
        self.defer = defer
        self.max_cached_images = max(0, int(max_cached_images))
        self._cache: "OrderedDict[str, LoadedImage]" = OrderedDict()
        self._pending: Dict[str, Future] = {}

    def fetch(self, image_id: str) -> Future:
        """
        Fetch an image, loading it if it is not cached.

        Args:
            image_id: Image identifier

        Returns:
            Future resolving to a LoadedImage
        """
        if image_id in self._cache:
            self._cache.move_to_end(image_id)
            future: Future = Future()
            future.set_result(self._cache[image_id])
            return future

        if image_id in self._pending:
            return self._pending[image_id]

        future = Future()
        self._pending[image_id] = future
        self.progress.emit(image_id, 0)
        if self.defer:
            QTimer.singleShot(0, lambda: self._load(image_id, future))
        else:
            self._load(image_id, future)
        return future

    def _load(self, image_id: str, future: Future) -> None:
        """Decode an image and settle its future."""
        self._pending.pop(image_id, None)
        dataset = self.metadata_indexer.get_instance(image_id)
        try:
            if dataset is None:
                raise LookupError(f"No instance registered for image {image_id}")
            image = self.decoder(image_id, dataset)
        except (LookupError, AttributeError, ValueError, TypeError, RuntimeError) as e:
            debug_log("image_fetch_service._load", "decode failed", {"image_id": image_id, "error": str(e)})
            future.set_exception(e)
            return
        self._store(image_id, image)
        self.progress.emit(image_id, 100)
        future.set_result(image)

    def _store(self, image_id: str, image: LoadedImage) -> None:
        """Cache an image, evicting the least recently used ones past capacity."""
        if self.max_cached_images == 0:
            return
        self._cache[image_id] = image
        self._cache.move_to_end(image_id)
        while len(self._cache) > self.max_cached_images:
            evicted, _ = self._cache.popitem(last=False)
            debug_log("image_fetch_service._store", "evicted", {"image_id": evicted})

    def is_cached(self, image_id: str) -> bool:
        return image_id in self._cache

    def purge(self, image_id: Optional[str] = None) -> None:
        """
        Drop cached images.

        Args:
            image_id: Image to drop; None drops the whole cache
        """
        if image_id is None:
            self._cache.clear()
        else:
            self._cache.pop(image_id, None)

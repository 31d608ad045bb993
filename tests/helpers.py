"""
Shared test helpers: in-code DICOM datasets, a controllable fetch service and
component wiring for viewport controller tests.

Not a test module (no test_ prefix); imported by the tests in this folder.
"""

import os
import sys
from concurrent.futures import Future
from types import SimpleNamespace
from typing import Dict, List, Optional

import numpy as np
from pydicom.dataset import Dataset

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.image_fetch_service import LoadedImage
from core.viewer_state_store import ViewerStateStore

STUDY_UID = "1.2.840.1"
FRAME_UID = "1.2.840.1.99"


def ensure_qt_app():
    """Return the QCoreApplication, creating one if needed (offscreen)."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtCore import QCoreApplication
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


def make_instance(series_uid: str, sop_uid: str, instance_number: int, z: float = 0.0,
                  study_uid: str = STUDY_UID, frame_uid: Optional[str] = FRAME_UID,
                  orientation=(1, 0, 0, 0, 1, 0), size: int = 100) -> Dataset:
    """Build an instance with image plane geometry (axial by default)."""
    ds = Dataset()
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid
    ds.SOPInstanceUID = sop_uid
    ds.InstanceNumber = instance_number
    ds.Rows = size
    ds.Columns = size
    if frame_uid:
        ds.FrameOfReferenceUID = frame_uid
    if orientation is not None:
        ds.ImageOrientationPatient = list(orientation)
        ds.ImagePositionPatient = [0.0, 0.0, z]
        ds.PixelSpacing = [1.0, 1.0]
    return ds


def make_series(series_uid: str, count: int, **kwargs) -> List[Dataset]:
    return [make_instance(series_uid, f"{series_uid}.{i}", i, z=float(i), **kwargs) for i in range(1, count + 1)]


def image_id_of(series_uid: str, position: int, study_uid: str = STUDY_UID) -> str:
    """Image id of the instance built by make_series at a 1-based position."""
    return f"dicom:{study_uid}/{series_uid}/{series_uid}.{position}"


def make_loaded_image(image_id: str, size: int = 100) -> LoadedImage:
    return LoadedImage(image_id, np.zeros((size, size), dtype=np.uint16), window_center=40.0, window_width=400.0)


class FakeFetchService:
    """
    Fetch service whose futures are settled by the test.

    Every fetch creates a new Future; resolve()/fail() settle the pending
    futures of an image id.
    """

    def __init__(self, auto_resolve: bool = False):
        self.auto_resolve = auto_resolve
        self.requests: List[str] = []
        self.futures: Dict[str, List[Future]] = {}
        self.cached = set()

    def fetch(self, image_id: str) -> Future:
        self.requests.append(image_id)
        future: Future = Future()
        self.futures.setdefault(image_id, []).append(future)
        if self.auto_resolve:
            future.set_result(make_loaded_image(image_id))
        return future

    def resolve(self, image_id: str) -> None:
        for future in self.futures.get(image_id, []):
            if not future.done():
                future.set_result(make_loaded_image(image_id))

    def fail(self, image_id: str, error: BaseException) -> None:
        for future in self.futures.get(image_id, []):
            if not future.done():
                future.set_exception(error)

    def is_cached(self, image_id: str) -> bool:
        return image_id in self.cached


class RecordingStateStore(ViewerStateStore):
    """ViewerStateStore that records every publish call."""

    def __init__(self):
        super().__init__()
        self.published = []

    def publish(self, content_id, viewport_index, **fields):
        self.published.append((viewport_index, dict(fields)))
        return super().publish(content_id, viewport_index, **fields)

    def published_fields(self, viewport_index: int, field: str) -> list:
        return [fields[field] for index, fields in self.published if index == viewport_index and field in fields]


def build_environment(fetch_service=None, layout_mode: str = "2x2", clip_player=None,
                      config=None, error_display=None) -> SimpleNamespace:
    """Wire a complete set of viewport components around a fetch service."""
    from core.activation_coordinator import ActivationCoordinator
    from core.metadata_indexer import MetadataIndexer
    from core.progress_registry import ProgressRegistry
    from core.study_store import StudyStore
    from core.sync_arbiter import ReferenceLinePrefetchArbiter
    from core.viewport_load_controller import ViewportLoadController
    from gui.viewport_layout import ViewportLayout
    from tools.reference_lines import ImageSynchronizer, ReferenceLineTool
    from tools.stack_navigation import StackNavigator
    from tools.stack_prefetch import StackPrefetcher

    env = SimpleNamespace()
    env.fetch = fetch_service or FakeFetchService()
    env.study_store = StudyStore()
    env.indexer = MetadataIndexer()
    env.registry = ProgressRegistry()
    env.store = RecordingStateStore()
    env.layout = ViewportLayout(layout_mode)
    env.synchronizer = ImageSynchronizer()
    env.prefetcher = StackPrefetcher(env.fetch, max_images=5)
    env.reference_lines = ReferenceLineTool(env.indexer)
    env.navigator = StackNavigator(env.fetch)
    env.arbiter = ReferenceLinePrefetchArbiter(env.layout, env.prefetcher, env.reference_lines, env.synchronizer)
    env.activation = ActivationCoordinator(env.layout, env.arbiter)
    env.errors = []

    def record_error(viewport_index, image_id, error):
        env.errors.append((viewport_index, image_id, error))

    env.controller = ViewportLoadController(
        env.layout,
        env.study_store,
        env.indexer,
        env.registry,
        env.fetch,
        env.store,
        env.activation,
        env.arbiter,
        env.synchronizer,
        clip_player=clip_player,
        config=config,
        error_display=error_display or record_error,
    )
    return env

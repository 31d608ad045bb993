"""
Viewport Sync - Main Application Entry Point

This module is the composition root of the viewport loading and
synchronization controller. It creates the shared services, wires their
signals together, and offers a small command line entry point that loads a
DICOM folder into the first viewport.

Inputs:
    - Command line arguments (optional DICOM folder path)

Outputs:
    - A ViewerSession holding every component
    - Exit status of the command line run

Requirements:
    - PySide6 for the event loop and signals
    - pydicom for DICOM file handling
    - numpy for pixel arrays
    - All other application modules
"""

import sys
from concurrent.futures import Future
from pathlib import Path

# Add src directory to path
src_dir = Path(__file__).parent
sys.path.insert(0, str(src_dir))

from PySide6.QtCore import QCoreApplication, QObject, QTimer
from typing import Iterable, List, Optional
import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError

from core.activation_coordinator import ActivationCoordinator
from core.image_fetch_service import ImageFetchService
from core.metadata_indexer import MetadataIndexer
from core.progress_registry import ProgressRegistry
from core.study_store import StudyStore
from core.sync_arbiter import ReferenceLinePrefetchArbiter
from core.viewer_state_store import ViewerStateStore
from core.viewport_load_controller import LoadRequest, ViewportLoadController
from gui.viewport_container import ViewportContainer
from gui.viewport_layout import ViewportLayout
from tools.clip_player import ClipPlayer
from tools.reference_lines import ImageSynchronizer, ReferenceLineTool
from tools.stack_navigation import StackNavigator
from tools.stack_prefetch import StackPrefetcher
from utils.config_manager import ConfigManager
from utils.debug_log import debug_log


class ViewerSession(QObject):
    """
    Owns one viewer's components and their wiring.

    Every collaborator is created here and handed to its users explicitly;
    nothing is looked up through globals.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None, fetch_defer: bool = True):
        """
        Initialize the session.

        Args:
            config_manager: Optional ConfigManager (a default one is created otherwise)
            fetch_defer: Passed to ImageFetchService; False decodes inside fetch()
        """
        super().__init__()
        self.config_manager = config_manager or ConfigManager()

        # Shared stores and services
        self.study_store = StudyStore()
        self.metadata_indexer = MetadataIndexer()
        self.progress_registry = ProgressRegistry()
        self.fetch_service = ImageFetchService(
            self.metadata_indexer,
            defer=fetch_defer,
            max_cached_images=self.config_manager.get_image_cache_max_images(),
        )
        self.state_store = ViewerStateStore()
        self.layout = ViewportLayout(self.config_manager.get_viewport_layout())

        # Tools
        self.magnifier_config = self.config_manager.get_magnifier_config()
        self.synchronizer = ImageSynchronizer()
        self.prefetcher = StackPrefetcher(self.fetch_service, self.config_manager.get_prefetch_max_images())
        self.reference_line_tool = ReferenceLineTool(self.metadata_indexer)
        self.navigator = StackNavigator(self.fetch_service)
        self.clip_player = ClipPlayer(
            self.navigator,
            default_fps=self.config_manager.get_clip_default_fps(),
            default_loop=self.config_manager.get_clip_default_loop(),
            metadata_indexer=self.metadata_indexer,
        )

        # Coordination
        self.arbiter = ReferenceLinePrefetchArbiter(
            self.layout, self.prefetcher, self.reference_line_tool, self.synchronizer)
        self.activation = ActivationCoordinator(self.layout, self.arbiter)
        self.controller = ViewportLoadController(
            self.layout,
            self.study_store,
            self.metadata_indexer,
            self.progress_registry,
            self.fetch_service,
            self.state_store,
            self.activation,
            self.arbiter,
            self.synchronizer,
            clip_player=self.clip_player,
            config=self.config_manager,
        )

        self._connect_signals()

    def _connect_signals(self) -> None:
        """Connect progress routing between the fetch service, the registry and the containers."""
        self.fetch_service.progress.connect(self.progress_registry.route_progress)
        self.progress_registry.viewport_progress.connect(self._on_viewport_progress)

    def _on_viewport_progress(self, viewport_index: int, percent_complete: int) -> None:
        container = self.layout.get_container(viewport_index)
        if container is not None:
            container.set_load_progress(percent_complete)

    # --- data ---

    def open_datasets(self, datasets: Iterable[Dataset]) -> List[str]:
        """
        Organize datasets into studies/series.

        Returns:
            Study instance UIDs now available
        """
        self.study_store.organize(list(datasets))
        return self.study_store.get_study_uids()

    def load_folder(self, folder_path: str) -> List[Dataset]:
        """
        Read every DICOM file below a folder.

        Files that are not DICOM are skipped.

        Args:
            folder_path: Folder to scan recursively

        Returns:
            List of datasets read
        """
        datasets = []
        for file_path in sorted(p for p in Path(folder_path).rglob('*') if p.is_file()):
            try:
                datasets.append(pydicom.dcmread(str(file_path)))
            except (InvalidDicomError, OSError) as e:
                debug_log("main.load_folder", "skipped file", {"path": str(file_path), "error": str(e)})
        print(f"[VIEWPORT] Read {len(datasets)} DICOM file(s) from {folder_path}")
        self.open_datasets(datasets)
        self.config_manager.set_last_path(str(folder_path))
        return datasets

    # --- viewports ---

    def mount_viewport(self, viewport_index: int) -> ViewportContainer:
        """Mount a viewport slot and give it the current highlight state."""
        container = self.layout.mount(viewport_index)
        container.set_active(self.activation.is_active(viewport_index))
        return container

    def bind_viewport(self, viewport_index: int, study_uid: Optional[str], series_uid: Optional[str],
                      current_image_id_index: int = 0) -> Optional[Future]:
        """Bind a series to a viewport (see ViewportLoadController.bind)."""
        self.mount_viewport(viewport_index)
        request = LoadRequest(study_uid, series_uid, current_image_id_index)
        return self.controller.bind(viewport_index, request)

    def unmount_viewport(self, viewport_index: int) -> None:
        """Tear down a viewport and free its slot."""
        self.controller.unbind(viewport_index)
        self.layout.unmount(viewport_index)

    def set_layout(self, layout_mode: str) -> None:
        """Switch the layout mode, tearing down viewports that no longer fit."""
        for viewport_index in self.layout.set_layout(layout_mode):
            self.unmount_viewport(viewport_index)
        self.config_manager.set_viewport_layout(self.layout.get_layout_mode())

    def load_thumbnail(self, thumbnail_index: int, image_id: str) -> Future:
        """
        Fetch an image for a thumbnail, routing its progress to the thumbnail slot.

        Returns:
            The fetch Future
        """
        self.progress_registry.set_thumbnail_loading(thumbnail_index, image_id)
        future = self.fetch_service.fetch(image_id)
        future.add_done_callback(
            lambda done: self.progress_registry.clear_thumbnail_loading(thumbnail_index))
        return future

    def reset(self) -> None:
        """Tear down every viewport and forget all loaded data."""
        self.clip_player.stop_all()
        for viewport_index in self.layout.mounted_indices():
            self.unmount_viewport(viewport_index)
        self.controller.reset()
        self.activation.reset()
        self.synchronizer.clear()
        self.progress_registry.reset()
        self.metadata_indexer.reset()
        self.fetch_service.purge()
        self.state_store.reset()
        self.study_store.clear()


def exception_hook(exctype, value, tb):
    """Global exception handler to catch unhandled exceptions."""
    import traceback
    error_msg = ''.join(traceback.format_exception(exctype, value, tb))
    print(f"Unhandled exception:\n{error_msg}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Loads the DICOM folder given on the command line (or the last used one)
    and binds its first series to viewport 0.

    Returns:
        Process exit status
    """
    argv = list(sys.argv if argv is None else argv)
    sys.excepthook = exception_hook

    try:
        app = QCoreApplication.instance() or QCoreApplication(argv)
        session = ViewerSession()
        folder = argv[1] if len(argv) > 1 else session.config_manager.get_last_path()
        if not folder:
            print("Usage: main.py <dicom folder>")
            return 1

        session.load_folder(folder)
        study_uids = session.study_store.get_study_uids()
        if not study_uids:
            print(f"No DICOM series found in {folder}")
            return 1
        study_uid = study_uids[0]
        series_uid = session.study_store.get_series_uids(study_uid)[0]

        session.activation.activate(0)
        future = session.bind_viewport(0, study_uid, series_uid)
        if future is None:
            return 1
        future.add_done_callback(lambda done: QTimer.singleShot(0, app.quit))
        if not future.done():
            app.exec()
        return 0 if session.controller.get_state(0) == "displayed" else 1
    except Exception as e:
        print(f"Fatal error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())

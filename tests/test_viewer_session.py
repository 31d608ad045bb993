"""
Integration tests for the ViewerSession composition root (src/main.py).

Uses the real ImageFetchService with defer=False and a decoder that does not
need encoded pixel data.
"""

import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
sys.path.insert(0, os.path.dirname(__file__))

from helpers import STUDY_UID, ensure_qt_app, image_id_of, make_loaded_image, make_series
from main import ViewerSession
from utils.config_manager import ConfigManager


class TestViewerSession(unittest.TestCase):
    """Tests for wiring between the session components."""

    @classmethod
    def setUpClass(cls):
        cls.app = ensure_qt_app()

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        config = ConfigManager(config_dir=self._tmp.name)
        config.set_viewport_layout("2x2")
        self.session = ViewerSession(config, fetch_defer=False)
        self.session.fetch_service.decoder = lambda image_id, dataset: make_loaded_image(image_id)
        self.session.open_datasets(make_series("1.5", 3) + make_series("1.6", 2))

    def tearDown(self):
        self.session.reset()
        self._tmp.cleanup()

    def test_bind_displays_and_routes_progress(self):
        progress = []
        container = self.session.mount_viewport(2)
        container.progress_changed.connect(lambda pct: progress.append(pct))
        self.session.bind_viewport(2, STUDY_UID, "1.5", 1)
        self.assertEqual(self.session.controller.get_state(2), "displayed")
        self.assertEqual(self.session.layout.get_surface(2).image_id, image_id_of("1.5", 2))
        self.assertEqual(progress, [100])

    def test_activation_prefetches_through_real_service(self):
        self.session.activation.activate(0)
        self.session.bind_viewport(0, STUDY_UID, "1.5")
        self.assertTrue(self.session.fetch_service.is_cached(image_id_of("1.5", 2)))
        self.assertTrue(self.session.fetch_service.is_cached(image_id_of("1.5", 3)))

    def test_layout_shrink_tears_down_viewports(self):
        self.session.bind_viewport(3, STUDY_UID, "1.6")
        surface = self.session.layout.get_surface(3)
        self.session.set_layout("1x2")
        self.assertFalse(self.session.layout.is_mounted(3))
        self.assertFalse(surface.is_enabled())
        self.assertIsNone(self.session.controller.get_state(3))
        self.assertEqual(self.session.config_manager.get_viewport_layout(), "1x2")

    def test_thumbnail_progress(self):
        events = []
        self.session.progress_registry.thumbnail_progress.connect(lambda index, pct: events.append((index, pct)))
        self.session.metadata_indexer.add_metadata("dicom:thumb", {"instance": make_series("1.7", 1)[0]})
        self.session.load_thumbnail(4, "dicom:thumb")
        self.assertEqual(events, [(4, 0), (4, 100)])
        self.assertEqual(self.session.progress_registry.get_thumbnails_loading("dicom:thumb"), [])

    def test_magnifier_config_is_read_at_startup(self):
        self.assertEqual(self.session.magnifier_config, {"magnify_size": 300, "magnification_level": 3})

    def test_reset(self):
        self.session.bind_viewport(0, STUDY_UID, "1.5")
        self.session.reset()
        self.assertEqual(self.session.layout.mounted_indices(), [])
        self.assertEqual(self.session.study_store.get_study_uids(), [])
        self.assertEqual(len(self.session.metadata_indexer), 0)


if __name__ == '__main__':
    unittest.main()

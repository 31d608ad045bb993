"""
Unit tests for the activation coordinator (core.activation_coordinator).
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
sys.path.insert(0, os.path.dirname(__file__))

from core.activation_coordinator import NO_ACTIVE_VIEWPORT
from core.viewport_load_controller import LoadRequest
from helpers import STUDY_UID, FakeFetchService, build_environment, ensure_qt_app, make_series


class TestActivationCoordinator(unittest.TestCase):
    """Tests for activation state, highlight and side effects."""

    @classmethod
    def setUpClass(cls):
        cls.app = ensure_qt_app()

    def setUp(self):
        self.env = build_environment(FakeFetchService(auto_resolve=True))
        self.env.study_store.organize(
            make_series("1.5", 3) + make_series("1.6", 3) + make_series("1.7", 1) + make_series("1.8", 3))
        for index, series_uid in enumerate(("1.5", "1.6", "1.7", "1.8")):
            self.env.controller.bind(index, LoadRequest(STUDY_UID, series_uid))
        self.activation = self.env.activation
        self.changes = []
        self.activation.active_viewport_changed.connect(lambda index: self.changes.append(index))

    def surface(self, index):
        return self.env.layout.get_surface(index)

    def test_activate_moves_highlight_and_prefetch(self):
        self.assertTrue(self.activation.activate(1))
        self.assertEqual(self.activation.get_active_viewport(), 1)
        self.assertEqual([c.is_active for c in self.env.layout.containers()], [False, True, False, False])
        self.assertEqual(self.env.prefetcher.enabled_surfaces(), [self.surface(1)])
        self.assertFalse(self.env.reference_lines.is_enabled(self.surface(1)))
        self.assertTrue(self.env.reference_lines.is_enabled(self.surface(0)))

        self.assertTrue(self.activation.activate(3))
        self.assertEqual(self.env.prefetcher.enabled_surfaces(), [self.surface(3)])
        self.assertFalse(self.env.reference_lines.is_enabled(self.surface(3)))
        self.assertTrue(self.env.reference_lines.is_enabled(self.surface(1)))
        self.assertEqual(self.changes, [1, 3])

    def test_activate_is_idempotent(self):
        self.activation.activate(1)
        requests = list(self.env.fetch.requests)
        self.assertFalse(self.activation.activate(1))
        self.assertEqual(self.changes, [1])
        self.assertEqual(self.env.fetch.requests, requests)

    def test_single_image_viewport_activates_without_prefetch(self):
        self.activation.activate(0)
        self.activation.activate(2)
        self.assertEqual(self.activation.get_active_viewport(), 2)
        self.assertEqual(self.env.prefetcher.enabled_surfaces(), [])

    def test_nested_activation_runs_after_the_current_one(self):
        order = []

        def on_changed(index):
            order.append(("changed", index))
            if index == 1:
                order.append(("nested", self.activation.activate(0)))

        self.activation.active_viewport_changed.connect(on_changed)
        self.activation.activate(1)
        self.assertEqual(order, [("changed", 1), ("nested", False), ("changed", 0)])
        self.assertEqual(self.activation.get_active_viewport(), 0)
        self.assertEqual(self.env.prefetcher.enabled_surfaces(), [self.surface(0)])

    def test_interaction_requests_activation(self):
        self.assertTrue(self.surface(2).emit_interaction("mouse_down"))
        self.assertEqual(self.activation.get_active_viewport(), 2)
        self.assertFalse(self.surface(1).emit_interaction("key_press"))
        self.assertEqual(self.activation.get_active_viewport(), 2)

    def test_forget_active_viewport(self):
        self.activation.activate(1)
        self.activation.forget(0)
        self.assertEqual(self.activation.get_active_viewport(), 1)
        self.activation.forget(1)
        self.assertIsNone(self.activation.get_active_viewport())
        self.assertEqual(self.changes, [1, NO_ACTIVE_VIEWPORT])

    def test_initial_active_viewport_has_no_side_effects(self):
        self.activation.set_initial_active_viewport(2)
        self.assertTrue(self.activation.is_active(2))
        self.assertEqual(self.changes, [])
        self.assertFalse(any(c.is_active for c in self.env.layout.containers()))


if __name__ == '__main__':
    unittest.main()

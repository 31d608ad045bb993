"""
Unit tests for reference lines (tools.reference_lines).

Geometry: an axial target plane at the origin (100 x 100, 1 mm spacing) and
a sagittal source plane at x = 50 spanning z = -50..50 cross along the
column x = 50 of the target.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
sys.path.insert(0, os.path.dirname(__file__))

import numpy as np

from core.metadata_indexer import MetadataIndexer
from gui.render_surface import RenderSurface
from helpers import ensure_qt_app, make_instance, make_loaded_image
from tools.reference_lines import ImageSynchronizer, ReferenceLineTool, compute_reference_line


def _plane(position, row, col, frame="1.2.3", size=100):
    row = np.array(row, dtype=float)
    col = np.array(col, dtype=float)
    normal = np.cross(row, col)
    return {
        "frame_of_reference_uid": frame,
        "row_cosines": row,
        "column_cosines": col,
        "normal": normal / np.linalg.norm(normal),
        "image_position": np.array(position, dtype=float),
        "rows": size,
        "columns": size,
        "row_pixel_spacing": 1.0,
        "column_pixel_spacing": 1.0,
    }


AXIAL = _plane((0, 0, 0), (1, 0, 0), (0, 1, 0))
SAGITTAL = _plane((50, 0, -50), (0, 1, 0), (0, 0, 1))


class TestComputeReferenceLine(unittest.TestCase):
    """Tests for compute_reference_line."""

    def test_sagittal_on_axial(self):
        start, end = compute_reference_line(AXIAL, SAGITTAL)
        points = sorted([start, end])
        np.testing.assert_allclose(points[0], (50.0, 0.0), atol=1e-9)
        np.testing.assert_allclose(points[1], (50.0, 100.0), atol=1e-9)

    def test_parallel_planes_have_no_line(self):
        other_axial = _plane((0, 0, 10), (1, 0, 0), (0, 1, 0))
        self.assertIsNone(compute_reference_line(AXIAL, other_axial))

    def test_different_frame_of_reference_has_no_line(self):
        self.assertIsNone(compute_reference_line(AXIAL, _plane((50, 0, -50), (0, 1, 0), (0, 0, 1), frame="9.9")))

    def test_missing_plane_has_no_line(self):
        self.assertIsNone(compute_reference_line(AXIAL, None))

    def test_plane_not_crossing_has_no_line(self):
        above = _plane((50, 0, 10), (0, 1, 0), (0, 0, 1))
        self.assertIsNone(compute_reference_line(AXIAL, above))


class TestImageSynchronizer(unittest.TestCase):
    """Tests for ImageSynchronizer membership."""

    @classmethod
    def setUpClass(cls):
        cls.app = ensure_qt_app()

    def test_members_notify_and_leave_on_disable(self):
        synchronizer = ImageSynchronizer()
        events = []
        synchronizer.synchronized.connect(lambda source: events.append(source))
        surface = RenderSurface("a")
        surface.enable()
        synchronizer.add(surface)
        synchronizer.add(surface)
        self.assertEqual(synchronizer.members(), [surface])
        surface.display_image(make_loaded_image("dicom:x"))
        self.assertEqual(events, [surface, surface])
        surface.disable()
        self.assertFalse(synchronizer.contains(surface))


class TestReferenceLineTool(unittest.TestCase):
    """Tests for ReferenceLineTool with surfaces and a synchronizer."""

    @classmethod
    def setUpClass(cls):
        cls.app = ensure_qt_app()

    def setUp(self):
        self.indexer = MetadataIndexer()
        self.indexer.add_metadata("dicom:axial", {"instance": make_instance("1.5", "1.5.1", 1, z=0.0)})
        sagittal = make_instance("1.6", "1.6.1", 1, orientation=(0, 1, 0, 0, 0, 1))
        sagittal.ImagePositionPatient = [50.0, 0.0, -50.0]
        self.indexer.add_metadata("dicom:sagittal", {"instance": sagittal})

        self.rendered = []
        self.tool = ReferenceLineTool(self.indexer, renderer=lambda surface, lines: self.rendered.append(lines))
        self.synchronizer = ImageSynchronizer()

        self.target = RenderSurface("target")
        self.target.enable()
        self.target.display_image(make_loaded_image("dicom:axial"))
        self.source = RenderSurface("source")
        self.source.enable()
        self.source.display_image(make_loaded_image("dicom:sagittal"))
        self.synchronizer.add(self.target)
        self.synchronizer.add(self.source)

    def test_enable_draws_lines_from_other_members(self):
        self.tool.enable(self.target, self.synchronizer)
        lines = self.tool.lines[self.target]
        self.assertEqual(len(lines), 1)
        self.assertIs(lines[0]["source"], self.source)
        self.assertEqual(sorted([lines[0]["start"][0], lines[0]["end"][0]]), [50.0, 50.0])

    def test_disable_clears_lines(self):
        self.tool.enable(self.target, self.synchronizer)
        self.tool.disable(self.target)
        self.assertFalse(self.tool.is_enabled(self.target))
        self.assertNotIn(self.target, self.tool.lines)
        self.assertEqual(self.rendered[-1], [])

    def test_enable_twice_keeps_one_subscription(self):
        self.tool.enable(self.target, self.synchronizer)
        self.tool.enable(self.target, self.synchronizer)
        self.rendered.clear()
        self.source.display_image(make_loaded_image("dicom:axial"))
        self.assertEqual(len(self.rendered), 1)

    def test_disabled_surface_leaves_tool(self):
        self.tool.enable(self.target, self.synchronizer)
        self.target.disable()
        self.assertEqual(self.tool.enabled_surfaces(), [])


if __name__ == '__main__':
    unittest.main()

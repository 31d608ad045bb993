"""
Unit tests for the metadata indexer (core.metadata_indexer).
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
sys.path.insert(0, os.path.dirname(__file__))

import numpy as np

from core.metadata_indexer import MetadataIndexer
from helpers import FRAME_UID, make_instance


class TestMetadataIndexer(unittest.TestCase):
    """Tests for record registration and lookup."""

    def setUp(self):
        self.indexer = MetadataIndexer()
        self.instance = make_instance("1.5", "1.5.1", 1, z=12.5)

    def test_unknown_image_has_no_metadata(self):
        self.assertIsNone(self.indexer.get_metadata("dicom:x"))
        self.assertIsNone(self.indexer.get_instance("dicom:x"))
        self.assertIsNone(self.indexer.get_image_plane("dicom:x"))

    def test_register_replaces_wholesale(self):
        self.indexer.add_metadata("dicom:a", {"instance": self.instance, "image_index": 1})
        self.indexer.add_metadata("dicom:a", {"image_index": 2})
        self.assertEqual(self.indexer.get_metadata("dicom:a"), {"image_index": 2})
        self.assertIsNone(self.indexer.get_instance("dicom:a"))

    def test_returned_record_is_a_copy(self):
        self.indexer.add_metadata("dicom:a", {"image_index": 1})
        record = self.indexer.get_metadata("dicom:a")
        record["image_index"] = 5
        self.assertEqual(self.indexer.get_metadata("dicom:a")["image_index"], 1)

    def test_register_all_and_reset(self):
        self.indexer.register_all({"dicom:a": {}, "dicom:b": {}})
        self.assertEqual(len(self.indexer), 2)
        self.assertTrue(self.indexer.has_image("dicom:b"))
        self.indexer.remove("dicom:b")
        self.assertFalse(self.indexer.has_image("dicom:b"))
        self.indexer.reset()
        self.assertEqual(len(self.indexer), 0)


class TestImagePlane(unittest.TestCase):
    """Tests for get_image_plane."""

    def setUp(self):
        self.indexer = MetadataIndexer()

    def test_axial_plane(self):
        self.indexer.add_metadata("dicom:a", {"instance": make_instance("1.5", "1.5.1", 1, z=12.5)})
        plane = self.indexer.get_image_plane("dicom:a")
        self.assertEqual(plane["frame_of_reference_uid"], FRAME_UID)
        np.testing.assert_allclose(plane["normal"], [0.0, 0.0, 1.0])
        np.testing.assert_allclose(plane["image_position"], [0.0, 0.0, 12.5])
        self.assertEqual(plane["rows"], 100)
        self.assertEqual(plane["columns"], 100)
        self.assertEqual(plane["row_pixel_spacing"], 1.0)

    def test_missing_geometry_means_no_plane(self):
        self.indexer.add_metadata("dicom:a", {"instance": make_instance("1.5", "1.5.1", 1, orientation=None)})
        self.assertIsNone(self.indexer.get_image_plane("dicom:a"))

    def test_missing_frame_of_reference_is_empty(self):
        self.indexer.add_metadata("dicom:a", {"instance": make_instance("1.5", "1.5.1", 1, frame_uid=None)})
        self.assertEqual(self.indexer.get_image_plane("dicom:a")["frame_of_reference_uid"], "")


if __name__ == '__main__':
    unittest.main()

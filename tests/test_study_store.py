"""
Unit tests for the study store (core.study_store).
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
sys.path.insert(0, os.path.dirname(__file__))

from pydicom.dataset import Dataset

from core.study_store import StudyStore
from helpers import STUDY_UID, make_instance


class TestStudyStore(unittest.TestCase):
    """Tests for organize and lookups."""

    def test_groups_and_sorts_by_instance_number(self):
        third = make_instance("1.5", "1.5.3", 3)
        first = make_instance("1.5", "1.5.1", 1)
        second = make_instance("1.5", "1.5.2", 2)
        other = make_instance("1.6", "1.6.1", 1)
        store = StudyStore([third, other, first, second])
        self.assertEqual(store.get_study_uids(), [STUDY_UID])
        self.assertEqual(sorted(store.get_series_uids(STUDY_UID)), ["1.5", "1.6"])
        self.assertEqual([ds.SOPInstanceUID for ds in store.find_series(STUDY_UID, "1.5")],
                         ["1.5.1", "1.5.2", "1.5.3"])

    def test_slice_location_breaks_ties(self):
        a = make_instance("1.5", "1.5.a", 1)
        a.SliceLocation = 20.0
        b = make_instance("1.5", "1.5.b", 1)
        b.SliceLocation = 10.0
        store = StudyStore([a, b])
        self.assertEqual([ds.SOPInstanceUID for ds in store.find_series(STUDY_UID, "1.5")], ["1.5.b", "1.5.a"])

    def test_datasets_without_uids_are_skipped(self):
        store = StudyStore([Dataset(), make_instance("1.5", "1.5.1", 1)])
        self.assertEqual(len(store.find_series(STUDY_UID, "1.5")), 1)

    def test_unknown_lookups(self):
        store = StudyStore([make_instance("1.5", "1.5.1", 1)])
        self.assertIsNone(store.find_study(None))
        self.assertIsNone(store.find_study("9.9"))
        self.assertIsNone(store.find_series(STUDY_UID, None))
        self.assertIsNone(store.find_series(STUDY_UID, "9.9"))
        self.assertEqual(store.get_series_uids("9.9"), [])

    def test_organize_replaces_content(self):
        store = StudyStore([make_instance("1.5", "1.5.1", 1)])
        store.organize([make_instance("1.6", "1.6.1", 1, study_uid="2.1")])
        self.assertEqual(store.get_study_uids(), ["2.1"])
        store.clear()
        self.assertEqual(store.get_study_uids(), [])


if __name__ == '__main__':
    unittest.main()

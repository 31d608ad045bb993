"""
Study Store

This module organizes DICOM instances into studies and series and answers the
read-only study/series lookups the viewport loader performs when a viewport is
mounted.

Inputs:
    - List of pydicom.Dataset objects

Outputs:
    - Organized structure: Studies -> Series -> Instances
    - Study and series lookups by UID

Requirements:
    - pydicom library
    - typing for type hints
"""

from typing import Dict, List, Optional, Tuple
from collections import defaultdict
from pydicom.dataset import Dataset

from utils.dicom_utils import get_tag_value


class StudyStore:
    """
    Read-only study/series lookup built from pydicom datasets.

    Groups instances by:
    - StudyInstanceUID (studies)
    - SeriesInstanceUID (series within studies)
    - Sorts instances by InstanceNumber, then SliceLocation
    """

    def __init__(self, datasets: Optional[List[Dataset]] = None):
        """
        Initialize the store.

        Args:
            datasets: Optional datasets to organize immediately
        """
        self.studies: Dict[str, Dict[str, List[Dataset]]] = {}
        if datasets:
            self.organize(datasets)

    def organize(self, datasets: List[Dataset]) -> Dict[str, Dict[str, List[Dataset]]]:
        """
        Organize datasets into studies and series, replacing previous content.

        Datasets without a StudyInstanceUID or SeriesInstanceUID are skipped.

        Args:
            datasets: List of pydicom.Dataset objects

        Returns:
            Dictionary structure: {StudyInstanceUID: {SeriesInstanceUID: [sorted_datasets]}}
        """
        study_dict: Dict[str, Dict[str, List[Dataset]]] = defaultdict(lambda: defaultdict(list))
        skipped = 0
        for dataset in datasets:
            study_uid = str(get_tag_value(dataset, "StudyInstanceUID", ""))
            series_uid = str(get_tag_value(dataset, "SeriesInstanceUID", ""))
            if not study_uid or not series_uid:
                skipped += 1
                continue
            study_dict[study_uid][series_uid].append(dataset)

        if skipped:
            print(f"[STUDY STORE] Skipped {skipped} dataset(s) without study/series UID")

        self.studies = {}
        for study_uid, series_dict in study_dict.items():
            self.studies[study_uid] = {
                series_uid: self._sort_instances(instances)
                for series_uid, instances in series_dict.items()
            }
        return self.studies

    def _sort_instances(self, instances: List[Dataset]) -> List[Dataset]:
        """
        Sort instances by InstanceNumber, falling back to SliceLocation.

        Args:
            instances: Instances of one series

        Returns:
            Sorted list (stable for instances without either attribute)
        """
        def sort_key(dataset: Dataset) -> Tuple[float, float]:
            instance_number = get_tag_value(dataset, "InstanceNumber", None)
            slice_location = get_tag_value(dataset, "SliceLocation", None)
            try:
                instance_number = float(instance_number) if instance_number is not None else float("inf")
            except (TypeError, ValueError):
                instance_number = float("inf")
            try:
                slice_location = float(slice_location) if slice_location is not None else float("inf")
            except (TypeError, ValueError):
                slice_location = float("inf")
            return (instance_number, slice_location)

        return sorted(instances, key=sort_key)

    def find_study(self, study_uid: Optional[str]) -> Optional[Dict[str, List[Dataset]]]:
        """
        Look up a study by StudyInstanceUID.

        Args:
            study_uid: Study instance UID

        Returns:
            Mapping of series UID to instances, or None if not found
        """
        if not study_uid:
            return None
        return self.studies.get(study_uid)

    def find_series(self, study_uid: Optional[str], series_uid: Optional[str]) -> Optional[List[Dataset]]:
        """
        Look up a series inside a study.

        Args:
            study_uid: Study instance UID
            series_uid: Series instance UID

        Returns:
            Ordered list of instances, or None if the study or series is unknown
        """
        study = self.find_study(study_uid)
        if study is None or not series_uid:
            return None
        return study.get(series_uid)

    def get_study_uids(self) -> List[str]:
        """Return all study UIDs in insertion order."""
        return list(self.studies.keys())

    def get_series_uids(self, study_uid: str) -> List[str]:
        """Return the series UIDs of a study, empty if the study is unknown."""
        study = self.find_study(study_uid)
        return list(study.keys()) if study else []

    def clear(self) -> None:
        """Remove all studies."""
        self.studies = {}

"""
Viewer State Store

This module holds the per-viewport state published for UI reconstruction: for
every content (tab) id, which study/series each viewport shows, its stack
cursor and its view settings. It is written on every relevant change and only
read back when a viewport or a whole tab is rebuilt.

Inputs:
    - publish(content_id, viewport_index, **fields) calls from the load controller

Outputs:
    - Loaded series data per content id and viewport
    - JSON save/load of the whole store

Requirements:
    - json module (standard library)
    - pathlib module (standard library)
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union


DEFAULT_CONTENT_ID = "viewer"


class ViewerStateStore:
    """
    Key-value store of loaded series data keyed by content id and viewport index.

    Writes are overwrites of individual fields, never accumulations.
    """

    def __init__(self, active_content_id: str = DEFAULT_CONTENT_ID):
        self.active_content_id = active_content_id
        self.loaded_series_data: Dict[str, Dict[int, Dict[str, Any]]] = {}

    def set_active_content_id(self, content_id: Optional[str]) -> None:
        """Switch the content (tab) id subsequent publishes default to."""
        self.active_content_id = content_id or DEFAULT_CONTENT_ID

    def publish(self, content_id: Optional[str], viewport_index: int, **fields: Any) -> Dict[str, Any]:
        """
        Overwrite fields of a viewport's entry.

        Args:
            content_id: Content id; None means the active content id
            viewport_index: Viewport slot index
            **fields: Fields to overwrite (e.g. current_image_id_index=3)

        Returns:
            The viewport's entry after the update
        """
        content_id = content_id or self.active_content_id
        entry = self.loaded_series_data.setdefault(content_id, {}).setdefault(viewport_index, {})
        for key, value in fields.items():
            entry[key] = copy.deepcopy(value)
        return entry

    def get_loaded_series_data(self, viewport_index: int,
                               content_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Get a copy of a viewport's entry.

        Returns:
            Entry dict, or None if nothing was published for the viewport
        """
        content_id = content_id or self.active_content_id
        entry = self.loaded_series_data.get(content_id, {}).get(viewport_index)
        return copy.deepcopy(entry) if entry is not None else None

    def get_content(self, content_id: Optional[str] = None) -> Dict[int, Dict[str, Any]]:
        content_id = content_id or self.active_content_id
        return copy.deepcopy(self.loaded_series_data.get(content_id, {}))

    def clear_viewport(self, viewport_index: int, content_id: Optional[str] = None) -> None:
        """Start a fresh entry for a viewport (used when a new series is bound)."""
        content_id = content_id or self.active_content_id
        self.loaded_series_data.setdefault(content_id, {})[viewport_index] = {}

    def clear_content(self, content_id: Optional[str] = None) -> None:
        content_id = content_id or self.active_content_id
        self.loaded_series_data.pop(content_id, None)

    def reset(self) -> None:
        """Drop every content entry."""
        self.loaded_series_data.clear()
        self.active_content_id = DEFAULT_CONTENT_ID

    def save(self, path: Union[str, Path]) -> bool:
        """
        Save the store to a JSON file.

        Returns:
            True if save was successful, False otherwise
        """
        payload = {
            "active_content_id": self.active_content_id,
            "loaded_series_data": {
                content_id: {str(index): entry for index, entry in viewports.items()}
                for content_id, viewports in self.loaded_series_data.items()
            },
        }
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=4)
            return True
        except (IOError, TypeError, ValueError) as e:
            print(f"[WARNING] Could not save viewer state: {e}")
            return False

    def load(self, path: Union[str, Path]) -> bool:
        """
        Replace the store content with a JSON file written by save().

        Returns:
            True if the file was loaded, False otherwise (store unchanged)
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
            loaded = {
                content_id: {int(index): entry for index, entry in viewports.items()}
                for content_id, viewports in payload.get("loaded_series_data", {}).items()
            }
        except (IOError, json.JSONDecodeError, AttributeError, ValueError) as e:
            print(f"[WARNING] Could not load viewer state: {e}")
            return False
        self.loaded_series_data = loaded
        self.active_content_id = payload.get("active_content_id") or DEFAULT_CONTENT_ID
        return True

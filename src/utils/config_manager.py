"""
Configuration Manager

This module handles persistent storage and retrieval of viewer preferences
that influence viewport loading and synchronization. Settings are stored in a
JSON file in the user's application data directory.

Inputs:
    - User preferences (reference lines, prefetch depth, clip playback, layout, etc.)

Outputs:
    - Loaded configuration values
    - Saved configuration file

Requirements:
    - json module (standard library)
    - pathlib module (standard library)
    - os module (standard library)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union


LAYOUT_MODES = ["1x1", "1x2", "2x1", "2x2"]


class ConfigManager:
    """
    Manages viewer configuration and user preferences.

    Handles loading and saving of settings including:
    - Global reference line switch
    - Stack prefetch depth
    - Clip (cine) playback defaults
    - Magnifier configuration
    - Viewport layout mode
    - Last opened folder path
    """

    def __init__(self, config_filename: str = "viewport_sync_config.json",
                 config_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_filename: Name of the configuration file to use
            config_dir: Optional directory overriding the user config directory
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif os.name == 'nt':  # Windows
            app_data = os.getenv('APPDATA', os.path.expanduser('~'))
            self.config_dir = Path(app_data) / "ViewportSync"
        else:  # Mac/Linux
            self.config_dir = Path.home() / ".config" / "ViewportSync"

        # Create config directory if it doesn't exist
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Full path to config file
        self.config_path = self.config_dir / config_filename

        # Default configuration values
        self.default_config = {
            "reference_lines_enabled": True,
            "prefetch_max_images": 5,  # Neighbours requested on each side of the cursor
            "image_cache_max_images": 200,
            "clip_default_fps": 10.0,
            "clip_default_loop": True,
            "magnify_size": 300,
            "magnification_level": 3,
            "viewport_layout": "1x1",  # "1x1", "1x2", "2x1", "2x2"
            "last_path": "",
        }

        # Load configuration
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from file, or return defaults if file doesn't exist.

        Returns:
            Dictionary containing configuration values
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded_config = json.load(f)
                    # Merge with defaults to ensure all keys exist
                    config = self.default_config.copy()
                    config.update(loaded_config)
                    return config
            except (json.JSONDecodeError, IOError) as e:
                # If file is corrupted, use defaults
                print(f"[WARNING] Could not load config file: {e}")
                return self.default_config.copy()
        else:
            return self.default_config.copy()

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if save was successful, False otherwise
        """
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
            return True
        except IOError as e:
            print(f"[WARNING] Error saving config file: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key to retrieve
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key to set
            value: Value to set
        """
        self.config[key] = value

    def get_reference_lines_enabled(self) -> bool:
        """
        Get the global reference line switch.

        Returns:
            True if reference lines should be shown across viewports
        """
        return bool(self.config.get("reference_lines_enabled", True))

    def set_reference_lines_enabled(self, enabled: bool) -> None:
        """
        Set the global reference line switch.

        Args:
            enabled: True to show reference lines across viewports
        """
        self.config["reference_lines_enabled"] = bool(enabled)
        self.save_config()

    def get_prefetch_max_images(self) -> int:
        """
        Get how many images on each side of the cursor the prefetcher requests.

        Returns:
            Prefetch depth (default: 5)
        """
        return int(self.config.get("prefetch_max_images", 5))

    def set_prefetch_max_images(self, count: int) -> None:
        """
        Set the prefetch depth.

        Args:
            count: Number of neighbours per side; negative values are stored as 0
        """
        self.config["prefetch_max_images"] = max(0, int(count))
        self.save_config()

    def get_image_cache_max_images(self) -> int:
        """
        Get how many decoded images the fetch service keeps cached.

        Returns:
            Cache capacity (default: 200)
        """
        return max(0, int(self.config.get("image_cache_max_images", 200)))

    def set_image_cache_max_images(self, count: int) -> None:
        """
        Set the image cache capacity.

        Args:
            count: Number of images; negative values are stored as 0
        """
        self.config["image_cache_max_images"] = max(0, int(count))
        self.save_config()

    def get_clip_default_fps(self) -> float:
        """
        Get default clip playback frame rate.

        Returns:
            Frames per second (default: 10.0)
        """
        return float(self.config.get("clip_default_fps", 10.0))

    def set_clip_default_fps(self, fps: float) -> None:
        """
        Set default clip playback frame rate.

        Args:
            fps: Frames per second, must be positive
        """
        if fps > 0:
            self.config["clip_default_fps"] = float(fps)
            self.save_config()

    def get_clip_default_loop(self) -> bool:
        """
        Get default clip loop setting.

        Returns:
            True if clips restart at the end of the stack (default: True)
        """
        return bool(self.config.get("clip_default_loop", True))

    def set_clip_default_loop(self, loop: bool) -> None:
        """
        Set default clip loop setting.

        Args:
            loop: True to loop clips
        """
        self.config["clip_default_loop"] = bool(loop)
        self.save_config()

    def get_magnifier_config(self) -> Dict[str, int]:
        """
        Get magnifier configuration.

        Returns:
            Dict with 'magnify_size' and 'magnification_level'
        """
        return {
            "magnify_size": int(self.config.get("magnify_size", 300)),
            "magnification_level": int(self.config.get("magnification_level", 3)),
        }

    def get_viewport_layout(self) -> str:
        """
        Get the viewport layout mode.

        Returns:
            Layout mode ("1x1", "1x2", "2x1", or "2x2")
        """
        return self.config.get("viewport_layout", "1x1")

    def set_viewport_layout(self, layout_mode: str) -> None:
        """
        Set the viewport layout mode.

        Args:
            layout_mode: Layout mode ("1x1", "1x2", "2x1", or "2x2")
        """
        if layout_mode in LAYOUT_MODES:
            self.config["viewport_layout"] = layout_mode
            self.save_config()

    def get_last_path(self) -> str:
        """
        Get the last opened folder path.

        Returns:
            Path string, empty if not set
        """
        return self.config.get("last_path", "")

    def set_last_path(self, path: str) -> None:
        """
        Set the last opened folder path.

        Args:
            path: Path to save
        """
        self.config["last_path"] = path
        self.save_config()

"""
View Settings

Pan/zoom/window-level state of a render surface. Published to the viewer state
store on every render so a viewport can be reconstructed after a reload.

Requirements:
    - Standard library only
"""

from typing import Any, Dict, Optional


class ViewSettings:
    """
    Viewport display parameters.

    Attributes:
        scale: Zoom factor (1.0 = image pixels map to screen pixels)
        translation_x / translation_y: Pan offset in image pixels
        window_center / window_width: VOI window, None when unset
        invert, h_flip, v_flip: Display toggles
        rotation: Rotation in degrees (multiples of 90)
    """

    def __init__(self, scale: float = 1.0, translation_x: float = 0.0, translation_y: float = 0.0,
                 window_center: Optional[float] = None, window_width: Optional[float] = None,
                 invert: bool = False, h_flip: bool = False, v_flip: bool = False,
                 rotation: int = 0):
        self.scale = scale
        self.translation_x = translation_x
        self.translation_y = translation_y
        self.window_center = window_center
        self.window_width = window_width
        self.invert = invert
        self.h_flip = h_flip
        self.v_flip = v_flip
        self.rotation = rotation

    @classmethod
    def default_for_image(cls, image) -> "ViewSettings":
        """
        Build default settings for a loaded image (its own window/level and invert flag).

        Args:
            image: LoadedImage (or any object with window_center, window_width, invert)
        """
        return cls(
            window_center=getattr(image, 'window_center', None),
            window_width=getattr(image, 'window_width', None),
            invert=bool(getattr(image, 'invert', False)),
        )

    def copy(self) -> "ViewSettings":
        return ViewSettings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scale": self.scale,
            "translation": {"x": self.translation_x, "y": self.translation_y},
            "voi": {"window_center": self.window_center, "window_width": self.window_width},
            "invert": self.invert,
            "h_flip": self.h_flip,
            "v_flip": self.v_flip,
            "rotation": self.rotation,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ViewSettings"]:
        """
        Rebuild settings from to_dict() output.

        Returns:
            ViewSettings, or None when data is None
        """
        if data is None:
            return None
        translation = data.get("translation") or {}
        voi = data.get("voi") or {}
        return cls(
            scale=float(data.get("scale", 1.0)),
            translation_x=float(translation.get("x", 0.0)),
            translation_y=float(translation.get("y", 0.0)),
            window_center=voi.get("window_center"),
            window_width=voi.get("window_width"),
            invert=bool(data.get("invert", False)),
            h_flip=bool(data.get("h_flip", False)),
            v_flip=bool(data.get("v_flip", False)),
            rotation=int(data.get("rotation", 0)),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, ViewSettings):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (f"ViewSettings(scale={self.scale}, translation=({self.translation_x}, {self.translation_y}), "
                f"wc={self.window_center}, ww={self.window_width}, invert={self.invert})")

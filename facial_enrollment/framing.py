# facial_enrollment/framing.py
from __future__ import annotations

from .face_types import BoundingBox

# Acceptable band for the face center, as fractions of the frame size.
CENTER_X_MIN = 0.3
CENTER_X_MAX = 0.7
CENTER_Y_MIN = 0.2
CENTER_Y_MAX = 0.8


def is_centered(box: BoundingBox, frame_width: float, frame_height: float) -> bool:
    center_x = box.x + box.width / 2
    center_y = box.y + box.height / 2
    return (
        CENTER_X_MIN * frame_width < center_x < CENTER_X_MAX * frame_width
        and CENTER_Y_MIN * frame_height < center_y < CENTER_Y_MAX * frame_height
    )

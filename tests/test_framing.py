import pytest

from facial_enrollment.face_types import BoundingBox
from facial_enrollment.framing import (
    CENTER_X_MAX,
    CENTER_X_MIN,
    CENTER_Y_MAX,
    CENTER_Y_MIN,
    is_centered,
)


def _box_at(cx, cy, size=40):
    return BoundingBox(x=cx - size / 2, y=cy - size / 2, width=size, height=size)


def test_face_in_middle_is_centered():
    assert is_centered(_box_at(320, 240), 640, 480) is True


def test_face_in_corner_is_not_centered():
    assert is_centered(_box_at(30, 30), 640, 480) is False


@pytest.mark.parametrize(
    "cx, cy",
    [
        (CENTER_X_MIN * 640, 240),
        (CENTER_X_MAX * 640, 240),
        (320, CENTER_Y_MIN * 480),
        (320, CENTER_Y_MAX * 480),
    ],
)
def test_band_edges_are_exclusive(cx, cy):
    assert is_centered(_box_at(cx, cy), 640, 480) is False


def test_just_inside_band_edges():
    assert is_centered(_box_at(CENTER_X_MIN * 640 + 1, CENTER_Y_MIN * 480 + 1), 640, 480) is True
    assert is_centered(_box_at(CENTER_X_MAX * 640 - 1, CENTER_Y_MAX * 480 - 1), 640, 480) is True


def test_horizontal_miss_fails_even_when_vertical_is_fine():
    assert is_centered(_box_at(600, 240), 640, 480) is False


def test_same_inputs_give_same_answer():
    box = _box_at(200, 100)
    first = is_centered(box, 640, 480)
    assert all(is_centered(box, 640, 480) == first for _ in range(5))

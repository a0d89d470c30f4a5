import asyncio

from facial_enrollment.detection_loop import (
    MESSAGE_CENTERED,
    MESSAGE_NO_FACE,
    MESSAGE_NOT_CENTERED,
    DetectionLoop,
    status_message,
)
from facial_enrollment.face_types import Extraction

from conftest import CORNER_BOX, FakeStream, ScriptedExtractor, face


def test_status_message_precedence():
    assert status_message(False, False) == MESSAGE_NO_FACE
    assert status_message(False, True) == MESSAGE_NO_FACE
    assert status_message(True, False) == MESSAGE_NOT_CENTERED
    assert status_message(True, True) == MESSAGE_CENTERED


def test_tick_publishes_snapshots_in_order():
    extractor = ScriptedExtractor([Extraction.no_face(), face(box=CORNER_BOX), face()])
    loop = DetectionLoop(FakeStream(), extractor)
    seen = []
    loop.subscribe(seen.append)

    for _ in range(3):
        loop.tick()

    assert [(s.detected, s.centered) for s in seen] == [(False, False), (True, False), (True, True)]
    assert [s.message for s in seen] == [MESSAGE_NO_FACE, MESSAGE_NOT_CENTERED, MESSAGE_CENTERED]
    assert loop.last == seen[-1]


def test_stopped_loop_does_not_extract():
    extractor = ScriptedExtractor([face()])
    stream = FakeStream()
    loop = DetectionLoop(stream, extractor)
    loop.tick()
    loop.stop()

    assert loop.tick() is None
    assert loop.grab() is None
    assert extractor.calls == 1
    assert stream.reads == 1


def test_grab_returns_capture_frame():
    loop = DetectionLoop(FakeStream(), ScriptedExtractor([face()]))
    frame = loop.grab()
    assert frame.centered is True
    assert frame.descriptor is not None
    assert frame.image.shape == (480, 640, 3)


def test_timer_ticks_until_stopped():
    extractor = ScriptedExtractor([face()])
    loop = DetectionLoop(FakeStream(), extractor, interval=0.01)
    seen = []
    loop.subscribe(seen.append)

    async def scenario():
        task = loop.start()
        while len(seen) < 3:
            await asyncio.sleep(0.005)
        loop.stop()
        calls_at_stop = extractor.calls
        await asyncio.sleep(0.05)
        return task, calls_at_stop

    task, calls_at_stop = asyncio.run(scenario())
    assert task.done()
    assert extractor.calls == calls_at_stop
    assert len(seen) <= calls_at_stop


def test_start_twice_returns_same_task():
    loop = DetectionLoop(FakeStream(), ScriptedExtractor([face()]), interval=0.01)

    async def scenario():
        first = loop.start()
        second = loop.start()
        loop.stop()
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second


def test_grab_publishes_lost_face():
    loop = DetectionLoop(FakeStream(), ScriptedExtractor([face(), Extraction.no_face()]))
    loop.tick()
    assert loop.last.centered is True

    frame = loop.grab()
    assert frame.descriptor is None
    assert loop.last.detected is False
    assert loop.last.message == MESSAGE_NO_FACE


class _FailingExtractor:
    def __init__(self):
        self.calls = 0

    def extract(self, frame):
        self.calls += 1
        raise RuntimeError("inference crashed")


def test_timer_failure_stops_loop_and_reports_error():
    errors = []
    extractor = _FailingExtractor()
    loop = DetectionLoop(FakeStream(), extractor, interval=0.01, on_error=errors.append)

    async def scenario():
        task = loop.start()
        await asyncio.wait_for(task, timeout=1)
        return task

    task = asyncio.run(scenario())
    assert task.exception() is None
    assert loop.stopped
    assert extractor.calls == 1
    assert [str(e) for e in errors] == ["inference crashed"]

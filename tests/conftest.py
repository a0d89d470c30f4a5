import os

# Point the package at in-memory SQLite before anything imports it.
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timezone

import numpy as np
import pytest

from facial_enrollment.db import Base, SessionLocal, engine
from facial_enrollment.face_types import BoundingBox, Extraction
from facial_enrollment import models


FRAME_W, FRAME_H = 640, 480
CENTER_BOX = BoundingBox(x=270, y=190, width=100, height=100)
CORNER_BOX = BoundingBox(x=0, y=0, width=100, height=100)


class ManualClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


class FakeStream:
    def __init__(self):
        self.reads = 0

    def read(self):
        self.reads += 1
        return np.zeros((FRAME_H, FRAME_W, 3), dtype=np.uint8)


class FakeCamera:
    def __init__(self, fail=False):
        self.fail = fail
        self.acquired = 0
        self.released = 0
        self.streams = []

    @property
    def held(self):
        return self.acquired - self.released

    def acquire(self, constraints):
        from facial_enrollment.errors import AcquisitionError

        if self.fail:
            raise AcquisitionError()
        self.acquired += 1
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    def release(self, stream):
        self.released += 1


def descriptor(value=0.1, size=128):
    return tuple(float(value) for _ in range(size))


def face(box=CENTER_BOX, desc=None):
    return Extraction(detected=True, box=box, descriptor=desc or descriptor())


class ScriptedExtractor:
    """Returns scripted extractions in order, then repeats the last one."""

    def __init__(self, script=None):
        self.script = list(script or [])
        self.calls = 0

    def extract(self, frame):
        self.calls += 1
        if not self.script:
            return Extraction.no_face()
        if len(self.script) > 1:
            return self.script.pop(0)
        return self.script[0]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def employee(db):
    row = models.Employee(employee_id="E1001", name="Alice Perera", company_id="C001")
    db.add(row)
    db.commit()
    return row

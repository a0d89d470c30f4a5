# facial_enrollment/detection_loop.py
from __future__ import annotations

import asyncio
import threading
from typing import Callable, List, Optional, Tuple

from .camera import CameraStream
from .config import DETECTION_INTERVAL_SECONDS
from .errors import NoFaceDetected, NotCentered
from .extractor import DescriptorExtractor
from .face_types import CaptureFrame, DetectionSnapshot, Extraction
from .framing import is_centered
from .logging_utils import get_logger

logger = get_logger(__name__)

MESSAGE_NO_FACE = NoFaceDetected.message
MESSAGE_NOT_CENTERED = NotCentered.message
MESSAGE_CENTERED = "Hold still, looks good"

Subscriber = Callable[[DetectionSnapshot], None]
ErrorHandler = Callable[[Exception], None]


def status_message(detected: bool, centered: bool) -> str:
    if not detected:
        return MESSAGE_NO_FACE
    if not centered:
        return MESSAGE_NOT_CENTERED
    return MESSAGE_CENTERED


def _frame_size(frame) -> tuple:
    height, width = frame.shape[:2]
    return width, height


def _snapshot(extraction: Extraction, centered: bool) -> DetectionSnapshot:
    return DetectionSnapshot(
        detected=extraction.detected,
        centered=centered,
        message=status_message(extraction.detected, centered),
    )


class DetectionLoop:
    """
    Polls the extractor on a fixed interval while a capture is active.

    Each tick reads one frame, extracts, evaluates framing and publishes an
    immutable DetectionSnapshot to subscribers. Ticks never overlap: the next
    one is scheduled only after the previous one finished. Once ``stop()``
    returns no tick runs and nothing is published.

    If the camera or the extractor fails on a scheduled tick the loop stops
    itself and hands the exception to ``on_error``.
    """

    def __init__(
        self,
        stream: CameraStream,
        extractor: DescriptorExtractor,
        interval: float = DETECTION_INTERVAL_SECONDS,
        on_error: Optional[ErrorHandler] = None,
    ):
        self.stream = stream
        self.extractor = extractor
        self.interval = interval
        self.on_error = on_error
        self._subscribers: List[Subscriber] = []
        self._last: Optional[DetectionSnapshot] = None
        self._stopped = False
        self._task: Optional[asyncio.Task] = None
        # serializes tick, grab and stop
        self._lock = threading.RLock()

    @property
    def last(self) -> Optional[DetectionSnapshot]:
        return self._last

    @property
    def stopped(self) -> bool:
        return self._stopped

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def _is_centered(self, frame, extraction: Extraction) -> bool:
        if not extraction.detected or extraction.box is None:
            return False
        width, height = _frame_size(frame)
        return is_centered(extraction.box, width, height)

    def _extract(self) -> Tuple[object, Extraction, bool]:
        frame = self.stream.read()
        extraction = self.extractor.extract(frame)
        return frame, extraction, self._is_centered(frame, extraction)

    def _observe(self) -> Optional[DetectionSnapshot]:
        with self._lock:
            if self._stopped:
                return None
            _, extraction, centered = self._extract()
        return _snapshot(extraction, centered)

    def _publish(self, snapshot: DetectionSnapshot) -> None:
        if self._stopped:
            return
        self._last = snapshot
        for callback in list(self._subscribers):
            callback(snapshot)

    def tick(self) -> Optional[DetectionSnapshot]:
        snapshot = self._observe()
        if snapshot is None or self._stopped:
            return None
        self._publish(snapshot)
        return snapshot

    def grab(self) -> Optional[CaptureFrame]:
        """
        One extraction outside the schedule, for the capture action. Its
        result is published like a tick, so a face lost at capture time
        shows up in ``last``.
        """
        with self._lock:
            if self._stopped:
                return None
            frame, extraction, centered = self._extract()
        self._publish(_snapshot(extraction, centered))
        return CaptureFrame(
            image=frame,
            box=extraction.box,
            centered=centered,
            descriptor=extraction.descriptor,
        )

    async def _run(self) -> None:
        while not self._stopped:
            try:
                # inference runs off the event loop; awaiting keeps ticks sequential
                snapshot = await asyncio.to_thread(self._observe)
            except Exception as e:
                logger.error("Detection loop stopped after a failure: %s", e)
                self._stopped = True
                if self.on_error is not None:
                    self.on_error(e)
                return
            if self._stopped or snapshot is None:
                break
            # subscribers always run on the event loop thread
            self._publish(snapshot)
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        # wait out an in-flight tick so nothing is published after we return
        with self._lock:
            pass
        logger.debug("Detection loop stopped")

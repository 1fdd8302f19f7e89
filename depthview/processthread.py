"""Background worker feeding queued frames to a processor."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any

from depthview.frames import FrameData

log = logging.getLogger(__name__)

MAX_CACHED_FRAMES = 5


class ProcessThread(threading.Thread):
    """Processes frames on its own thread, keeping at most ``max_cached`` waiting."""

    def __init__(self, processor: Any, max_cached: int = MAX_CACHED_FRAMES) -> None:
        super().__init__(name="ProcessThread", daemon=True)
        if max_cached < 1:
            raise ValueError("max_cached must be at least 1")
        self.processor = processor
        self.max_cached = max_cached
        self.dropped = 0
        self._queue: deque[FrameData] = deque()
        self._cond = threading.Condition()
        self._stopping = False
        self._launched = False

    def on_frame_data(self, frame_data: FrameData) -> None:
        """Queue a frame, dropping the oldest when full; starts the thread if needed."""
        with self._cond:
            if not self._launched:
                self._launched = True
                self.start()
            if len(self._queue) >= self.max_cached:
                log.warning("dequeue, skip one frame")
                self._queue.popleft()
                self.dropped += 1
            self._queue.append(frame_data)
            self._cond.notify()

    def run(self) -> None:
        while True:
            with self._cond:
                while not self._queue and not self._stopping:
                    self._cond.wait()
                if self._stopping:
                    return
                frame = self._queue.popleft()
            self.processor.process(frame)

    def stop(self) -> None:
        """Ask the thread to finish and wait for it."""
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self.is_alive():
            self.join()

    def pending(self) -> int:
        """Number of frames waiting to be processed."""
        with self._cond:
            return len(self._queue)

    def __enter__(self) -> ProcessThread:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
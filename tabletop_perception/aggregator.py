import logging
import threading
import time
from collections import deque
from typing import List, Optional, Sequence

from tabletop_perception.cloud import PointCloud, concatenate

logger = logging.getLogger(__name__)

# Upper bound on a single wait so cancellation is noticed promptly
CANCEL_POLL_INTERVAL = 0.05


class FrameTimeoutError(TimeoutError):
    """No new frames arrived before the aggregation deadline."""


class DetectionCancelled(RuntimeError):
    """The request's cancellation event was set."""


class FrameBuffer:
    """
    Hand-off between the sensor callback (producer) and a pending aggregation (consumer).

    Frames are only queued while an aggregation is collecting; otherwise they are dropped.
    All state is guarded by one condition variable and only touched inside `with` blocks.
    """

    def __init__(self, maxlen: int = 64):
        self._cond = threading.Condition()
        self._frames = deque(maxlen=maxlen)
        self._collecting = False
        self.dropped = 0

    @property
    def is_collecting(self) -> bool:
        with self._cond:
            return self._collecting

    def push(self, frame: PointCloud) -> bool:
        """Offer a frame. Returns False when no aggregation is in progress."""
        with self._cond:
            if not self._collecting:
                self.dropped += 1
                return False
            self._frames.append(frame)
            self._cond.notify()
            return True

    def open(self):
        with self._cond:
            self._frames.clear()
            self._collecting = True

    def close(self):
        with self._cond:
            self._collecting = False
            self._frames.clear()

    def take(self, deadline: Optional[float] = None, cancel: Optional[threading.Event] = None) -> PointCloud:
        """
        Block until a frame is available and return it.
        `deadline` is a time.monotonic() value; None waits forever.
        """
        with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    raise DetectionCancelled("Frame aggregation cancelled")
                if self._frames:
                    return self._frames.popleft()

                wait_for = CANCEL_POLL_INTERVAL if cancel is not None else None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise FrameTimeoutError("Timed out waiting for point cloud frames")
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)

                self._cond.wait(wait_for)


def aggregate_frames(frames: Sequence[PointCloud]) -> PointCloud:
    """Concatenate frames in arrival order; the result is tagged with the last frame's frame_id."""
    if not frames:
        raise ValueError("Need at least one frame to aggregate")
    return concatenate(frames)


class FrameAggregator:
    """Collects k consecutive frames from a FrameBuffer into one cloud."""

    def __init__(self, buffer: FrameBuffer):
        self.buffer = buffer

    def collect(
        self,
        k: int,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> PointCloud:
        """
        Block until k fresh frames were received and return their concatenation.

        Raises FrameTimeoutError if the k frames do not arrive within `timeout` seconds,
        and DetectionCancelled if `cancel` is set while waiting.
        """
        if k < 1:
            raise ValueError(f"Frame count must be at least 1, got {k}")

        deadline = time.monotonic() + timeout if timeout is not None else None
        frames: List[PointCloud] = []

        self.buffer.open()
        try:
            while len(frames) < k:
                try:
                    frames.append(self.buffer.take(deadline=deadline, cancel=cancel))
                except FrameTimeoutError:
                    logger.error(f"Producer stalled: got {len(frames)} of {k} frames in {timeout:.2f}s")
                    raise
        finally:
            self.buffer.close()

        aggregated = aggregate_frames(frames)
        logger.info(f"Aggregated {k} frames into {len(aggregated)} points")
        return aggregated

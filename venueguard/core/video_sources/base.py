"""Frame sources.

The pipeline consumes frames through a small interface (`FrameSource`): a
time-ordered iterator of JPEG-encoded frames sampled at a fixed interval and
tagged with their offset in the source. Stored files and live streams obey the
same contract, so the capture implementation can be swapped without affecting
the detectors.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from urllib.parse import urlparse

import cv2

from venueguard.core.errors import FrameSourceError
from venueguard.core.types import Frame, SampledFrame

logger = logging.getLogger(__name__)

STREAM_SCHEMES = {"rtsp", "rtsps", "rtmp", "srt", "udp"}
DEFAULT_JPEG_QUALITY = 90
# Consecutive failed reads tolerated on a live stream before giving up.
MAX_STREAM_READ_FAILURES = 50


def encode_jpeg(frame: Frame, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise FrameSourceError("JPEG encoding failed")
    return bytes(buf)


class FrameSource(ABC):
    """Base interface for anything that can produce sampled frames."""

    @abstractmethod
    def frames(self) -> Iterator[SampledFrame]:
        """Yield sampled frames in source order."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError

    def __iter__(self) -> Iterator[SampledFrame]:
        return self.frames()

    def __enter__(self) -> FrameSource:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class OpenCVFrameSource(FrameSource):
    """A `FrameSource` backed by `cv2.VideoCapture`."""

    def __init__(
        self,
        locator: str,
        interval: float = 0.5,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.locator = locator
        self.interval = float(interval)
        self.jpeg_quality = jpeg_quality
        self.cap = self._open(locator)

    def _open(self, locator: str):
        cap = cv2.VideoCapture(locator)
        if not cap.isOpened():
            raise FrameSourceError(f"Failed to open video source: {locator}")
        return cap

    def close(self) -> None:
        """Release the underlying OpenCV capture."""

        if self.cap is not None:
            self.cap.release()


class VideoFileSource(OpenCVFrameSource):
    """Stored video (local path or URL to a file) sampled by media timestamp."""

    def _timestamp(self, index: int, fps: float | None) -> float:
        if fps:
            return index / fps
        try:
            return float(self.cap.get(cv2.CAP_PROP_POS_MSEC)) / 1000.0
        except Exception:
            return 0.0

    def frames(self) -> Iterator[SampledFrame]:
        fps: float | None = None
        try:
            value = float(self.cap.get(cv2.CAP_PROP_FPS))
            if value > 0.0:
                fps = value
        except Exception:
            fps = None

        index = 0
        frame_id = 0
        next_t = 0.0
        while True:
            ok, frame = self.cap.read()
            if not ok or frame is None:
                break
            t = self._timestamp(index, fps)
            index += 1
            # Tolerate float drift between frame times and sample times.
            if t + 1e-6 < next_t:
                continue
            yield SampledFrame(
                frame_id=frame_id,
                timestamp=round(t, 3),
                data=encode_jpeg(frame, self.jpeg_quality),
            )
            frame_id += 1
            while next_t <= t + 1e-6:
                next_t += self.interval
        logger.debug("Sampled %d frames from %s", frame_id, self.locator)


class StreamSource(OpenCVFrameSource):
    """Live stream (RTSP and similar) sampled by wall clock over a capture window."""

    def __init__(
        self,
        url: str,
        interval: float = 0.5,
        capture_seconds: float = 30.0,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capture_seconds <= 0:
            raise ValueError("capture_seconds must be > 0")
        self.capture_seconds = float(capture_seconds)
        self._clock = clock
        super().__init__(url, interval=interval, jpeg_quality=jpeg_quality)

    def _open(self, url: str):
        # RTSP is often more reliable when explicitly using the FFmpeg backend.
        # Fall back to OpenCV default backend if FFmpeg isn't available.
        last_exc: Exception | None = None
        candidates: list[int | None] = [getattr(cv2, "CAP_FFMPEG", None), None]
        for backend in candidates:
            try:
                cap = cv2.VideoCapture(url) if backend is None else cv2.VideoCapture(url, backend)
                if cap.isOpened():
                    break
                cap.release()
            except Exception as exc:
                last_exc = exc
        else:
            if last_exc is not None:
                raise FrameSourceError(f"Failed to open stream: {url} ({last_exc})") from last_exc
            raise FrameSourceError(f"Failed to open stream: {url}")

        # Keep capture buffering minimal so samples are close to real time.
        try:
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            pass
        return cap

    def frames(self) -> Iterator[SampledFrame]:
        start = self._clock()
        frame_id = 0
        next_t = 0.0
        failures = 0
        while True:
            elapsed = self._clock() - start
            if elapsed > self.capture_seconds:
                break
            ok, frame = self.cap.read()
            if not ok or frame is None:
                failures += 1
                if failures >= MAX_STREAM_READ_FAILURES:
                    logger.warning("Stream %s stopped delivering frames", self.locator)
                    break
                continue
            failures = 0
            if elapsed + 1e-6 < next_t:
                continue
            yield SampledFrame(
                frame_id=frame_id,
                timestamp=round(elapsed, 3),
                data=encode_jpeg(frame, self.jpeg_quality),
            )
            frame_id += 1
            while next_t <= elapsed + 1e-6:
                next_t += self.interval


def is_stream_locator(locator: str) -> bool:
    return urlparse(locator).scheme.lower() in STREAM_SCHEMES


def open_frame_source(
    locator: str,
    interval: float = 0.5,
    capture_seconds: float = 30.0,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> FrameSource:
    """Open a live stream or stored video depending on the locator scheme."""

    if is_stream_locator(locator):
        logger.info("Opening stream %s (every %.2fs for %.0fs)", locator, interval, capture_seconds)
        return StreamSource(
            locator,
            interval=interval,
            capture_seconds=capture_seconds,
            jpeg_quality=jpeg_quality,
        )
    logger.info("Opening video %s (every %.2fs)", locator, interval)
    return VideoFileSource(locator, interval=interval, jpeg_quality=jpeg_quality)

#!/usr/bin/env python3
# thermal_capture.py - device session and capture loop for the TC001 heatmap viewer

import time
from enum import Enum, auto

import cv2

from heatmap_pipeline import RthermError, FrameError, process_frame
from rtherm_config import (
    ERROR_POLICY, ERROR_POLICIES, NAN_POLICY, POLL_MS,
    MAX_EMPTY_READS, RECONNECT_DELAY, LOG_PEAK, LOG_INTERVAL,
)


class DeviceOpenError(RthermError):
    pass


class FrameReadError(RthermError):
    pass


class SessionState(Enum):
    DISCONNECTED = auto()
    CONNECTED = auto()
    STOPPED = auto()


def _open_video_capture(device):
    return cv2.VideoCapture(device, cv2.CAP_ANY)


class CaptureSession:
    """
    Owns the capture handle for one device path.

    States move Disconnected -> Connected -> Stopped through connect(),
    release() and stop(); a released session may connect again, a
    stopped one may not.
    """

    def __init__(self, device, capture_factory=None, max_empty_reads=MAX_EMPTY_READS):
        """
        Args:
            device (str): video device path, e.g. /dev/video0
            capture_factory (callable): device -> VideoCapture-like object
            max_empty_reads (int): consecutive empty frames tolerated, 0 = unlimited
        """
        self.device = str(device)
        self._factory = capture_factory or _open_video_capture
        self.max_empty_reads = max(0, int(max_empty_reads))

        self.state = SessionState.DISCONNECTED
        self._cap = None
        self.frame = None
        self.empty_reads = 0

    @property
    def is_connected(self):
        return self.state is SessionState.CONNECTED

    def connect(self):
        if self.state is SessionState.STOPPED:
            raise DeviceOpenError(f"Session for {self.device} is stopped")
        if self.state is SessionState.CONNECTED:
            return

        try:
            cap = self._factory(self.device)
        except cv2.error as e:
            raise DeviceOpenError(f"Unable to open camera at {self.device}: {e}") from e

        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise DeviceOpenError(f"Unable to open camera at {self.device}")

        # Raw YUYV is needed for the thermal half; RGB conversion destroys it.
        cap.set(cv2.CAP_PROP_CONVERT_RGB, 0.0)

        self._cap = cap
        self.empty_reads = 0
        self.state = SessionState.CONNECTED
        print(f"[CAP] Connected to {self.device}")

    def read_frame(self):
        """
        Block until the device hands over a frame.

        Returns:
            np.ndarray | None: the raw frame, or None when the device gave
            back an empty one
        """
        if self.state is not SessionState.CONNECTED:
            raise FrameReadError(f"Cannot read {self.device}: session is {self.state.name.lower()}")

        try:
            ok, frame = self._cap.read()
        except cv2.error as e:
            raise FrameReadError(f"Read from {self.device} failed: {e}") from e

        if not ok or frame is None or frame.size == 0:
            self.empty_reads += 1
            if self.max_empty_reads and self.empty_reads >= self.max_empty_reads:
                raise FrameReadError(f"No frames from {self.device} after {self.empty_reads} reads")
            return None

        self.empty_reads = 0
        self.frame = frame
        return frame

    def release(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            print(f"[CAP] Released {self.device}")
        if self.state is SessionState.CONNECTED:
            self.state = SessionState.DISCONNECTED

    def stop(self):
        self.release()
        self.state = SessionState.STOPPED

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


class LoopStats:
    """Counters for one run of the capture loop."""

    def __init__(self):
        self.frames = 0
        self.empty = 0
        self.skipped = 0
        self.reconnects = 0
        self.fps = 0.0
        self.last_peak = None

    def record(self, peak, dt):
        dt = max(1e-3, dt)
        self.fps = 1.0 / dt if self.frames == 0 else 0.9 * self.fps + 0.1 * (1.0 / dt)
        self.frames += 1
        self.last_peak = peak

    def as_dict(self):
        return {
            "frames": self.frames,
            "empty": self.empty,
            "skipped": self.skipped,
            "reconnects": self.reconnects,
            "fps": round(self.fps, 1),
        }


def _handle_failure(err, session, stats, error_policy):
    """The one place fatal-vs-skip is decided."""
    if error_policy == "fatal":
        raise err
    stats.skipped += 1
    print(f"[CAP] Skipping frame: {err}")
    if isinstance(err, FrameReadError):
        session.release()


def run_capture_loop(session, sink, error_policy=ERROR_POLICY, nan_policy=NAN_POLICY,
                     poll_ms=POLL_MS, reconnect_delay=RECONNECT_DELAY, max_frames=None):
    """
    Read -> process -> present until the sink reports a stop signal.

    Args:
        session (CaptureSession): device session, connected here if needed
        sink: object with show(image, peak), poll_stop(timeout_ms)
        error_policy (str): "fatal" propagates read/frame errors,
            "skip" logs them, drops the frame and reconnects after read errors
        max_frames (int): stop after this many presented frames (None = run forever)

    Returns:
        LoopStats: counters for the run
    """
    if error_policy not in ERROR_POLICIES:
        raise ValueError(f"error_policy must be one of {ERROR_POLICIES}, got {error_policy!r}")

    stats = LoopStats()
    last_log = 0.0

    try:
        session.connect()

        while True:
            t0 = time.time()

            if not session.is_connected:
                try:
                    session.connect()
                    stats.reconnects += 1
                except DeviceOpenError as e:
                    if error_policy == "fatal":
                        raise
                    print(f"[CAP] Reconnect failed: {e}")
                    time.sleep(reconnect_delay)
                    if sink.poll_stop(poll_ms):
                        break
                    continue

            try:
                frame = session.read_frame()
                result = process_frame(frame, nan_policy=nan_policy) if frame is not None else None
            except (FrameReadError, FrameError) as e:
                _handle_failure(e, session, stats, error_policy)
            else:
                if result is None:
                    stats.empty += 1
                else:
                    stats.record(result.peak, time.time() - t0)
                    sink.show(result.heatmap, result.peak)

                    now = time.time()
                    if LOG_PEAK and now - last_log >= LOG_INTERVAL:
                        peak = result.peak
                        print(f"[PIPE] Max temperature: {peak.temperature:.2f} C at "
                              f"({peak.x}, {peak.y}) | FPS: {stats.fps:.1f}")
                        last_log = now

            if sink.poll_stop(poll_ms):
                print(f"[CAP] Stop requested after {stats.frames} frames")
                break
            if max_frames is not None and stats.frames >= max_frames:
                break
    finally:
        session.stop()

    return stats

#!/usr/bin/env python3
# display_sink.py - desktop window output for the heatmap viewer

import cv2

from heatmap_pipeline import RthermError
from rtherm_config import POLL_MS


class SinkError(RthermError):
    """A presentation sink could not be set up."""


class WindowSink:
    """OpenCV window. Any key press, or closing the window, is the stop signal."""

    def __init__(self, window_name="rtherm"):
        self.window_name = window_name
        self._shown = False
        try:
            cv2.namedWindow(self.window_name, cv2.WINDOW_AUTOSIZE)
        except cv2.error as e:
            raise SinkError(f"Unable to open display window: {e}") from e

    def show(self, image, peak=None):
        cv2.imshow(self.window_name, image)
        self._shown = True

    def poll_stop(self, timeout_ms=POLL_MS) -> bool:
        if cv2.waitKey(timeout_ms) != -1:
            return True
        if not self._shown:
            return False
        try:
            return cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) < 1
        except cv2.error:
            return True

    def close(self):
        cv2.destroyAllWindows()

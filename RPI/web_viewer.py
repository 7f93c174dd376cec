#!/usr/bin/env python3
# web_viewer.py - MJPEG heatmap stream + status/stop endpoints (Flask)

import threading
import time

import cv2
import numpy as np
from flask import Flask, Response, jsonify
from werkzeug.serving import make_server

from display_sink import SinkError
from rtherm_config import (
    WEB_HOST, WEB_PORT, JPEG_QUALITY, POLL_MS,
    THERMAL_WIDTH, THERMAL_HEIGHT, UPSCALE,
)

INDEX_HTML = """<!doctype html>
<html>
<head><title>rtherm</title></head>
<body style="background:#111;color:#eee;font-family:sans-serif">
  <h3>rtherm</h3>
  <img src="/video_feed">
  <p id="status">waiting for frames...</p>
  <button onclick="fetch('/stop', {method: 'POST'})">Stop</button>
  <script>
    setInterval(async () => {
      const s = await (await fetch('/status.json')).json();
      document.getElementById('status').textContent = s.peak
        ? `Max ${s.peak.temperature.toFixed(2)} C at (${s.peak.x}, ${s.peak.y}) | FPS ${s.fps}`
        : 'waiting for frames...';
    }, 1000);
  </script>
</body>
</html>
"""


class WebViewer:
    """
    Persistent display surface served over HTTP.

    The capture loop calls show() and poll_stop(); Flask runs in a daemon
    thread and only reads the latest encoded JPEG and status under a lock.
    """

    def __init__(self, host=WEB_HOST, port=WEB_PORT, jpeg_quality=JPEG_QUALITY):
        self.host = host
        self.port = int(port)
        self.jpeg_quality = int(jpeg_quality)

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = None
        self._server = None

        self._jpeg = None
        self._idle_jpeg = None
        self._peak = None
        self._last_ts = None
        self.frames = 0
        self.fps = 0.0

        self.app = create_app(self)

    def start(self):
        if self._thread and self._thread.is_alive():
            return

        # Bind here so a busy or forbidden port fails the caller, not the thread.
        # werkzeug exits instead of raising when the bind fails.
        try:
            self._server = make_server(self.host, self.port, self.app, threaded=True)
        except (OSError, SystemExit) as e:
            raise SinkError(f"Unable to serve on {self.host}:{self.port}: {e}") from e

        self.port = self._server.server_port
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        print(f"[WEB] Serving heatmap on http://{self.host}:{self.port}/")

    def show(self, image, peak=None):
        ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            print("[WEB] JPEG encode failed, frame dropped")
            return

        now = time.time()
        with self._lock:
            if self._last_ts is not None:
                dt = max(1e-3, now - self._last_ts)
                self.fps = 0.9 * self.fps + 0.1 * (1.0 / dt)
            self._last_ts = now
            self._jpeg = buf.tobytes()
            self._peak = peak
            self.frames += 1

    def latest_jpeg(self):
        with self._lock:
            if self._jpeg is not None:
                return self._jpeg
        if self._idle_jpeg is None:
            blank = np.zeros((THERMAL_HEIGHT * UPSCALE, THERMAL_WIDTH * UPSCALE, 3), dtype=np.uint8)
            self._idle_jpeg = cv2.imencode(".jpg", blank)[1].tobytes()
        return self._idle_jpeg

    def status(self):
        with self._lock:
            peak = self._peak
            return {
                "frames": self.frames,
                "fps": round(self.fps, 1),
                "stopped": self._stop.is_set(),
                "peak": None if peak is None else {
                    "x": int(peak.x),
                    "y": int(peak.y),
                    "temperature": round(float(peak.temperature), 2),
                },
                "ts": time.time(),
            }

    def mjpeg_parts(self, interval=0.03):
        while not self._stop.is_set():
            yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + self.latest_jpeg() + b"\r\n")
            time.sleep(interval)

    def request_stop(self):
        if not self._stop.is_set():
            print("[WEB] Stop requested")
        self._stop.set()

    def poll_stop(self, timeout_ms=POLL_MS) -> bool:
        return self._stop.wait(timeout_ms / 1000.0)

    def close(self):
        # Ends open /video_feed streams before the server stops.
        self._stop.set()
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            print("[WEB] Server stopped")


def create_app(viewer):
    app = Flask(__name__)

    @app.route("/")
    def index():
        return INDEX_HTML

    @app.route("/video_feed")
    def video_feed():
        return Response(viewer.mjpeg_parts(), mimetype="multipart/x-mixed-replace; boundary=frame")

    @app.route("/status.json")
    def status_json():
        return jsonify(viewer.status())

    @app.route("/stop", methods=["POST"])
    def stop():
        viewer.request_stop()
        return jsonify({"ok": True})

    return app

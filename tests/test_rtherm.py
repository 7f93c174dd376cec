"""
Tests for the rtherm command line entry point.
"""

import numpy as np
import pytest

import rtherm
import rtherm_config
import thermal_capture
from conftest import FakeCapture, FakeSink, factory_for
from display_sink import SinkError


def test_device_is_required():
    with pytest.raises(SystemExit):
        rtherm.parse_args([])


def test_defaults():
    args = rtherm.parse_args(["--device", "/dev/video4"])
    assert args.device == "/dev/video4"
    assert args.sink == "window"
    assert args.on_error == rtherm_config.ERROR_POLICY


def test_open_failure_exits_nonzero(monkeypatch, capsys):
    monkeypatch.setattr(thermal_capture, "_open_video_capture", factory_for(FakeCapture(opened=False)))

    code = rtherm.main(["--device", "/dev/video9"])

    assert code == rtherm.EXIT_DEVICE
    assert "/dev/video9" in capsys.readouterr().out


def test_clean_stop_exits_zero(monkeypatch, hot_frame):
    cap = FakeCapture([hot_frame])
    sink = FakeSink(stop_after=1)
    monkeypatch.setattr(thermal_capture, "_open_video_capture", factory_for(cap))
    monkeypatch.setattr(rtherm, "build_sink", lambda args: sink)

    assert rtherm.main(["--device", "/dev/video4"]) == rtherm.EXIT_OK
    assert len(sink.shown) == 1
    assert cap.released


def test_fatal_frame_error_exits_nonzero(monkeypatch):
    cap = FakeCapture([np.zeros((3, 4, 2), dtype=np.uint8)])
    monkeypatch.setattr(thermal_capture, "_open_video_capture", factory_for(cap))
    monkeypatch.setattr(rtherm, "build_sink", lambda args: FakeSink())

    assert rtherm.main(["--device", "/dev/video4", "--on-error", "fatal"]) == rtherm.EXIT_RUNTIME
    assert cap.released


def test_sink_failure_releases_device(monkeypatch, capsys):
    cap = FakeCapture()
    monkeypatch.setattr(thermal_capture, "_open_video_capture", factory_for(cap))

    def _no_display(args):
        raise SinkError("Unable to open display window: no display")

    monkeypatch.setattr(rtherm, "build_sink", _no_display)

    assert rtherm.main(["--device", "/dev/video4"]) == rtherm.EXIT_RUNTIME
    assert cap.released
    assert "[rtherm] Fatal" in capsys.readouterr().out


def test_headless_window_is_a_sink_error(monkeypatch):
    import cv2
    import display_sink

    def _headless(*args, **kwargs):
        raise cv2.error("Can't initialize GTK backend")

    monkeypatch.setattr(display_sink.cv2, "namedWindow", _headless)
    with pytest.raises(SinkError):
        display_sink.WindowSink()


def test_busy_web_port_exits_nonzero(monkeypatch):
    import socket

    cap = FakeCapture()
    monkeypatch.setattr(thermal_capture, "_open_video_capture", factory_for(cap))

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen(1)
        port = busy.getsockname()[1]

        code = rtherm.main(["--device", "/dev/video4", "--sink", "web",
                            "--host", "127.0.0.1", "--port", str(port)])

    assert code == rtherm.EXIT_RUNTIME
    assert cap.released

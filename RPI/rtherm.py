#!/usr/bin/env python3
# rtherm.py - live heatmap viewer for TC001-style dual-plane thermal cameras

import argparse
import sys

from heatmap_pipeline import RthermError
from rtherm_config import ERROR_POLICY, ERROR_POLICIES, WEB_HOST, WEB_PORT, validate_config
from thermal_capture import CaptureSession, DeviceOpenError, run_capture_loop

EXIT_OK = 0
EXIT_DEVICE = 1
EXIT_RUNTIME = 2


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Show a live heatmap with the hottest point marked.")
    parser.add_argument("--device", type=str, required=True, help="Path to video device, e.g. /dev/video0")
    parser.add_argument("--sink", choices=("window", "web"), default="window",
                        help="Where to show the heatmap (default: window)")
    parser.add_argument("--on-error", choices=ERROR_POLICIES, default=ERROR_POLICY,
                        help="What to do with a bad or failed frame (default: %(default)s)")
    parser.add_argument("--host", type=str, default=WEB_HOST, help="Web viewer bind address")
    parser.add_argument("--port", type=int, default=WEB_PORT, help="Web viewer port")
    return parser.parse_args(argv)


def build_sink(args):
    if args.sink == "web":
        from web_viewer import WebViewer
        viewer = WebViewer(host=args.host, port=args.port)
        viewer.start()
        return viewer

    from display_sink import WindowSink
    return WindowSink()


def main(argv=None) -> int:
    args = parse_args(argv)

    issues = validate_config()
    if issues:
        print("Configuration errors:")
        for issue in issues:
            print(f"  - {issue}")
        return EXIT_RUNTIME

    session = CaptureSession(args.device)
    try:
        session.connect()
    except DeviceOpenError as e:
        print(f"[rtherm] {e}")
        return EXIT_DEVICE

    sink = None
    try:
        sink = build_sink(args)
        stats = run_capture_loop(session, sink, error_policy=args.on_error)
    except RthermError as e:
        print(f"[rtherm] Fatal: {e}")
        return EXIT_RUNTIME
    except KeyboardInterrupt:
        print("\n[rtherm] Interrupted")
        return EXIT_OK
    finally:
        session.stop()
        if sink is not None:
            sink.close()

    print(f"[rtherm] Done: {stats.as_dict()}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

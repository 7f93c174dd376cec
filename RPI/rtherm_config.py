#!/usr/bin/env python3
# rtherm_config.py - named constants for the TC001 heatmap viewer (env overridable)

import os

# ---------------- Sensor geometry ----------------
# The raw frame is 256x384: visible YUYV on top, thermal samples below.
THERMAL_WIDTH = int(os.getenv("RTHERM_THERMAL_WIDTH", "256"))
THERMAL_HEIGHT = int(os.getenv("RTHERM_THERMAL_HEIGHT", "192"))

# ---------------- Calibration (fixed by the device) ----------------
RAW_PER_KELVIN = 64.0
KELVIN_OFFSET = 273.15

# ---------------- Rendering ----------------
UPSCALE = int(os.getenv("RTHERM_UPSCALE", "3"))
ALPHA = float(os.getenv("RTHERM_ALPHA", "1.0"))  # gain, identity for now
BETA = float(os.getenv("RTHERM_BETA", "0.0"))    # brightness, identity for now

# ---------------- Crosshair ----------------
CROSSHAIR_LEN = int(os.getenv("RTHERM_CROSSHAIR_LEN", "5"))  # grid units
CROSSHAIR_THICKNESS = 3
CROSSHAIR_COLOR = (0, 0, 255)  # BGR pure red

# ---------------- Capture loop ----------------
POLL_MS = int(os.getenv("RTHERM_POLL_MS", "10"))
ERROR_POLICY = os.getenv("RTHERM_ERROR_POLICY", "fatal").strip().lower()  # fatal|skip
NAN_POLICY = os.getenv("RTHERM_NAN_POLICY", "ignore").strip().lower()     # ignore|raise
MAX_EMPTY_READS = int(os.getenv("RTHERM_MAX_EMPTY_READS", "0"))  # 0 = never give up
RECONNECT_DELAY = float(os.getenv("RTHERM_RECONNECT_DELAY", "1.0"))

# ---------------- Logging ----------------
LOG_PEAK = os.getenv("RTHERM_LOG_PEAK", "1") != "0"
LOG_INTERVAL = float(os.getenv("RTHERM_LOG_INTERVAL", "1.0"))

# ---------------- Web viewer ----------------
WEB_HOST = os.getenv("RTHERM_WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.getenv("RTHERM_WEB_PORT", "8080"))
JPEG_QUALITY = int(os.getenv("RTHERM_JPEG_QUALITY", "85"))

ERROR_POLICIES = ("fatal", "skip")
NAN_POLICIES = ("ignore", "raise")


def validate_config():
    """Return a list of problems with the current configuration."""
    issues = []

    if ERROR_POLICY not in ERROR_POLICIES:
        issues.append(f"RTHERM_ERROR_POLICY must be fatal|skip, got {ERROR_POLICY!r}")
    if NAN_POLICY not in NAN_POLICIES:
        issues.append(f"RTHERM_NAN_POLICY must be ignore|raise, got {NAN_POLICY!r}")
    if THERMAL_WIDTH <= 0 or THERMAL_HEIGHT <= 0:
        issues.append(f"Thermal grid must be non-empty: {THERMAL_WIDTH}x{THERMAL_HEIGHT}")
    if UPSCALE < 1:
        issues.append(f"Upscale factor must be >= 1: {UPSCALE}")
    if CROSSHAIR_LEN < 0:
        issues.append(f"Crosshair length must be >= 0: {CROSSHAIR_LEN}")
    if POLL_MS < 1:
        issues.append(f"Poll interval must be >= 1 ms: {POLL_MS}")
    if not 0 < JPEG_QUALITY <= 100:
        issues.append(f"JPEG quality should be between 1 and 100: {JPEG_QUALITY}")

    return issues

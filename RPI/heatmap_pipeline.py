#!/usr/bin/env python3
# heatmap_pipeline.py - per-frame TC001 pipeline: split, decode, peak, render, composite

from collections import namedtuple

import cv2
import numpy as np

from rtherm_config import (
    THERMAL_WIDTH, THERMAL_HEIGHT, RAW_PER_KELVIN, KELVIN_OFFSET,
    UPSCALE, ALPHA, BETA, CROSSHAIR_LEN, CROSSHAIR_THICKNESS, CROSSHAIR_COLOR,
    NAN_POLICY, NAN_POLICIES,
)


# ---------------- Errors ----------------
class RthermError(Exception):
    """Base class for everything the viewer raises on purpose."""


class FrameError(RthermError):
    """A captured frame could not be turned into a heatmap."""


class GeometryError(FrameError):
    pass


class DecodeError(FrameError):
    pass


class ConversionError(FrameError):
    pass


class EmptyGridError(FrameError):
    pass


class NaNGridError(FrameError):
    pass


PeakPoint = namedtuple("PeakPoint", ["x", "y", "temperature"])
FrameResult = namedtuple("FrameResult", ["heatmap", "peak", "grid"])


# ---------------- Frame splitter ----------------
def split_frame(frame):
    """
    Split a raw TC001 frame into its visible and thermal halves.

    Args:
        frame (np.ndarray): raw capture, shaped (H, W, 2) for a YUYV device

    Returns:
        tuple: (visible, thermal) views of rows [0, H/2) and [H/2, H)
    """
    if frame is None or np.ndim(frame) < 2:
        raise GeometryError(f"Frame must be at least 2-D, got {np.shape(frame)}")

    H, W = frame.shape[:2]
    if H == 0 or W == 0:
        raise GeometryError(f"Frame is empty: {W}x{H}")
    if H % 2:
        raise GeometryError(f"Frame height must be even, got {H}")

    half = H // 2
    return frame[:half], frame[half:]


def _as_samples(region, width, height, error_cls):
    """View a 2-byte-per-pixel region as (height, width, 2) uint8."""
    if isinstance(region, (bytes, bytearray, memoryview)):
        data = np.frombuffer(region, dtype=np.uint8)
    else:
        data = np.asarray(region)
        if data.dtype != np.uint8:
            raise error_cls(f"Expected uint8 samples, got {data.dtype}")

    if width is None or height is None:
        if data.ndim != 3 or data.shape[2] != 2:
            raise error_cls(f"Region must be shaped (h, w, 2), got {data.shape}")
        height, width = data.shape[:2]

    if width <= 0 or height <= 0:
        raise error_cls(f"Region is empty: {width}x{height}")

    expected = 2 * width * height
    if data.size != expected:
        raise error_cls(f"Expected {expected} bytes for {width}x{height}, got {data.size}")
    return data.reshape(height, width, 2)


# ---------------- Thermal decoder ----------------
def decode_thermal(region, width=None, height=None):
    """
    Convert the thermal half into degrees Celsius.

    Each sample is little-endian [b0, b1]; raw = b1 * 256 + b0 and
    temperature = raw / 64 - 273.15.

    Args:
        region: (h, w, 2) uint8 array, or a flat byte buffer with width/height
        width (int): grid width, required for flat buffers
        height (int): grid height, required for flat buffers

    Returns:
        np.ndarray: float64 grid shaped (h, w)
    """
    samples = _as_samples(region, width, height, DecodeError)
    raw = samples[..., 1].astype(np.uint32) * 256 + samples[..., 0]
    return raw / RAW_PER_KELVIN - KELVIN_OFFSET


# ---------------- Peak locator ----------------
def find_peak(grid, nan_policy=NAN_POLICY) -> PeakPoint:
    """
    Locate the hottest cell. Ties keep the first cell in row-major order.

    nan_policy "ignore" leaves NaN cells out of the comparison,
    "raise" rejects any grid that contains one.
    """
    if nan_policy not in NAN_POLICIES:
        raise ValueError(f"nan_policy must be one of {NAN_POLICIES}, got {nan_policy!r}")

    grid = np.asarray(grid, dtype=np.float64)
    if grid.size == 0:
        raise EmptyGridError("Temperature grid has no cells")
    if grid.ndim != 2:
        raise GeometryError(f"Temperature grid must be 2-D, got {grid.shape}")

    flat = grid.ravel()
    valid = np.flatnonzero(~np.isnan(flat))
    if valid.size != flat.size:
        if nan_policy == "raise":
            raise NaNGridError(f"{flat.size - valid.size} NaN cells in temperature grid")
        if valid.size == 0:
            raise EmptyGridError("Temperature grid holds only NaN")

    idx = int(valid[np.argmax(flat[valid])])
    y, x = divmod(idx, grid.shape[1])
    return PeakPoint(x, y, float(flat[idx]))


# ---------------- Visual renderer ----------------
def render_visible(region, width=None, height=None):
    """YUYV half -> BGR, identity amplitude pass, cubic upscale."""
    samples = _as_samples(region, width, height, ConversionError)
    try:
        colored = cv2.cvtColor(samples, cv2.COLOR_YUV2BGR_YUYV)
    except cv2.error as e:
        raise ConversionError(f"YUYV conversion failed: {e}") from e

    scaled = cv2.convertScaleAbs(colored, alpha=ALPHA, beta=BETA)
    return cv2.resize(scaled, None, fx=float(UPSCALE), fy=float(UPSCALE),
                      interpolation=cv2.INTER_CUBIC)


# ---------------- Heatmap compositor ----------------
def crosshair_segments(peak, grid_size=None, length=CROSSHAIR_LEN):
    """
    Crosshair around the peak in thermal-grid coordinates.

    Returns:
        tuple: (horizontal, vertical), each a ((x0, y0), (x1, y1)) pair,
        clamped to [0, grid_w] x [0, grid_h]
    """
    grid_w, grid_h = grid_size or (THERMAL_WIDTH, THERMAL_HEIGHT)
    x, y = int(peak.x), int(peak.y)
    horizontal = ((max(0, x - length), y), (min(x + length, grid_w), y))
    vertical = ((x, max(0, y - length)), (x, min(y + length, grid_h)))
    return horizontal, vertical


def _to_image_space(point, shape, scale=UPSCALE):
    H, W = shape[:2]
    x, y = point
    return (int(min(max(0, x * scale), W - 1)), int(min(max(0, y * scale), H - 1)))


def compose_heatmap(image, peak, grid_size=None):
    """Apply the HOT palette and draw the peak crosshair (red, 3 px)."""
    heatmap = cv2.applyColorMap(image, cv2.COLORMAP_HOT)
    for start, end in crosshair_segments(peak, grid_size):
        cv2.line(heatmap,
                 _to_image_space(start, heatmap.shape),
                 _to_image_space(end, heatmap.shape),
                 CROSSHAIR_COLOR, CROSSHAIR_THICKNESS, cv2.LINE_8)
    return heatmap


# ---------------- Full pass ----------------
def process_frame(frame, nan_policy=NAN_POLICY) -> FrameResult:
    visible, thermal = split_frame(frame)

    grid = decode_thermal(thermal)
    peak = find_peak(grid, nan_policy=nan_policy)

    rendered = render_visible(visible)
    heatmap = compose_heatmap(rendered, peak, grid_size=(grid.shape[1], grid.shape[0]))
    return FrameResult(heatmap, peak, grid)

"""Regional luminance analysis over grayscale frames."""

from __future__ import annotations

from typing import Optional

import numpy as np

from backhand.errors import InvalidRegion, MalformedFrame
from backhand.regions import Region


def check_frame(frame: np.ndarray, shape: Optional[tuple[int, int]] = None) -> np.ndarray:
    """Validate a delivered frame.

    Args:
        frame: Grayscale frame as numpy array (H, W), uint8.
        shape: Expected (rows, cols), or None to accept any size.

    Raises:
        MalformedFrame: if the frame is not a 2D uint8 array or its
            dimensions disagree with `shape`.
    """
    if not isinstance(frame, np.ndarray):
        raise MalformedFrame(f"expected numpy array, got {type(frame).__name__}")
    if frame.ndim != 2:
        raise MalformedFrame(f"expected 2D grayscale frame, got shape {frame.shape}")
    if frame.dtype != np.uint8:
        raise MalformedFrame(f"expected uint8 samples, got {frame.dtype}")
    if shape is not None and frame.shape != tuple(shape):
        raise MalformedFrame(
            f"frame is {frame.shape[0]}x{frame.shape[1]}, partition expects {shape[0]}x{shape[1]}"
        )
    return frame


def region_luma(frame: np.ndarray, region: Region) -> float:
    """Mean sample value inside `region`.

    The region's samples are copied before reducing, so a frame source that
    overwrites its buffer mid-computation cannot corrupt the result. The sum
    is accumulated in float64 and divided once by the cell count.
    """
    rows, cols = frame.shape[:2]
    if not region.fits(rows, cols):
        raise InvalidRegion(
            f"{region.name} ends at ({region.end_row}, {region.end_col}) "
            f"outside a {rows}x{cols} frame"
        )

    snapshot = np.array(
        frame[region.start_row:region.end_row, region.start_col:region.end_col],
        copy=True,
    )
    total = float(snapshot.sum(dtype=np.float64))
    return total / float(region.cell_count)


def frame_luma(frame: np.ndarray) -> float:
    """Mean over the whole frame."""
    rows, cols = frame.shape[:2]
    return region_luma(frame, Region("FRAME", 0, rows, 0, cols))

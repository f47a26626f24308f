"""Color mapping pipeline: divergence score to intensity to RGBA, QImage construction.

Scores are compressed with a power law so moderate divergence stands
apart from both near-zero and near-maximal divergence, then mapped
through a fixed 5-segment gradient:
dark blue -> violet -> magenta/red -> orange -> yellow-white.
"""

import numpy as np
from PyQt6.QtGui import QImage

from chaosmap.compute import DEFAULT_GAMMA, DEFAULT_SCORE_SCALE

# Each gradient segment spans this much intensity; channels are floored
# like 8-bit canvas pixels.
SEGMENT_WIDTH = 0.2


def intensity(
    scores: np.ndarray,
    scale: float = DEFAULT_SCORE_SCALE,
    gamma: float = DEFAULT_GAMMA,
) -> np.ndarray:
    """Normalize divergence scores into [0, 1] via (score / scale) ** gamma.

    NaN scores map to full intensity.
    """
    with np.errstate(invalid="ignore"):
        compressed = np.power(np.asarray(scores, dtype=np.float64) / scale, gamma)
    compressed = np.nan_to_num(compressed, nan=1.0, posinf=1.0, neginf=0.0)
    return np.clip(compressed, 0.0, 1.0)


def gradient_rgb(values: np.ndarray) -> np.ndarray:
    """Map intensities in [0, 1] to RGB via the 5-segment gradient.

    Returns:
        (N, 3) uint8 array in RGB order.
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    n = values.shape[0]

    r = np.zeros(n, dtype=np.float64)
    g = np.zeros(n, dtype=np.float64)
    b = np.zeros(n, dtype=np.float64)

    mask0 = values < 0.2
    mask1 = (values >= 0.2) & (values < 0.4)
    mask2 = (values >= 0.4) & (values < 0.6)
    mask3 = (values >= 0.6) & (values < 0.8)
    mask4 = values >= 0.8

    # black -> dark blue
    t = values[mask0] / SEGMENT_WIDTH
    b[mask0] = np.floor(t * 160)

    # dark blue -> violet
    t = (values[mask1] - 0.2) / SEGMENT_WIDTH
    r[mask1] = np.floor(t * 100)
    b[mask1] = 160 + np.floor(t * 95)

    # violet -> red
    t = (values[mask2] - 0.4) / SEGMENT_WIDTH
    r[mask2] = 100 + np.floor(t * 155)
    b[mask2] = 255 - np.floor(t * 255)

    # red -> orange
    t = (values[mask3] - 0.6) / SEGMENT_WIDTH
    r[mask3] = 255
    g[mask3] = np.floor(t * 200)

    # orange -> yellow-white
    t = (values[mask4] - 0.8) / SEGMENT_WIDTH
    r[mask4] = 255
    g[mask4] = 200 + np.floor(t * 55)
    b[mask4] = np.floor(t * 255)

    rgb = np.empty((n, 3), dtype=np.uint8)
    rgb[:, 0] = np.clip(r, 0, 255)
    rgb[:, 1] = np.clip(g, 0, 255)
    rgb[:, 2] = np.clip(b, 0, 255)
    return rgb


def scores_to_rgba(
    scores: np.ndarray,
    scale: float = DEFAULT_SCORE_SCALE,
    gamma: float = DEFAULT_GAMMA,
) -> np.ndarray:
    """Map divergence scores to opaque RGBA pixels.

    Returns:
        (N, 4) uint8 array in RGBA order, alpha always 255.
    """
    rgb = gradient_rgb(intensity(scores, scale, gamma))
    rgba = np.empty((rgb.shape[0], 4), dtype=np.uint8)
    rgba[:, :3] = rgb
    rgba[:, 3] = 255
    return rgba


def blank_buffer(resolution: int) -> np.ndarray:
    """Opaque black (R, R, 4) RGBA buffer."""
    buffer = np.zeros((resolution, resolution, 4), dtype=np.uint8)
    buffer[:, :, 3] = 255
    return buffer


def rgba_to_qimage(rgba: np.ndarray) -> QImage:
    """Create a QImage from an RGBA pixel array with GC safety.

    Args:
        rgba: (H, W, 4) uint8 RGBA array.

    Returns:
        QImage with Format_RGBA8888. The numpy array is attached to the
        QImage as _numpy_ref to prevent garbage collection.
    """
    h, w = rgba.shape[:2]
    # Ensure contiguous and writable (published snapshots are read-only)
    data = np.ascontiguousarray(rgba)
    if not data.flags.writeable:
        data = data.copy()
    stride = 4 * w
    image = QImage(data.data, w, h, stride, QImage.Format.Format_RGBA8888)
    # Prevent GC of the numpy array while QImage is alive
    image._numpy_ref = data
    return image

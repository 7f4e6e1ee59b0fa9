"""Frame similarity via normalized cross-correlation of grayscale intensities."""

from pathlib import Path
from typing import Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

from reelnotes.errors import EncodingFailed

# (width, height) of the comparison grid
COMPARE_SIZE = (200, 400)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

FLAT_EPSILON = 1e-10


def intensity_vector(path: Path, size: tuple[int, int] = COMPARE_SIZE) -> np.ndarray:
    """Load an image and reduce it to a flat vector of luminance values in [0, 1].

    The image is resized bilinearly to ``size`` so every frame of a run yields
    a vector of the same length, then flattened row by row.
    """
    try:
        with Image.open(path) as img:
            rgb = img.convert("RGB").resize(size, Image.Resampling.BILINEAR)
    except (OSError, UnidentifiedImageError) as e:
        raise EncodingFailed(f"failed to load frame {path}: {e}") from e

    pixels = np.asarray(rgb, dtype=np.float64)
    return (pixels @ LUMA_WEIGHTS / 255.0).ravel()


def similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Normalized cross-correlation of two intensity vectors.

    Returns a value in [-1, 1] where 1.0 means identical. Empty or
    mismatched vectors score 0.0. If either vector is flat (zero variance)
    the pair scores 1.0, so textureless frames never count as a change.
    """
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()
    if a.size == 0 or a.size != b.size:
        return 0.0

    n = a.size
    diff_a = a - a.mean()
    diff_b = b - b.mean()
    ss_a = np.dot(diff_a, diff_a)
    ss_b = np.dot(diff_b, diff_b)

    if np.sqrt(ss_a / n) < FLAT_EPSILON or np.sqrt(ss_b / n) < FLAT_EPSILON:
        return 1.0

    # Same as sum(da * db) / (n * std_a * std_b), exact 1.0 for identical input
    return float(np.dot(diff_a, diff_b) / np.sqrt(ss_a * ss_b))

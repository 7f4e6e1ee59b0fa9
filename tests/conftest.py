"""Shared test fixtures."""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from reelnotes.models import SampledFrame

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


def horizontal_gradient(width: int = 64, height: int = 48) -> np.ndarray:
    row = np.linspace(0, 255, width, dtype=np.uint8)
    gray = np.tile(row, (height, 1))
    return np.stack([gray] * 3, axis=-1)


def vertical_gradient(width: int = 64, height: int = 48) -> np.ndarray:
    col = np.linspace(0, 255, height, dtype=np.uint8)[:, None]
    gray = np.tile(col, (1, width))
    return np.stack([gray] * 3, axis=-1)


def solid(color: tuple[int, int, int], width: int = 64, height: int = 48) -> np.ndarray:
    return np.full((height, width, 3), color, dtype=np.uint8)


@pytest.fixture
def write_frames(tmp_path: Path):
    """Write RGB arrays as NNNN.png and return them as SampledFrames."""

    def _write(images: list[np.ndarray]) -> list[SampledFrame]:
        frames = []
        for i, pixels in enumerate(images, 1):
            path = tmp_path / f"{i:04d}.png"
            Image.fromarray(pixels).save(path)
            frames.append(SampledFrame(index=i, timestamp=float(i - 1), path=path))
        return frames

    return _write

"""Keyframe editor — re-encodes selected frames as scaled JPEGs."""

import logging
from pathlib import Path
from typing import Callable, Sequence

from PIL import Image, UnidentifiedImageError

from reelnotes.errors import EncodingFailed, WriteFailed
from reelnotes.models import Keyframe

logger = logging.getLogger(__name__)


def keyframe_filename(index: int) -> str:
    return f"frame_{index:04d}.jpg"


def _save_keyframe(kf: Keyframe, output_dir: Path, quality: int, scale: float, overwrite: bool) -> Path:
    output_path = output_dir / keyframe_filename(kf.index)
    try:
        with Image.open(kf.path) as img:
            img = img.convert("RGB")
            if scale != 1.0:
                width = max(1, int(img.width * scale))
                height = max(1, int(img.height * scale))
                img = img.resize((width, height), Image.Resampling.LANCZOS)
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise EncodingFailed(f"failed to decode frame {kf.index}: {e}", ordinal=kf.index) from e

    try:
        fh = open(output_path, "wb" if overwrite else "xb")
    except OSError as e:
        raise WriteFailed(f"failed to write frame {kf.index} to {output_path}: {e}", ordinal=kf.index) from e

    with fh:
        try:
            img.save(fh, format="JPEG", quality=quality)
        except ValueError as e:
            raise EncodingFailed(f"failed to encode frame {kf.index}: {e}", ordinal=kf.index) from e
        except OSError as e:
            raise WriteFailed(f"failed to write frame {kf.index} to {output_path}: {e}", ordinal=kf.index) from e
    return output_path


def materialize_keyframes(
    keyframes: Sequence[Keyframe],
    output_dir: Path,
    quality: int = 30,
    scale: float = 0.5,
    on_progress: Callable[[float], None] | None = None,
    overwrite: bool = True,
) -> list[Keyframe]:
    """Write each keyframe to ``output_dir/frame_NNNN.jpg``.

    Returns the keyframes pointing at their new files. Stops at the first
    failure; files already written are left for the caller to deal with.
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailed(f"failed to create frames directory {output_dir}: {e}") from e

    saved: list[Keyframe] = []
    total = len(keyframes)
    for i, kf in enumerate(keyframes, 1):
        saved.append(kf.with_path(_save_keyframe(kf, output_dir, quality, scale, overwrite)))
        if on_progress:
            on_progress(i / total)

    logger.info("Saved %d keyframes to %s", len(saved), output_dir)
    return saved

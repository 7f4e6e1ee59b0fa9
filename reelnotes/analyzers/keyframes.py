"""Keyframe selector."""

import logging
from pathlib import Path
from typing import Callable, Sequence

import numpy as np

from reelnotes.analyzers.similarity import intensity_vector, similarity
from reelnotes.errors import EncodingFailed
from reelnotes.models import Keyframe, SampledFrame

logger = logging.getLogger(__name__)


def _vector_for(frame: SampledFrame, vectorize: Callable[[Path], np.ndarray]) -> np.ndarray:
    try:
        return vectorize(frame.path)
    except EncodingFailed as e:
        raise EncodingFailed(f"failed to load frame {frame.index}: {e}", ordinal=frame.index) from e


def select_keyframes(
    frames: Sequence[SampledFrame],
    threshold: float,
    on_progress: Callable[[float], None] | None = None,
    vectorize: Callable[[Path], np.ndarray] = intensity_vector,
) -> list[Keyframe]:
    """Return the frames that differ from their predecessor.

    Frame *i* is kept when its similarity to frame *i-1* (the previous frame,
    not the previous keyframe) is below ``threshold``. The first and last
    frames are always kept. Gradual drift where no single step drops below
    the threshold is therefore not detected.
    """
    if not frames:
        return []

    keyframes = [Keyframe.from_frame(frames[0])]

    if len(frames) == 1:
        if on_progress:
            on_progress(1.0)
        return keyframes

    prev_vec = _vector_for(frames[0], vectorize)
    total = len(frames) - 1

    for i in range(1, len(frames)):
        curr_vec = _vector_for(frames[i], vectorize)
        score = similarity(prev_vec, curr_vec)
        if score < threshold:
            keyframes.append(Keyframe.from_frame(frames[i]))
            logger.debug("Frame %d is a keyframe (similarity %.3f)", frames[i].index, score)

        prev_vec = curr_vec
        if on_progress:
            on_progress(i / total)

    last = frames[-1]
    if keyframes[-1].index != last.index:
        keyframes.append(Keyframe.from_frame(last))

    logger.info("Selected %d keyframes from %d frames", len(keyframes), len(frames))
    return keyframes

"""Frame sampler — one still per second of source media into a scratch area."""

import logging
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from reelnotes import ffutil
from reelnotes.errors import ExtractionFailed
from reelnotes.models import SampledFrame

logger = logging.getLogger(__name__)

FRAME_PATTERN = re.compile(r"^(\d+)\.png$")


@dataclass
class FrameBatch:
    """Sampled frames plus the scratch directory that holds them.

    The batch owns ``directory``; call :meth:`release` (or use it as a context
    manager) once the frames are no longer needed.
    """

    directory: Path
    frames: list[SampledFrame] = field(default_factory=list)

    def release(self) -> None:
        if self.directory.exists():
            shutil.rmtree(self.directory, ignore_errors=True)
            logger.debug("Removed scratch directory %s", self.directory)

    def __enter__(self) -> "FrameBatch":
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    def __len__(self) -> int:
        return len(self.frames)


def collect_frames(directory: Path) -> list[SampledFrame]:
    """Read ``NNNN.png`` files back as an ordered, gapless frame sequence."""
    frames: list[SampledFrame] = []
    for entry in directory.iterdir():
        match = FRAME_PATTERN.match(entry.name)
        if match is None or not entry.is_file():
            continue
        index = int(match.group(1))
        frames.append(SampledFrame(index=index, timestamp=float(index - 1), path=entry))

    frames.sort(key=lambda f: f.index)

    for expected, frame in enumerate(frames, 1):
        if frame.index != expected:
            raise ExtractionFailed(
                f"frame sequence has a gap: expected {expected:04d}.png, found {frame.path.name}"
            )
    return frames


def sample_frames(
    input_path: Path,
    duration: float = 0.0,
    on_progress: Callable[[float], None] | None = None,
    scratch_root: Path | None = None,
) -> FrameBatch:
    """Extract frames at 1 fps and return them with their scratch directory.

    On failure the scratch directory is removed before the error propagates.
    """
    directory = Path(tempfile.mkdtemp(prefix="reelnotes-frames-", dir=scratch_root))
    batch = FrameBatch(directory=directory)
    try:
        ffutil.extract_frames(input_path, directory, duration=duration, on_progress=on_progress)
        batch.frames = collect_frames(directory)
        if not batch.frames:
            raise ExtractionFailed(f"no frames extracted from {input_path}")
    except BaseException:
        batch.release()
        raise

    logger.info("Sampled %d frames from %s", len(batch.frames), input_path.name)
    return batch

"""Shared data types used across reelnotes."""

from dataclasses import dataclass, replace
from pathlib import Path


@dataclass(frozen=True)
class SourceMedia:
    """An input file and its probed duration in seconds (0 when unknown)."""

    path: Path
    duration: float = 0.0

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")


@dataclass(frozen=True)
class SampledFrame:
    """One still decoded at 1 fps into the scratch area."""

    index: int
    timestamp: float
    path: Path


@dataclass(frozen=True)
class Keyframe:
    """A sampled frame selected as visually significant."""

    index: int
    timestamp: float
    path: Path

    @classmethod
    def from_frame(cls, frame: SampledFrame) -> "Keyframe":
        return cls(index=frame.index, timestamp=frame.timestamp, path=frame.path)

    def with_path(self, path: Path) -> "Keyframe":
        return replace(self, path=path)


@dataclass(frozen=True)
class TranscriptSegment:
    """A start/end time pair in seconds with the recognized text."""

    start: float
    end: float
    text: str


@dataclass(frozen=True)
class AnalysisReport:
    """Merged result of the visual and audio branches."""

    source_name: str
    duration: float
    total_frames: int
    keyframes: tuple[Keyframe, ...] = ()
    segments: tuple[TranscriptSegment, ...] = ()
    token_estimate: int = 0


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    has_video: bool
    has_audio: bool

"""JSON manifest schema — the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from reelnotes.modelstore import default_model_path

BACKENDS = ("whisper-cli", "whisper")


@dataclass
class FrameConfig:
    """Configuration for keyframe sampling, selection and output."""

    enabled: bool = True
    threshold: float = 0.85
    quality: int = 30
    scale: float = 0.5
    overwrite: bool = True


@dataclass
class TranscriptConfig:
    """Configuration for transcription via whisper.cpp or OpenAI Whisper."""

    enabled: bool = True
    backend: str = "whisper-cli"
    model: str = "base"
    model_path: Path | None = None
    language: str | None = None
    sample_rate: int = 16000
    auto_download: bool = True


@dataclass
class AnalysisManifest:
    """Top-level analysis manifest."""

    input: Path
    output: Path | None = None
    version: str = "1"
    frames: FrameConfig = field(default_factory=FrameConfig)
    transcript: TranscriptConfig = field(default_factory=TranscriptConfig)
    parallel: bool = False
    allow_partial: bool = False

    @property
    def report_path(self) -> Path:
        if self.output is not None:
            return self.output
        return self.input.with_name(self.input.stem + "_reelnotes.md")

    @property
    def frames_dir(self) -> Path:
        report = self.report_path
        return report.with_name(report.stem + "_frames")

    @property
    def resolved_model_path(self) -> Path:
        if self.transcript.model_path is not None:
            return self.transcript.model_path
        if self.transcript.backend == "whisper":
            # Model name; openai-whisper resolves and caches it itself
            return Path(self.transcript.model)
        return default_model_path(self.transcript.model)

    def validate(self) -> "AnalysisManifest":
        """Raise ValueError if any setting is out of range."""
        if not 0.0 < self.frames.threshold < 1.0:
            raise ValueError(f"threshold must be between 0 and 1, got {self.frames.threshold}")
        if not 1 <= self.frames.quality <= 100:
            raise ValueError(f"quality must be between 1 and 100, got {self.frames.quality}")
        if self.frames.scale <= 0:
            raise ValueError(f"scale must be positive, got {self.frames.scale}")
        if self.transcript.backend not in BACKENDS:
            raise ValueError(
                f"backend must be one of {', '.join(BACKENDS)}, got {self.transcript.backend!r}"
            )
        if self.transcript.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.transcript.sample_rate}")
        return self


def load_manifest(path: str | Path) -> AnalysisManifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data:
        raise ValueError("Manifest must contain an 'input' field")

    frames = FrameConfig(**data["frames"]) if "frames" in data else FrameConfig()
    transcript_data = dict(data.get("transcript", {}))
    if transcript_data.get("model_path") is not None:
        transcript_data["model_path"] = Path(transcript_data["model_path"])
    transcript = TranscriptConfig(**transcript_data)

    output = data.get("output")
    return AnalysisManifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(output) if output else None,
        frames=frames,
        transcript=transcript,
        parallel=bool(data.get("parallel", False)),
        allow_partial=bool(data.get("allow_partial", False)),
    ).validate()

"""Speech-to-text analyzer using whisper.cpp (subprocess) or OpenAI Whisper."""

import logging
import re
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Protocol

from reelnotes import ffutil
from reelnotes.errors import ModelMissing, RecognizerNotFound, TranscriptionFailed
from reelnotes.modelstore import model_exists
from reelnotes.models import TranscriptSegment

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

SEGMENT_PATTERN = re.compile(
    r"\[(\d{2}:\d{2}:\d{2}\.\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2}\.\d{3})\]\s*(.*)"
)
PROGRESS_PATTERN = re.compile(r"progress\s*=\s*(\d+)%")

WHISPER_CLI_NAMES = ("whisper-cli", "whisper")
WHISPER_CLI_FALLBACK = Path.home() / ".local" / "share" / "whisper.cpp" / "src" / "build" / "bin" / "whisper-cli"


def parse_timestamp(ts: str) -> float:
    """Parse an ``HH:MM:SS.mmm`` timestamp into seconds."""
    parts = ts.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"invalid timestamp format: {ts!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    sec, _, millis = parts[2].partition(".")
    return hours * 3600 + minutes * 60 + int(sec) + (int(millis) / 1000 if millis else 0.0)


def parse_transcript(output: str) -> list[TranscriptSegment]:
    """Parse ``[start --> end] text`` lines into segments ordered by start time."""
    segments: list[TranscriptSegment] = []
    for line in output.splitlines():
        match = SEGMENT_PATTERN.search(line)
        if match is None:
            continue
        text = match.group(3).strip()
        if not text:
            continue
        segments.append(
            TranscriptSegment(
                start=parse_timestamp(match.group(1)),
                end=parse_timestamp(match.group(2)),
                text=text,
            )
        )
    segments.sort(key=lambda s: s.start)
    return segments


def parse_recognizer_progress(line: str) -> float | None:
    """Extract whisper.cpp's ``progress = NN%`` marker as a fraction."""
    match = PROGRESS_PATTERN.search(line)
    if match is None:
        return None
    return min(int(match.group(1)) / 100.0, 1.0)


class Recognizer(Protocol):
    def recognize(
        self,
        audio_path: Path,
        model_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> list[TranscriptSegment]:
        ...


def find_whisper_cli() -> Path:
    """Locate the whisper.cpp CLI.

    Tries ``whisper-cli`` on PATH, then ``whisper`` (the name older
    whisper.cpp builds install), then the binary of a source build.
    """
    for name in WHISPER_CLI_NAMES:
        found = shutil.which(name)
        if found:
            return Path(found)
    if WHISPER_CLI_FALLBACK.is_file():
        return WHISPER_CLI_FALLBACK
    raise RecognizerNotFound(
        "whisper-cli not found. Install whisper.cpp and ensure whisper-cli is in PATH"
    )


class WhisperCliRecognizer:
    """Runs whisper.cpp's ``whisper-cli`` and parses its timestamped stdout."""

    def __init__(self, executable: Path | None = None, language: str | None = None) -> None:
        self.executable = executable
        self.language = language

    def recognize(
        self,
        audio_path: Path,
        model_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> list[TranscriptSegment]:
        executable = self.executable or find_whisper_cli()

        def on_stderr(line: str) -> None:
            frac = parse_recognizer_progress(line)
            if frac is not None and on_progress:
                on_progress(frac)

        with tempfile.TemporaryDirectory(prefix="reelnotes-transcript-") as tmpdir:
            out_base = Path(tmpdir) / "transcript"
            cmd = [
                str(executable),
                "-m", str(model_path),
                "-f", str(audio_path),
                "-otxt",
                "-of", str(out_base),
                "--print-progress",
            ]
            if self.language:
                cmd += ["-l", self.language]

            try:
                result = ffutil.run_streaming(cmd, on_stderr=on_stderr)
            except FileNotFoundError as e:
                raise RecognizerNotFound(f"whisper-cli not found at {executable}") from e

            if result.returncode != 0:
                stderr = (result.stderr or "").strip()
                raise TranscriptionFailed(
                    f"whisper failed (rc={result.returncode}): {stderr[-500:] or 'no output'}"
                )

            segments = parse_transcript(result.stdout)
            if segments:
                return segments

            txt_path = out_base.with_suffix(".txt")
            text = txt_path.read_text(encoding="utf-8", errors="replace").strip() if txt_path.exists() else ""

        if text:
            logger.warning("No timestamped output from whisper; using plain transcript")
            return [TranscriptSegment(start=0.0, end=0.0, text=text)]
        return []


def _load_whisper_model(model: str):
    import whisper

    return whisper.load_model(model)


class WhisperRecognizer:
    """In-process recognizer backed by the ``openai-whisper`` package.

    ``model_path`` may be a checkpoint file or one of Whisper's model names,
    in which case the library manages its own download cache.
    """

    def __init__(self, language: str | None = None) -> None:
        self.language = language

    def recognize(
        self,
        audio_path: Path,
        model_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> list[TranscriptSegment]:
        try:
            model = _load_whisper_model(str(model_path))
            result = model.transcribe(str(audio_path), language=self.language)
        except (RuntimeError, OSError, ValueError) as e:
            raise TranscriptionFailed(f"whisper failed: {e}") from e

        segments: list[TranscriptSegment] = []
        for seg in result["segments"]:
            text = seg["text"].strip()
            if text:
                segments.append(TranscriptSegment(start=seg["start"], end=seg["end"], text=text))

        if on_progress:
            on_progress(1.0)
        return segments


def transcribe(
    input_path: Path,
    model_path: Path,
    recognizer: Recognizer | None = None,
    duration: float = 0.0,
    on_progress: ProgressCallback | None = None,
    sample_rate: int = 16000,
    check_model: bool = True,
) -> list[TranscriptSegment]:
    """Extract audio, run the recognizer, and return timed transcript segments.

    Progress runs 0-0.5 for audio extraction and 0.5-1.0 for recognition.
    The model is checked before anything is spawned.
    """
    if check_model and not model_exists(model_path):
        raise ModelMissing(f"whisper model not found at {model_path}")

    recognizer = recognizer or WhisperCliRecognizer()

    def _scaled(base: float, span: float) -> ProgressCallback | None:
        if on_progress is None:
            return None
        return lambda frac: on_progress(base + frac * span)

    with tempfile.TemporaryDirectory(prefix="reelnotes-audio-") as tmpdir:
        wav_path = Path(tmpdir) / "audio.wav"
        ffutil.extract_audio(
            input_path,
            wav_path,
            sample_rate=sample_rate,
            duration=duration,
            on_progress=_scaled(0.0, 0.5),
        )
        segments = recognizer.recognize(wav_path, model_path, on_progress=_scaled(0.5, 0.5))

    logger.info("Transcribed %d segments", len(segments))
    return segments

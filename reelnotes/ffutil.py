"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import shutil
import subprocess
import threading
from pathlib import Path
from typing import IO, Callable

from reelnotes.errors import ExtractionFailed, FFmpegNotFoundError
from reelnotes.models import ProbeResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
LineCallback = Callable[[str], None]

PROGRESS_KEY = "out_time_us"


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe(input_path: Path) -> ProbeResult:
    """Extract duration and stream presence via ffprobe.

    A container that reports no duration (some raw streams) yields 0.0, which
    the rest of the pipeline treats as "unknown".
    """
    cmd = [
        "ffprobe",
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    logger.debug("Running %s", " ".join(cmd))
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)

    streams = data.get("streams", [])
    try:
        duration = float(data.get("format", {}).get("duration", 0.0))
    except ValueError:
        duration = 0.0

    return ProbeResult(
        duration=max(duration, 0.0),
        has_video=any(s.get("codec_type") == "video" for s in streams),
        has_audio=any(s.get("codec_type") == "audio" for s in streams),
    )


def parse_progress_line(line: str, duration: float) -> float | None:
    """Convert one ``-progress`` key=value line into a completion fraction.

    Returns None for any key other than ``out_time_us``, for values ffmpeg
    has not computed yet (``N/A``), and when the duration is unknown.
    """
    key, sep, value = line.strip().partition("=")
    if not sep or key != PROGRESS_KEY or duration <= 0:
        return None
    try:
        elapsed_us = int(value)
    except ValueError:
        return None
    return min(max(elapsed_us / 1_000_000 / duration, 0.0), 1.0)


def progress_reader(
    duration: float, on_progress: ProgressCallback | None
) -> LineCallback | None:
    """Return a line callback feeding ``on_progress``, or None to skip parsing."""
    if on_progress is None or duration <= 0:
        return None

    def on_line(line: str) -> None:
        frac = parse_progress_line(line, duration)
        if frac is not None:
            on_progress(frac)

    return on_line


def _drain(stream: IO[str], sink: list[str], callback: LineCallback | None) -> None:
    with stream:
        for line in stream:
            sink.append(line)
            if callback is not None:
                callback(line.rstrip("\n"))


def run_streaming(
    cmd: list[str],
    on_stdout: LineCallback | None = None,
    on_stderr: LineCallback | None = None,
) -> subprocess.CompletedProcess:
    """Run ``cmd`` while background threads drain both pipes line by line.

    Each pipe has exactly one reader thread, which is the only caller of its
    callback. The calling thread just waits for the process to exit and then
    for the readers to finish, so the returned CompletedProcess carries the
    complete output.
    """
    logger.debug("Running %s", " ".join(cmd))
    proc = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
        bufsize=1,
    )
    stdout_lines: list[str] = []
    stderr_lines: list[str] = []
    readers = [
        threading.Thread(target=_drain, args=(proc.stdout, stdout_lines, on_stdout), daemon=True),
        threading.Thread(target=_drain, args=(proc.stderr, stderr_lines, on_stderr), daemon=True),
    ]
    for reader in readers:
        reader.start()

    returncode = proc.wait()
    for reader in readers:
        reader.join()

    return subprocess.CompletedProcess(
        cmd, returncode, "".join(stdout_lines), "".join(stderr_lines)
    )


def _tail(text: str, limit: int = 500) -> str:
    text = text.strip()
    return text[-limit:] if text else "no output"


def _run_ffmpeg(cmd: list[str], stage: str, duration: float, on_progress) -> None:
    try:
        result = run_streaming(cmd, on_stdout=progress_reader(duration, on_progress))
    except FileNotFoundError as e:
        raise FFmpegNotFoundError("ffmpeg not found on PATH") from e

    if result.returncode != 0:
        raise ExtractionFailed(
            f"ffmpeg {stage} extraction failed (rc={result.returncode}): {_tail(result.stderr)}",
            stage=stage,
        )


def extract_frames(
    input_path: Path,
    output_dir: Path,
    duration: float = 0.0,
    on_progress: ProgressCallback | None = None,
) -> None:
    """Decode one PNG per second of input into ``output_dir/%04d.png``."""
    cmd = [
        "ffmpeg",
        "-i", str(input_path),
        "-vf", "fps=1",
        "-q:v", "2",
        "-loglevel", "error",
        "-progress", "pipe:1",
        "-nostats",
        str(output_dir / "%04d.png"),
    ]
    _run_ffmpeg(cmd, "frames", duration, on_progress)


def extract_audio(
    input_path: Path,
    output_path: Path,
    sample_rate: int = 16000,
    duration: float = 0.0,
    on_progress: ProgressCallback | None = None,
) -> Path:
    """Extract audio as mono 16-bit PCM WAV at the given sample rate (for Whisper)."""
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-vn",
        "-acodec", "pcm_s16le",
        "-ar", str(sample_rate),
        "-ac", "1",
        "-loglevel", "error",
        "-progress", "pipe:1",
        "-nostats",
        str(output_path),
    ]
    _run_ffmpeg(cmd, "audio", duration, on_progress)
    return output_path

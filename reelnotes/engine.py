"""Orchestrator — runs the analysis pipeline defined by a Manifest."""

import logging
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

from reelnotes import ffutil, modelstore
from reelnotes.analyzers.keyframes import select_keyframes
from reelnotes.analyzers.sampler import sample_frames
from reelnotes.analyzers.transcribe import (
    Recognizer,
    WhisperCliRecognizer,
    WhisperRecognizer,
    transcribe,
)
from reelnotes.editors.frames import materialize_keyframes
from reelnotes.editors.report import build_report, write_report
from reelnotes.errors import InputNotFound, ModelMissing, ReelnotesError
from reelnotes.manifest import AnalysisManifest, TranscriptConfig
from reelnotes.models import (
    AnalysisReport,
    Keyframe,
    ProbeResult,
    SourceMedia,
    TranscriptSegment,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class EngineResult:
    report_path: Path
    report: AnalysisReport | None = None
    frames_dir: Path | None = None
    duration: float = 0.0
    total_frames: int = 0
    keyframes: list[Keyframe] = field(default_factory=list)
    transcript_segments: list[TranscriptSegment] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


def build_recognizer(config: TranscriptConfig) -> Recognizer:
    if config.backend == "whisper":
        return WhisperRecognizer(language=config.language)
    return WhisperCliRecognizer(language=config.language)


def process(
    manifest: AnalysisManifest,
    on_progress: Callable[[str, float], None] | None = None,
) -> EngineResult:
    """Execute the full analysis pipeline.

    Args:
        manifest: Validated analysis manifest.
        on_progress: Optional callback(stage_name, fraction_complete). The
            fraction is per stage; with ``manifest.parallel`` it may be called
            from two worker threads, but never concurrently.
    """
    lock = threading.Lock()

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            with lock:
                on_progress(stage, frac)

    def _stage(stage: str) -> Callable[[float], None]:
        return lambda frac: _progress(stage, frac)

    if not manifest.input.is_file():
        raise InputNotFound(f"input file does not exist: {manifest.input}")

    ffutil.check_ffmpeg()

    _progress("Probing media", 0.0)
    try:
        probe_result = ffutil.probe(manifest.input)
    except (subprocess.CalledProcessError, ValueError) as e:
        logger.warning("Could not probe %s: %s", manifest.input, e)
        probe_result = ProbeResult(duration=0.0, has_video=True, has_audio=True)
    source = SourceMedia(path=manifest.input, duration=probe_result.duration)
    _progress("Probing media", 1.0)
    logger.info("Processing %s (duration %.1fs)", source.path.name, source.duration)

    result = EngineResult(report_path=manifest.report_path, duration=source.duration)

    # --- Visual branch: sample -> select -> materialize ---
    def visual_branch() -> tuple[int, list[Keyframe]]:
        if not probe_result.has_video:
            logger.warning("No video stream in %s; skipping frames", source.path.name)
            return 0, []

        cfg = manifest.frames
        batch = sample_frames(source.path, source.duration, on_progress=_stage("Extracting frames"))
        with batch:
            _progress(f"Extracted {len(batch)} frames", 1.0)
            keyframes = select_keyframes(
                batch.frames, cfg.threshold, on_progress=_stage("Detecting keyframes")
            )
            _progress(f"Found {len(keyframes)} keyframes", 1.0)
            saved = materialize_keyframes(
                keyframes,
                manifest.frames_dir,
                quality=cfg.quality,
                scale=cfg.scale,
                on_progress=_stage("Saving keyframes"),
                overwrite=cfg.overwrite,
            )
        return len(batch), saved

    # --- Audio branch: model -> extract -> recognize ---
    def audio_branch() -> list[TranscriptSegment]:
        if not probe_result.has_audio:
            logger.warning("No audio stream in %s; skipping transcript", source.path.name)
            return []

        cfg = manifest.transcript
        model_path = manifest.resolved_model_path
        uses_model_file = cfg.backend == "whisper-cli" or cfg.model_path is not None

        if cfg.backend == "whisper-cli" and not modelstore.model_exists(model_path):
            if not cfg.auto_download:
                raise ModelMissing(f"whisper model not found at {model_path}")
            modelstore.download_model(
                model_path,
                url=modelstore.model_url(cfg.model),
                on_progress=_stage("Downloading whisper model"),
            )

        segments = transcribe(
            source.path,
            model_path,
            recognizer=build_recognizer(cfg),
            duration=source.duration,
            on_progress=_stage("Transcribing"),
            sample_rate=cfg.sample_rate,
            check_model=uses_model_file,
        )
        _progress(f"Transcribed {len(segments)} segments", 1.0)
        return segments

    def _guarded(name: str, branch: Callable[[], T], fallback: T) -> Callable[[], T]:
        def run() -> T:
            try:
                return branch()
            except ReelnotesError as e:
                logger.error("%s failed: %s", name.capitalize(), e)
                if not manifest.allow_partial:
                    raise
                result.errors[name] = str(e)
                return fallback
        return run

    run_visual = _guarded("frames", visual_branch, (0, []))
    run_audio = _guarded("transcript", audio_branch, [])

    if manifest.parallel and manifest.frames.enabled and manifest.transcript.enabled:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="reelnotes") as pool:
            visual_future = pool.submit(run_visual)
            audio_future = pool.submit(run_audio)
            total_frames, keyframes = visual_future.result()
            segments = audio_future.result()
    else:
        total_frames, keyframes = run_visual() if manifest.frames.enabled else (0, [])
        segments = run_audio() if manifest.transcript.enabled else []

    # --- Report ---
    _progress("Generating markdown", 0.0)
    report = build_report(source.path, source.duration, total_frames, keyframes, segments)
    write_report(report, manifest.report_path)
    _progress("Generating markdown", 1.0)
    logger.info("Wrote %s (~%d tokens)", manifest.report_path, report.token_estimate)

    result.report = report
    result.total_frames = total_frames
    result.keyframes = list(keyframes)
    result.transcript_segments = list(segments)
    result.frames_dir = manifest.frames_dir if keyframes else None
    return result

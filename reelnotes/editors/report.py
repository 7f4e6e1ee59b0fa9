"""Report editor — merges keyframes and transcript into a markdown document."""

import os
from pathlib import Path
from typing import Callable, Sequence

from reelnotes.errors import WriteFailed
from reelnotes.models import AnalysisReport, Keyframe, TranscriptSegment

# Advisory token costs for the consuming model
METADATA_TOKENS = 100
TOKENS_PER_WORD = 1.3
TOKENS_PER_IMAGE = 1000


def format_timestamp(seconds: float) -> str:
    """Format seconds as M:SS, or H:MM:SS from one hour up."""
    # Halves round up
    total = int(max(seconds, 0.0) + 0.5)
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def estimate_tokens(segments: Sequence[TranscriptSegment], keyframe_count: int) -> int:
    tokens = METADATA_TOKENS
    for seg in segments:
        tokens += int(len(seg.text.split()) * TOKENS_PER_WORD)
    tokens += keyframe_count * TOKENS_PER_IMAGE
    return tokens


def build_report(
    source: Path,
    duration: float,
    total_frames: int,
    keyframes: Sequence[Keyframe],
    segments: Sequence[TranscriptSegment],
) -> AnalysisReport:
    return AnalysisReport(
        source_name=Path(source).name,
        duration=duration,
        total_frames=total_frames,
        keyframes=tuple(keyframes),
        segments=tuple(segments),
        token_estimate=estimate_tokens(segments, len(keyframes)),
    )


def _relative(path: Path, base_dir: Path) -> str:
    try:
        return Path(os.path.relpath(path, base_dir)).as_posix()
    except ValueError:
        # Different drive on Windows
        return Path(path).as_posix()


def render_markdown(
    report: AnalysisReport,
    base_dir: Path,
    link_for: Callable[[Keyframe], str] | None = None,
) -> str:
    """Render the report.

    Image links are relative to ``base_dir`` unless ``link_for`` maps each
    keyframe to its own link.
    """
    lines: list[str] = [
        f"# Video Analysis: {report.source_name}",
        "",
        "## Metadata",
        f"- Duration: {format_timestamp(report.duration)}",
        f"- Original frames: {report.total_frames}",
        f"- Keyframes extracted: {len(report.keyframes)}",
        f"- Token estimate: ~{report.token_estimate}",
        "",
    ]

    if report.segments:
        lines += ["## Transcript", ""]
        for seg in report.segments:
            lines.append(f"[{format_timestamp(seg.start)}] {seg.text.strip()}")
        lines.append("")

    if report.keyframes:
        lines += ["## Keyframes", ""]
        for kf in report.keyframes:
            ts = format_timestamp(kf.timestamp)
            lines.append(f"### Frame {kf.index} ({ts})")
            link = link_for(kf) if link_for else _relative(kf.path, base_dir)
            lines.append(f"![Frame at {ts}]({link})")
            lines.append("")

    return "\n".join(lines)


def write_report(report: AnalysisReport, output_path: Path) -> Path:
    """Write the markdown report next to its frames directory."""
    content = render_markdown(report, output_path.parent)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise WriteFailed(f"failed to write report {output_path}: {e}") from e
    return output_path

"""Tests for report assembly and markdown rendering."""

from pathlib import Path

import pytest

from reelnotes.editors.report import (
    build_report,
    estimate_tokens,
    format_timestamp,
    render_markdown,
    write_report,
)
from reelnotes.errors import WriteFailed
from reelnotes.models import Keyframe, TranscriptSegment


def _keyframes(base: Path, *indices: int) -> list[Keyframe]:
    return [
        Keyframe(index=i, timestamp=float(i - 1), path=base / "video_reelnotes_frames" / f"frame_{i:04d}.jpg")
        for i in indices
    ]


SEGMENTS = [
    TranscriptSegment(start=0.0, end=3.0, text="Hello, world."),
    TranscriptSegment(start=65.4, end=70.0, text="  One two three four five  "),
]


class TestFormatTimestamp:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "0:00"),
            (5, "0:05"),
            (65, "1:05"),
            (59.6, "1:00"),
            (0.5, "0:01"),
            (2.5, "0:03"),
            (2.4999, "0:02"),
            (3599, "59:59"),
            (3600, "1:00:00"),
            (3725, "1:02:05"),
            (36000, "10:00:00"),
        ],
    )
    def test_format(self, seconds, expected):
        assert format_timestamp(seconds) == expected


class TestEstimateTokens:
    def test_empty(self):
        assert estimate_tokens([], 0) == 100

    def test_words_and_images(self):
        # 2 words -> int(2.6) = 2; 5 words -> int(6.5) = 6
        assert estimate_tokens(SEGMENTS, 3) == 100 + 2 + 6 + 3000

    def test_monotonic_in_segments(self):
        segments: list[TranscriptSegment] = []
        previous = estimate_tokens(segments, 2)
        for i in range(1, 20):
            segments.append(TranscriptSegment(start=float(i), end=float(i), text="word " * (i % 4)))
            current = estimate_tokens(segments, 2)
            assert current >= previous
            previous = current

    def test_monotonic_in_keyframes(self):
        values = [estimate_tokens(SEGMENTS, n) for n in range(10)]
        assert values == sorted(values)


class TestBuildReport:
    def test_fields(self, tmp_path):
        kfs = _keyframes(tmp_path, 1, 4)
        report = build_report(tmp_path / "video.mp4", 12.0, 12, kfs, SEGMENTS)
        assert report.source_name == "video.mp4"
        assert report.duration == 12.0
        assert report.total_frames == 12
        assert report.keyframes == tuple(kfs)
        assert report.segments == tuple(SEGMENTS)
        assert report.token_estimate == estimate_tokens(SEGMENTS, 2)

    def test_pure(self, tmp_path):
        kfs = _keyframes(tmp_path, 1)
        a = build_report(Path("v.mp4"), 1.0, 1, kfs, SEGMENTS)
        b = build_report(Path("v.mp4"), 1.0, 1, kfs, SEGMENTS)
        assert a == b


class TestRenderMarkdown:
    def test_full_document(self, tmp_path):
        report = build_report(tmp_path / "video.mp4", 125.0, 125, _keyframes(tmp_path, 1, 66), SEGMENTS)
        md = render_markdown(report, tmp_path)

        assert md.startswith("# Video Analysis: video.mp4\n")
        assert "## Metadata" in md
        assert "- Duration: 2:05" in md
        assert "- Original frames: 125" in md
        assert "- Keyframes extracted: 2" in md
        assert f"- Token estimate: ~{report.token_estimate}" in md
        assert "[0:00] Hello, world." in md
        assert "[1:05] One two three four five" in md
        assert "### Frame 66 (1:05)" in md
        assert "![Frame at 1:05](video_reelnotes_frames/frame_0066.jpg)" in md

    def test_transcript_before_keyframes(self, tmp_path):
        report = build_report(Path("v.mp4"), 10.0, 10, _keyframes(tmp_path, 1), SEGMENTS)
        md = render_markdown(report, tmp_path)
        assert md.index("## Metadata") < md.index("## Transcript") < md.index("## Keyframes")

    def test_keyframes_only_omits_transcript(self, tmp_path):
        report = build_report(Path("v.mp4"), 10.0, 10, _keyframes(tmp_path, 1, 10), [])
        md = render_markdown(report, tmp_path)
        assert "## Keyframes" in md
        assert "## Transcript" not in md
        assert md.count("### Frame") == 2

    def test_transcript_only_omits_keyframes(self, tmp_path):
        report = build_report(Path("talk.mp3"), 10.0, 0, [], SEGMENTS)
        md = render_markdown(report, tmp_path)
        assert "## Transcript" in md
        assert "## Keyframes" not in md

    def test_long_video_timestamps(self, tmp_path):
        segs = [TranscriptSegment(start=3725.0, end=3730.0, text="Late remark.")]
        report = build_report(Path("v.mp4"), 4000.0, 0, [], segs)
        md = render_markdown(report, tmp_path)
        assert "- Duration: 1:06:40" in md
        assert "[1:02:05] Late remark." in md

    def test_relative_path_from_other_directory(self, tmp_path):
        report = build_report(Path("v.mp4"), 1.0, 1, _keyframes(tmp_path, 1), [])
        md = render_markdown(report, tmp_path / "docs")
        assert "](../video_reelnotes_frames/frame_0001.jpg)" in md

    def test_custom_image_links(self, tmp_path):
        report = build_report(Path("v.mp4"), 3.0, 3, _keyframes(tmp_path, 1, 3), [])
        md = render_markdown(report, tmp_path, link_for=lambda kf: f"/frames/{kf.index}")
        assert "![Frame at 0:00](/frames/1)" in md
        assert "![Frame at 0:02](/frames/3)" in md


class TestWriteReport:
    def test_writes_file(self, tmp_path):
        report = build_report(Path("v.mp4"), 3.0, 3, _keyframes(tmp_path, 1, 3), [])
        out = tmp_path / "v_reelnotes.md"
        assert write_report(report, out) == out
        assert out.read_text(encoding="utf-8") == render_markdown(report, tmp_path)

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        report = build_report(Path("v.mp4"), 0.0, 0, [], [])
        with pytest.raises(WriteFailed):
            write_report(report, blocker / "report.md")

"""Tests for the keyframe selector."""

from pathlib import Path

import numpy as np
import pytest

from conftest import horizontal_gradient, solid, vertical_gradient
from reelnotes.analyzers.keyframes import select_keyframes
from reelnotes.analyzers.similarity import intensity_vector, similarity
from reelnotes.errors import EncodingFailed
from reelnotes.models import Keyframe, SampledFrame


def _fake_frames(vectors: list[np.ndarray]):
    """Frames with fake paths plus a vectorize function that looks them up."""
    frames = [
        SampledFrame(index=i, timestamp=float(i - 1), path=Path(f"{i:04d}.png"))
        for i in range(1, len(vectors) + 1)
    ]
    lookup = {f.path: v for f, v in zip(frames, vectors)}
    return frames, lookup.__getitem__


class TestSelectKeyframesBoundaries:
    def test_no_frames(self):
        assert select_keyframes([], 0.85) == []

    def test_single_frame(self):
        frame = SampledFrame(index=1, timestamp=0.0, path=Path("0001.png"))
        calls = []
        result = select_keyframes([frame], 0.85, on_progress=calls.append)
        assert result == [Keyframe.from_frame(frame)]
        assert calls == [1.0]

    def test_single_frame_is_not_decoded(self):
        frame = SampledFrame(index=1, timestamp=0.0, path=Path("missing.png"))
        assert len(select_keyframes([frame], 0.85)) == 1

    @pytest.mark.parametrize("n", [2, 5, 10])
    def test_first_and_last_always_present(self, n):
        rng = np.random.default_rng(n)
        base = rng.random(100)
        frames, vectorize = _fake_frames([base] * n)
        result = select_keyframes(frames, 0.85, vectorize=vectorize)
        assert [k.index for k in result] == [1, n]


class TestSelectKeyframesScenarios:
    def test_three_identical_frames(self, write_frames):
        frames = write_frames([horizontal_gradient()] * 3)
        result = select_keyframes(frames, 0.85)
        assert [k.index for k in result] == [1, 3]
        assert similarity(
            intensity_vector(frames[0].path), intensity_vector(frames[1].path)
        ) == pytest.approx(1.0)

    def test_solid_colors_count_as_identical(self, write_frames):
        frames = write_frames([solid((255, 0, 0)), solid((0, 255, 0)), solid((0, 0, 255))])
        result = select_keyframes(frames, 0.85)
        assert [k.index for k in result] == [1, 3]

    def test_scene_changes_detected(self, write_frames):
        h, v = horizontal_gradient(), vertical_gradient()
        frames = write_frames([h, h, v, v, h])
        result = select_keyframes(frames, 0.85)
        assert [k.index for k in result] == [1, 3, 5]
        assert [k.timestamp for k in result] == [0.0, 2.0, 4.0]

    def test_last_frame_not_duplicated(self, write_frames):
        h, v = horizontal_gradient(), vertical_gradient()
        frames = write_frames([h, v])
        result = select_keyframes(frames, 0.85)
        assert [k.index for k in result] == [1, 2]

    def test_compares_against_previous_frame_not_keyframe(self):
        # Each step is small, but the drift from frame 1 to frame 6 is large
        rng = np.random.default_rng(1)
        start, end = rng.random(500), rng.random(500)
        vectors = [start + (end - start) * t for t in np.linspace(0, 1, 6)]
        frames, vectorize = _fake_frames(vectors)
        assert similarity(vectors[0], vectors[-1]) < 0.5
        result = select_keyframes(frames, 0.5, vectorize=vectorize)
        assert [k.index for k in result] == [1, 6]

    def test_keyframes_keep_scratch_paths(self, write_frames):
        frames = write_frames([horizontal_gradient(), vertical_gradient()])
        result = select_keyframes(frames, 0.85)
        assert [k.path for k in result] == [f.path for f in frames]


class TestSelectKeyframesProperties:
    def test_threshold_monotonicity(self):
        rng = np.random.default_rng(42)
        base = rng.random(400)
        vectors = [base + rng.normal(0, amp, 400) for amp in rng.uniform(0, 1.5, 30)]
        frames, vectorize = _fake_frames(vectors)

        counts = [
            len(select_keyframes(frames, t, vectorize=vectorize))
            for t in (0.05, 0.2, 0.4, 0.6, 0.8, 0.9, 0.99)
        ]
        assert counts == sorted(counts)

    def test_extreme_thresholds(self):
        rng = np.random.default_rng(3)
        frames, vectorize = _fake_frames([rng.random(50) for _ in range(8)])
        assert len(select_keyframes(frames, 1.5, vectorize=vectorize)) == 8
        assert [k.index for k in select_keyframes(frames, -1.5, vectorize=vectorize)] == [1, 8]

    def test_indices_strictly_increasing(self):
        rng = np.random.default_rng(5)
        frames, vectorize = _fake_frames([rng.random(50) for _ in range(20)])
        indices = [k.index for k in select_keyframes(frames, 0.3, vectorize=vectorize)]
        assert all(a < b for a, b in zip(indices, indices[1:]))

    def test_each_frame_vectorized_once(self):
        rng = np.random.default_rng(9)
        frames, lookup = _fake_frames([rng.random(50) for _ in range(6)])
        seen: list[Path] = []

        def vectorize(path):
            seen.append(path)
            return lookup(path)

        select_keyframes(frames, 0.85, vectorize=vectorize)
        assert seen == [f.path for f in frames]

    def test_progress_reaches_one(self):
        rng = np.random.default_rng(11)
        frames, vectorize = _fake_frames([rng.random(10) for _ in range(5)])
        calls: list[float] = []
        select_keyframes(frames, 0.85, on_progress=calls.append, vectorize=vectorize)
        assert calls == [0.25, 0.5, 0.75, 1.0]


class TestSelectKeyframesErrors:
    def test_bad_frame_names_ordinal(self, write_frames):
        frames = write_frames([horizontal_gradient()] * 3)
        frames[1].path.write_bytes(b"garbage")
        with pytest.raises(EncodingFailed) as exc:
            select_keyframes(frames, 0.85)
        assert exc.value.ordinal == 2
        assert "frame 2" in str(exc.value)

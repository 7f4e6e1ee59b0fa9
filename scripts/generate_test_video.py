#!/usr/bin/env python3
"""Generate a synthetic test video for reelnotes pipeline testing.

Produces a ~12-second video with three visually distinct, textured scenes
(solid colors have no variance and would never register as a change):
  0-4s   SMPTE bars     + 440 Hz tone
  4-8s   test pattern   + 660 Hz tone
  8-12s  mandelbrot     + 880 Hz tone

With the default 0.85 threshold this should yield keyframes at 0s, 4s, 8s
and the final frame.
"""

import subprocess
import sys
from pathlib import Path


def generate_test_video(output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)

    audio_filter = (
        "sine=f=440:d=4[a0];"
        "sine=f=660:d=4[a1];"
        "sine=f=880:d=4[a2];"
        "[a0][a1][a2]concat=n=3:v=0:a=1[aout]"
    )

    video_filter = (
        "smptebars=s=320x240:d=4:r=30[v0];"
        "testsrc=s=320x240:d=4:r=30[v1];"
        "mandelbrot=s=320x240:r=30,trim=duration=4[v2];"
        "[v0][v1][v2]concat=n=3:v=1:a=0[vout]"
    )

    filter_complex = audio_filter + ";" + video_filter

    cmd = [
        "ffmpeg", "-y",
        "-filter_complex", filter_complex,
        "-map", "[vout]",
        "-map", "[aout]",
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-shortest",
        str(output),
    ]
    subprocess.run(cmd, check=True)
    print(f"Generated: {output}")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/synthetic.mp4")
    generate_test_video(out)

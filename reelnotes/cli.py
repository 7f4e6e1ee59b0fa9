"""Thin CLI entry point — builds a Manifest and calls the engine."""

import argparse
import logging
import sys
from pathlib import Path

from reelnotes.engine import process
from reelnotes.errors import ReelnotesError
from reelnotes.manifest import (
    BACKENDS,
    AnalysisManifest,
    FrameConfig,
    TranscriptConfig,
    load_manifest,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reelnotes",
        description="reelnotes — turn a video or audio file into markdown with a transcript and keyframes.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    an = sub.add_parser("analyze", help="Analyze a video or audio file")
    an.add_argument("video", nargs="?", type=Path, help="Input video or audio file")
    an.add_argument("--manifest", type=Path, help="Path to a JSON manifest file")
    an.add_argument("--output", "-o", type=Path, help="Output file path (default: <input>_reelnotes.md)")
    an.add_argument("--threshold", "-t", type=float, default=0.85, help="Frame similarity threshold 0.0-1.0")
    an.add_argument("--quality", "-q", type=int, default=30, help="JPEG quality 1-100")
    an.add_argument("--scale", "-s", type=float, default=0.5, help="Frame scale factor")
    an.add_argument("--model-path", "-m", type=Path, help="Whisper model path")
    an.add_argument("--model", type=str, default="base", help="Whisper model name")
    an.add_argument("--backend", choices=BACKENDS, default="whisper-cli", help="Speech recognizer")
    an.add_argument("--language", type=str, help="Spoken language (default: auto)")
    an.add_argument("--no-transcript", action="store_true", help="Skip audio transcription")
    an.add_argument("--no-frames", action="store_true", help="Skip frame extraction (audio only)")
    an.add_argument("--parallel", action="store_true", help="Run frame and audio branches concurrently")
    an.add_argument("--allow-partial", action="store_true", help="Write a report even if one branch fails")

    serve = sub.add_parser("serve", help="Launch the web UI")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    serve.add_argument("--work-dir", type=Path, help="Directory for uploads and results (default: a temp dir)")
    serve.add_argument("--max-jobs", type=int, default=8, help="Jobs kept before the oldest idle one is discarded")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from reelnotes.web import create_app
        app = create_app(work_dir=args.work_dir, max_jobs=args.max_jobs)
        print(f"reelnotes web UI: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    try:
        if args.manifest:
            m = load_manifest(args.manifest)
        elif args.video:
            m = AnalysisManifest(
                input=args.video,
                output=args.output,
                frames=FrameConfig(
                    enabled=not args.no_frames,
                    threshold=args.threshold,
                    quality=args.quality,
                    scale=args.scale,
                ),
                transcript=TranscriptConfig(
                    enabled=not args.no_transcript,
                    backend=args.backend,
                    model=args.model,
                    model_path=args.model_path,
                    language=args.language,
                ),
                parallel=args.parallel,
                allow_partial=args.allow_partial,
            ).validate()
        else:
            print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
            sys.exit(1)
    except (TypeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:4.0%}] {stage}", file=sys.stderr)

    try:
        result = process(m, on_progress=on_progress)
    except ReelnotesError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.report_path}")
    if result.frames_dir:
        print(f"  Frames: {result.frames_dir}/")
    for stage, message in result.errors.items():
        print(f"  Skipped {stage}: {message}")
    if result.report:
        print(f"  Estimated tokens: ~{result.report.token_estimate}")

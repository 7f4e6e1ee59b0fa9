"""Web UI routes: upload a file, analyze it in the background, read the report."""

import json
import logging
import queue
import threading
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    abort,
    current_app,
    jsonify,
    render_template,
    request,
    send_from_directory,
    stream_with_context,
    url_for,
)

from reelnotes.editors.report import format_timestamp, render_markdown
from reelnotes.engine import process
from reelnotes.errors import ReelnotesError
from reelnotes.manifest import AnalysisManifest, FrameConfig, TranscriptConfig
from reelnotes.web import JOBS_EXTENSION
from reelnotes.web.jobs import DONE, FAILED, PROCESSING, Job, JobLimitReached, JobStore

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__, template_folder="templates")

# Seconds an event stream waits for the next progress message
EVENT_TIMEOUT = 120


def _store() -> JobStore:
    return current_app.extensions[JOBS_EXTENSION]


def _job_or_404(job_id: str) -> Job:
    job = _store().get(job_id)
    if job is None:
        abort(404, description="Job not found")
    return job


def _frame_url(job: Job, name: str) -> str:
    return url_for("web.frame_image", job_id=job.id, name=name)


def _summary(job: Job) -> dict:
    data = {"job_id": job.id, "filename": job.filename, "status": job.status}
    if job.error:
        data["error"] = job.error

    result = job.result
    if job.status == DONE and result is not None and result.report is not None:
        data["result"] = {
            "duration": format_timestamp(result.duration),
            "total_frames": result.total_frames,
            "segments": len(result.transcript_segments),
            "token_estimate": result.report.token_estimate,
            "errors": result.errors,
            "report_url": url_for("web.report", job_id=job.id),
            "keyframes": [
                {
                    "index": kf.index,
                    "timestamp": format_timestamp(kf.timestamp),
                    "url": _frame_url(job, kf.path.name),
                }
                for kf in result.keyframes
            ],
        }
    return data


def _manifest_for(job: Job, options: dict) -> AnalysisManifest:
    frames = options.get("frames", {})
    transcript = options.get("transcript", {})
    return AnalysisManifest(
        input=job.input_path,
        output=job.report_path,
        frames=FrameConfig(
            enabled=bool(frames.get("enabled", True)),
            threshold=float(frames.get("threshold", 0.85)),
            quality=int(frames.get("quality", 30)),
            scale=float(frames.get("scale", 0.5)),
        ),
        transcript=TranscriptConfig(
            enabled=bool(transcript.get("enabled", True)),
            backend=transcript.get("backend", "whisper-cli"),
            model=transcript.get("model", "base"),
            language=transcript.get("language") or None,
        ),
        parallel=bool(options.get("parallel", False)),
        # A failed branch still leaves something to show in the browser
        allow_partial=bool(options.get("allow_partial", True)),
    ).validate()


def _run_job(job: Job, manifest: AnalysisManifest, events: queue.Queue) -> None:
    def on_progress(stage: str, frac: float) -> None:
        events.put({"stage": stage, "progress": round(frac, 3)})

    try:
        job.result = process(manifest, on_progress=on_progress)
        job.status = DONE
        logger.info("Job %s finished: %s", job.id, job.result.report_path)
    except ReelnotesError as e:
        logger.error("Job %s failed: %s", job.id, e)
        job.error, job.status = str(e), FAILED
    except Exception as e:
        logger.exception("Job %s crashed", job.id)
        job.error, job.status = str(e), FAILED
    finally:
        events.put(None)


@bp.route("/")
def index():
    return render_template("index.html")


@bp.route("/api/jobs", methods=["POST"])
def create_job():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"error": "No file provided"}), 400

    try:
        job = _store().create(upload.filename)
    except JobLimitReached as e:
        return jsonify({"error": str(e)}), 503

    upload.save(job.input_path)
    logger.info("Job %s: received %s", job.id, job.filename)
    return jsonify(_summary(job)), 201


@bp.route("/api/jobs/<job_id>", methods=["GET"])
def job_status(job_id: str):
    return jsonify(_summary(_job_or_404(job_id)))


@bp.route("/api/jobs/<job_id>", methods=["DELETE"])
def delete_job(job_id: str):
    _job_or_404(job_id)
    if not _store().release(job_id):
        return jsonify({"error": "Job is still processing"}), 409
    return "", 204


@bp.route("/api/jobs/<job_id>/analyze", methods=["POST"])
def analyze(job_id: str):
    job = _job_or_404(job_id)
    if job.busy:
        return jsonify({"error": "Job is already processing"}), 409

    try:
        manifest = _manifest_for(job, request.get_json(silent=True) or {})
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    events: queue.Queue = queue.Queue()
    job.events, job.status, job.error, job.result = events, PROCESSING, None, None
    threading.Thread(target=_run_job, args=(job, manifest, events), daemon=True).start()
    return jsonify(_summary(job)), 202


@bp.route("/api/jobs/<job_id>/events")
def job_events(job_id: str):
    job = _job_or_404(job_id)
    events = job.events
    if events is None:
        return jsonify({"error": "Job has not been analyzed"}), 409

    def stream():
        while True:
            try:
                message = events.get(timeout=EVENT_TIMEOUT)
            except queue.Empty:
                yield f"data: {json.dumps({'error': 'timed out waiting for progress'})}\n\n"
                return
            if message is None:
                if job.status == FAILED:
                    message = {"error": job.error}
                else:
                    message = {"stage": "complete", "progress": 1.0, "job": _summary(job)}
                yield f"data: {json.dumps(message)}\n\n"
                return
            yield f"data: {json.dumps(message)}\n\n"

    return Response(stream_with_context(stream()), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/report.md")
def report(job_id: str):
    """The report with image links pointing at this server.

    ``?download=1`` returns the file as written, with links relative to it.
    """
    job = _job_or_404(job_id)
    if job.status != DONE or job.result is None or job.result.report is None:
        return jsonify({"error": "Report is not ready"}), 409

    if request.args.get("download"):
        name = f"{Path(job.filename).stem}_reelnotes.md"
        return send_from_directory(
            job.directory, job.report_path.name, mimetype="text/markdown",
            as_attachment=True, download_name=name,
        )

    markdown = render_markdown(
        job.result.report, job.directory, link_for=lambda kf: _frame_url(job, kf.path.name)
    )
    return Response(markdown, mimetype="text/markdown")


@bp.route("/api/jobs/<job_id>/frames/<name>")
def frame_image(job_id: str, name: str):
    job = _job_or_404(job_id)
    result = job.result
    if job.status != DONE or result is None or result.frames_dir is None:
        abort(404, description="Frame not found")
    if name not in {kf.path.name for kf in result.keyframes}:
        abort(404, description="Frame not found")
    return send_from_directory(result.frames_dir, name, mimetype="image/jpeg")

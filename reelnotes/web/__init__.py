"""Flask application factory for the reelnotes web UI."""

import tempfile
from pathlib import Path

from flask import Flask, jsonify

from reelnotes.web.jobs import DEFAULT_MAX_JOBS, JobStore

JOBS_EXTENSION = "reelnotes.jobs"


def create_app(work_dir: Path | None = None, max_jobs: int = DEFAULT_MAX_JOBS) -> Flask:
    """Build the app; each job gets a subdirectory of ``work_dir`` (a fresh temp dir by default)."""
    app = Flask(__name__)
    root = Path(work_dir) if work_dir else Path(tempfile.mkdtemp(prefix="reelnotes-web-"))
    app.config["MAX_CONTENT_LENGTH"] = 4 * 1024 * 1024 * 1024
    app.extensions[JOBS_EXTENSION] = JobStore(root, max_jobs=max_jobs)

    from reelnotes.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": error.description}), 404

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({"error": "Upload exceeds the size limit"}), 413

    return app

"""Location and one-time download of whisper.cpp ggml models."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable

import requests

from reelnotes.errors import DownloadFailed

logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIR = Path.home() / ".cache" / "whisper"
MODEL_BASE_URL = "https://huggingface.co/ggerganov/whisper.cpp/resolve/main"

# Used for progress when the server sends no Content-Length (ggml-base is ~148MB)
APPROX_MODEL_SIZE = 148_000_000
CHUNK_SIZE = 32 * 1024


def default_model_path(name: str = "base") -> Path:
    return DEFAULT_MODEL_DIR / f"ggml-{name}.bin"


def model_url(name: str = "base") -> str:
    return f"{MODEL_BASE_URL}/ggml-{name}.bin"


def model_exists(model_path: Path) -> bool:
    return Path(model_path).is_file()


def download_model(
    model_path: Path,
    url: str | None = None,
    on_progress: Callable[[float], None] | None = None,
    timeout: float = 60.0,
) -> Path:
    """Download a model to ``model_path``.

    The body is streamed into a temporary file in the same directory and
    renamed into place only once complete, so a reader never sees a partial
    model at ``model_path``.
    """
    model_path = Path(model_path)
    if url is None:
        url = model_url(model_path.stem.removeprefix("ggml-"))

    try:
        model_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DownloadFailed(f"failed to create model directory {model_path.parent}: {e}") from e

    logger.info("Downloading model %s -> %s", url, model_path)
    tmp_path: Path | None = None
    try:
        with requests.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            total = int(resp.headers.get("Content-Length") or 0) or APPROX_MODEL_SIZE

            with tempfile.NamedTemporaryFile(
                dir=model_path.parent, prefix="whisper-model-", suffix=".tmp", delete=False
            ) as tmp:
                tmp_path = Path(tmp.name)
                written = 0
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    tmp.write(chunk)
                    written += len(chunk)
                    if on_progress:
                        on_progress(min(written / total, 1.0))

        os.replace(tmp_path, model_path)
        tmp_path = None
    except requests.RequestException as e:
        raise DownloadFailed(f"failed to download model from {url}: {e}") from e
    except OSError as e:
        raise DownloadFailed(f"failed to write model to {model_path}: {e}") from e
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)

    logger.info("Model saved to %s", model_path)
    return model_path

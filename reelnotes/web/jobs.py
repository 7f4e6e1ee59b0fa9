"""In-memory registry of web analysis jobs and their working directories."""

import logging
import queue
import shutil
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path

from reelnotes.engine import EngineResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_JOBS = 8

UPLOADED = "uploaded"
PROCESSING = "processing"
DONE = "done"
FAILED = "error"


class JobLimitReached(Exception):
    pass


@dataclass
class Job:
    """One uploaded file, its analysis settings and outcome.

    Everything the job produces lives under ``directory``, so releasing the
    job is a single ``rmtree``.
    """

    id: str
    directory: Path
    filename: str
    status: str = UPLOADED
    error: str | None = None
    result: EngineResult | None = None
    events: queue.Queue | None = None

    @property
    def input_path(self) -> Path:
        return self.directory / f"input{Path(self.filename).suffix or '.mp4'}"

    @property
    def report_path(self) -> Path:
        return self.directory / "report.md"

    @property
    def busy(self) -> bool:
        return self.status == PROCESSING


class JobStore:
    """Bounded job registry.

    Creating a job past ``max_jobs`` first evicts the oldest idle jobs and
    deletes their directories. Jobs that are still processing are never
    evicted; if all of them are, creation fails with JobLimitReached.
    """

    def __init__(self, root: Path, max_jobs: int = DEFAULT_MAX_JOBS) -> None:
        if max_jobs < 1:
            raise ValueError(f"max_jobs must be at least 1, got {max_jobs}")
        self.root = Path(root)
        self.max_jobs = max_jobs
        self._jobs: OrderedDict[str, Job] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def create(self, filename: str) -> Job:
        with self._lock:
            while len(self._jobs) >= self.max_jobs:
                idle = next((job for job in self._jobs.values() if not job.busy), None)
                if idle is None:
                    raise JobLimitReached(f"all {self.max_jobs} job slots are processing")
                self._discard(idle)
                logger.info("Evicted job %s", idle.id)

            job_id = uuid.uuid4().hex[:12]
            job = Job(id=job_id, directory=self.root / job_id, filename=filename)
            job.directory.mkdir(parents=True, exist_ok=True)
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def release(self, job_id: str) -> bool:
        """Forget an idle job and delete its files. Returns False if it is busy or unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.busy:
                return False
            self._discard(job)
        logger.info("Released job %s", job_id)
        return True

    def _discard(self, job: Job) -> None:
        del self._jobs[job.id]
        shutil.rmtree(job.directory, ignore_errors=True)

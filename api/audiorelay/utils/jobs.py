import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple


@dataclass(frozen=True)
class Job:
    job_id: str
    download_url: str
    title: str = "audio"
    created_at: float = field(default_factory=time.monotonic)


class JobRegistry:
    """In-memory job store with a TTL and least-recently-used eviction.

    Entries are dropped once older than ``ttl_seconds`` or when more than
    ``max_entries`` are held.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._jobs: "OrderedDict[str, Tuple[float, Job]]" = OrderedDict()
        self._lock = threading.Lock()

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at > self.ttl_seconds

    def put(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.job_id] = (self._clock(), job)
            self._jobs.move_to_end(job.job_id)
            while len(self._jobs) > self.max_entries:
                self._jobs.popitem(last=False)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            entry = self._jobs.get(job_id)
            if entry is None:
                return None
            stored_at, job = entry
            if self._expired(stored_at, self._clock()):
                del self._jobs[job_id]
                return None
            self._jobs.move_to_end(job_id)
            return job

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [job_id for job_id, (stored_at, _) in self._jobs.items() if self._expired(stored_at, now)]
            for job_id in stale:
                del self._jobs[job_id]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

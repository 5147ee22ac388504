from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from audiorelay.errors import UpstreamError
from audiorelay.upstream import RotatingExecutor
from audiorelay.utils.jobs import JobRegistry


@dataclass(frozen=True)
class StartResult:
    job_id: str
    title: str
    download_url: Optional[str] = None


class UpstreamProvider(ABC):
    def __init__(self, executor: RotatingExecutor, timeout: float = 10.0, max_redirects: int = 10) -> None:
        self.executor = executor
        self.timeout = timeout
        self.max_redirects = max_redirects

    @abstractmethod
    def start(self, video_id: str) -> StartResult:
        ...

    @abstractmethod
    def status(self, job_id: str, registry: JobRegistry) -> Dict[str, Any]:
        ...


def json_payload(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamError("Upstream returned a non-JSON response") from exc
    if not isinstance(data, dict):
        raise UpstreamError("Upstream returned an unexpected payload")
    return data

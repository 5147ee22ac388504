from typing import Any, Dict

from audiorelay.errors import UpstreamError
from audiorelay.providers.base import StartResult, UpstreamProvider, json_payload
from audiorelay.schemas import StatusResponse
from audiorelay.upstream import RotatingExecutor, UpstreamRequestSpec
from audiorelay.utils.jobs import JobRegistry
from audiorelay.utils.text import DEFAULT_TITLE


READY_PROGRESS = 1000


class LinkProvider(UpstreamProvider):
    """Upstream answers ``/dl?id=<video id>`` with a ready download link.

    Jobs are keyed by the video id and status is served from the local registry.
    """

    def __init__(self, executor: RotatingExecutor, api_url: str, timeout: float = 10.0, max_redirects: int = 10) -> None:
        super().__init__(executor, timeout=timeout, max_redirects=max_redirects)
        self.api_url = api_url.rstrip("/")

    def start(self, video_id: str) -> StartResult:
        spec = UpstreamRequestSpec(
            url=f"{self.api_url}/dl",
            params={"id": video_id},
            timeout=self.timeout,
            max_redirects=self.max_redirects,
        )
        data = json_payload(self.executor.execute(spec))
        if str(data.get("status", "")).lower() == "fail":
            raise UpstreamError(data.get("msg") or "Upstream conversion failed")
        link = data.get("link")
        if not link:
            raise UpstreamError("Upstream response did not include a download link")
        return StartResult(job_id=video_id, title=data.get("title") or DEFAULT_TITLE, download_url=link)

    def status(self, job_id: str, registry: JobRegistry) -> Dict[str, Any]:
        job = registry.get(job_id)
        if job is None:
            return StatusResponse(progress=0, status="waiting").model_dump(exclude_none=True)
        return StatusResponse(progress=READY_PROGRESS, status="ready", downloadUrl=job.download_url).model_dump()

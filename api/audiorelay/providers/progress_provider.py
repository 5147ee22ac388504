from typing import Any, Dict

from audiorelay.errors import UpstreamError
from audiorelay.providers.base import StartResult, UpstreamProvider, json_payload
from audiorelay.upstream import RotatingExecutor, UpstreamRequestSpec
from audiorelay.utils.jobs import JobRegistry
from audiorelay.utils.text import DEFAULT_TITLE


class ProgressProvider(UpstreamProvider):
    """Upstream issues a progress id on start; status is polled live from upstream."""

    def __init__(
        self,
        executor: RotatingExecutor,
        api_url: str,
        progress_url: str,
        timeout: float = 10.0,
        max_redirects: int = 10,
    ) -> None:
        super().__init__(executor, timeout=timeout, max_redirects=max_redirects)
        self.api_url = api_url.rstrip("/")
        self.progress_url = progress_url

    def start(self, video_id: str) -> StartResult:
        spec = UpstreamRequestSpec(
            url=f"{self.api_url}/download",
            params={"id": video_id, "format": "mp3"},
            timeout=self.timeout,
            max_redirects=self.max_redirects,
        )
        data = json_payload(self.executor.execute(spec))
        progress_id = data.get("progressId") or data.get("id")
        if not progress_id:
            raise UpstreamError("Upstream response did not include a progress id")
        return StartResult(
            job_id=str(progress_id),
            title=data.get("title") or DEFAULT_TITLE,
            download_url=data.get("downloadUrl") or data.get("link"),
        )

    def status(self, job_id: str, registry: JobRegistry) -> Dict[str, Any]:
        # The registry is not consulted; upstream owns the progress.
        spec = UpstreamRequestSpec(
            url=self.progress_url,
            params={"id": job_id},
            timeout=self.timeout,
            max_redirects=self.max_redirects,
        )
        return json_payload(self.executor.execute(spec))

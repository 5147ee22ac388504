from audiorelay.config import Settings
from audiorelay.errors import ConfigurationError
from audiorelay.providers.base import UpstreamProvider
from audiorelay.providers.link_provider import LinkProvider
from audiorelay.providers.progress_provider import ProgressProvider
from audiorelay.upstream import RotatingExecutor


def get_upstream_provider(settings: Settings, executor: RotatingExecutor) -> UpstreamProvider:
    name = (settings.upstream_mode or "link").lower()
    if name == "progress":
        return ProgressProvider(
            executor,
            api_url=settings.api_url,
            progress_url=settings.progress_url,
            timeout=settings.metadata_timeout,
            max_redirects=settings.max_redirects,
        )
    if name == "link":
        return LinkProvider(
            executor,
            api_url=settings.api_url,
            timeout=settings.metadata_timeout,
            max_redirects=settings.max_redirects,
        )
    raise ConfigurationError(f"Unknown upstream mode {settings.upstream_mode!r}")

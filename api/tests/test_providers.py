import pytest

from audiorelay.errors import ConfigurationError, UpstreamError
from audiorelay.providers.factory import get_upstream_provider
from audiorelay.providers.link_provider import LinkProvider
from audiorelay.providers.progress_provider import ProgressProvider
from audiorelay.upstream import CredentialPool, RotatingExecutor
from audiorelay.utils.jobs import Job, JobRegistry

from fakes import FakeResponse, ScriptedSessions


def executor_for(*outcomes):
    sessions = ScriptedSessions(*outcomes)
    return RotatingExecutor(CredentialPool.from_keys(["key-1"], "upstream.test"), sessions), sessions


def test_provider_factory_defaults_to_link(make_settings):
    executor, _ = executor_for()
    provider = get_upstream_provider(make_settings(), executor)
    assert provider.__class__.__name__ == "LinkProvider"


def test_provider_factory_progress_mode(make_settings):
    executor, _ = executor_for()
    settings = make_settings(upstream_mode="progress", progress_url="https://upstream.test/progress")
    provider = get_upstream_provider(settings, executor)
    assert isinstance(provider, ProgressProvider)
    assert provider.progress_url == "https://upstream.test/progress"


def test_provider_factory_rejects_unknown_mode(make_settings):
    executor, _ = executor_for()
    settings = make_settings()
    object.__setattr__(settings, "upstream_mode", "ftp")
    with pytest.raises(ConfigurationError):
        get_upstream_provider(settings, executor)


def test_link_start_reads_link_and_title():
    executor, sessions = executor_for(
        FakeResponse(200, {"link": "https://cdn.test/a.mp3", "title": "Song", "status": "ok"})
    )
    result = LinkProvider(executor, "https://upstream.test/").start("dQw4w9WgXcQ")
    assert result.job_id == "dQw4w9WgXcQ"
    assert result.title == "Song"
    assert result.download_url == "https://cdn.test/a.mp3"
    assert sessions.calls[0]["url"] == "https://upstream.test/dl"
    assert sessions.calls[0]["params"] == {"id": "dQw4w9WgXcQ"}


def test_link_start_defaults_title():
    executor, _ = executor_for(FakeResponse(200, {"link": "https://cdn.test/a.mp3"}))
    assert LinkProvider(executor, "https://upstream.test").start("dQw4w9WgXcQ").title == "audio"


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"title": "Song"}, "did not include a download link"),
        ({"status": "fail", "msg": "Video too long"}, "Video too long"),
        (None, "non-JSON"),
        (["unexpected"], "unexpected payload"),
    ],
)
def test_link_start_rejects_malformed_payload(payload, message):
    executor, _ = executor_for(FakeResponse(200, payload))
    with pytest.raises(UpstreamError, match=message):
        LinkProvider(executor, "https://upstream.test").start("dQw4w9WgXcQ")


def test_link_status_from_registry():
    executor, sessions = executor_for()
    registry = JobRegistry()
    registry.put(Job("dQw4w9WgXcQ", "https://cdn.test/a.mp3"))
    provider = LinkProvider(executor, "https://upstream.test")

    assert provider.status("dQw4w9WgXcQ", registry) == {
        "progress": 1000,
        "status": "ready",
        "downloadUrl": "https://cdn.test/a.mp3",
    }
    assert provider.status("unknown", registry) == {"progress": 0, "status": "waiting"}
    assert sessions.calls == []


def test_progress_start_uses_upstream_token():
    executor, sessions = executor_for(FakeResponse(200, {"progressId": "p-123", "title": "Song"}))
    provider = ProgressProvider(executor, "https://upstream.test", "https://upstream.test/progress")
    result = provider.start("dQw4w9WgXcQ")
    assert result.job_id == "p-123"
    assert result.download_url is None
    assert sessions.calls[0]["params"] == {"id": "dQw4w9WgXcQ", "format": "mp3"}


def test_progress_start_requires_token():
    executor, _ = executor_for(FakeResponse(200, {"title": "Song"}))
    provider = ProgressProvider(executor, "https://upstream.test", "https://upstream.test/progress")
    with pytest.raises(UpstreamError, match="progress id"):
        provider.start("dQw4w9WgXcQ")


def test_progress_status_is_passed_through():
    upstream = {"progress": 420, "status": "converting", "eta": 12}
    executor, sessions = executor_for(FakeResponse(200, upstream))
    provider = ProgressProvider(executor, "https://upstream.test", "https://upstream.test/progress")
    assert provider.status("p-123", JobRegistry()) == upstream
    assert sessions.calls[0]["url"] == "https://upstream.test/progress"
    assert sessions.calls[0]["params"] == {"id": "p-123"}

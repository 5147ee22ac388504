from audiorelay.utils.jobs import Job, JobRegistry


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_put_and_get():
    registry = JobRegistry()
    registry.put(Job("abc", "https://cdn.test/a.mp3", "A"))
    job = registry.get("abc")
    assert job is not None
    assert job.download_url == "https://cdn.test/a.mp3"
    assert registry.get("missing") is None


def test_entries_expire_after_ttl():
    clock = FakeClock()
    registry = JobRegistry(ttl_seconds=60, clock=clock)
    registry.put(Job("abc", "https://cdn.test/a.mp3"))
    clock.now += 59
    assert registry.get("abc") is not None
    clock.now += 2
    assert registry.get("abc") is None
    assert len(registry) == 0


def test_least_recently_used_is_evicted():
    registry = JobRegistry(max_entries=2)
    registry.put(Job("a", "u1"))
    registry.put(Job("b", "u2"))
    registry.get("a")
    registry.put(Job("c", "u3"))
    assert registry.get("b") is None
    assert registry.get("a") is not None
    assert registry.get("c") is not None


def test_purge_expired():
    clock = FakeClock()
    registry = JobRegistry(ttl_seconds=10, clock=clock)
    registry.put(Job("old", "u1"))
    clock.now += 20
    registry.put(Job("new", "u2"))
    assert registry.purge_expired() == 1
    assert len(registry) == 1

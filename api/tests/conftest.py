from typing import Any, Dict

import pytest

from audiorelay.config import Settings


@pytest.fixture
def make_settings():
    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "api_keys": ("key-1",),
            "api_url": "https://upstream.test",
            "api_host": "upstream.test",
        }
        values.update(overrides)
        return Settings(**values).validate()

    return _make

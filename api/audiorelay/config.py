import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from audiorelay.errors import ConfigurationError


UPSTREAM_MODES = ("link", "progress")

_DEFAULT_PUBLIC_DIR = Path(__file__).resolve().parent.parent / "public"


def _env(name: str, *aliases: str, default: str = "") -> str:
    for key in (name, *aliases):
        value = os.getenv(key)
        if value is not None and value.strip():
            return value.strip()
    return default


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    api_keys: Tuple[str, ...]
    api_url: str
    api_host: str = ""
    progress_url: str = ""
    upstream_mode: str = "link"
    metadata_timeout: float = 10.0
    stream_timeout: float = 60.0
    max_redirects: int = 10
    job_ttl_seconds: float = 3600.0
    job_max_entries: int = 1000
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("*",)
    public_dir: Path = _DEFAULT_PUBLIC_DIR
    host: str = "0.0.0.0"
    port: int = 3000

    def validate(self) -> "Settings":
        if not self.api_keys:
            raise ConfigurationError("API_KEYS must list at least one upstream key")
        if not self.api_url:
            raise ConfigurationError("API_URL is required")
        if self.upstream_mode not in UPSTREAM_MODES:
            raise ConfigurationError(
                f"UPSTREAM_MODE must be one of {', '.join(UPSTREAM_MODES)}, got {self.upstream_mode!r}"
            )
        if self.upstream_mode == "progress" and not self.progress_url:
            raise ConfigurationError("PROGRESS_URL is required when UPSTREAM_MODE=progress")
        return self


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read the process environment (and a .env file, if any) into a frozen Settings."""
    load_dotenv(env_file or find_dotenv(usecwd=True))

    try:
        settings = Settings(
            api_keys=_split_csv(_env("API_KEYS")),
            api_url=_env("API_URL", "apiUrl").rstrip("/"),
            api_host=_env("API_HOST", "apiHost"),
            progress_url=_env("PROGRESS_URL", "progressUrl"),
            upstream_mode=_env("UPSTREAM_MODE", default="link").lower(),
            metadata_timeout=float(_env("METADATA_TIMEOUT", default="10")),
            stream_timeout=float(_env("STREAM_TIMEOUT", default="60")),
            max_redirects=int(_env("MAX_REDIRECTS", default="10")),
            job_ttl_seconds=float(_env("JOB_TTL_SECONDS", default="3600")),
            job_max_entries=int(_env("JOB_MAX_ENTRIES", default="1000")),
            log_level=_env("LOG_LEVEL", default="INFO").upper(),
            cors_origins=_split_csv(_env("CORS_ORIGINS", default="*")),
            public_dir=Path(_env("PUBLIC_DIR", default=str(_DEFAULT_PUBLIC_DIR))),
            host=_env("HOST", default="0.0.0.0"),
            port=int(_env("PORT", default="3000")),
        )
    except ValueError as exc:
        raise ConfigurationError(f"Invalid numeric setting: {exc}") from exc
    return settings.validate()

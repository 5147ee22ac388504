"""Calls to the third-party conversion API.

Every metadata call goes through :class:`RotatingExecutor`, which tries the
configured credentials one after another. Only 429 (rate limited) and 403
(quota exhausted) move on to the next credential; any other failure stops the
loop and is raised as is. When every credential was rate limited the error of
the *last* attempt is raised.
"""
import enum
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple, cast

import requests

from audiorelay.errors import (
    ConfigurationError,
    UpstreamError,
    UpstreamQuotaExceeded,
    UpstreamRateLimited,
)
from audiorelay.utils.logging import get_logger


logger = get_logger(__name__)

SessionFactory = Callable[[], requests.Session]

KEY_HEADER = "x-rapidapi-key"
HOST_HEADER = "x-rapidapi-host"


@dataclass(frozen=True)
class UpstreamRequestSpec:
    url: str
    method: str = "GET"
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: float = 10.0
    max_redirects: int = 10


@dataclass(frozen=True)
class CredentialPool:
    keys: Tuple[str, ...]
    host: str = ""

    @classmethod
    def from_keys(cls, keys: Sequence[str], host: str = "") -> "CredentialPool":
        return cls(keys=tuple(k.strip() for k in keys), host=host.strip())

    def __len__(self) -> int:
        return len(self.keys)

    def headers_for(self, key: str) -> Dict[str, str]:
        headers = {KEY_HEADER: key}
        if self.host:
            headers[HOST_HEADER] = self.host
        return headers


class Outcome(enum.Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class Attempt:
    outcome: Outcome
    response: Optional[requests.Response] = None
    error: Optional[UpstreamError] = None


def send(
    session: requests.Session,
    spec: UpstreamRequestSpec,
    headers: Optional[Mapping[str, str]] = None,
    stream: bool = False,
) -> requests.Response:
    session.max_redirects = spec.max_redirects
    merged = {**spec.headers, **(headers or {})}
    return session.request(
        spec.method,
        spec.url,
        params=dict(spec.params) or None,
        headers=merged,
        timeout=spec.timeout,
        stream=stream,
    )


def describe_failure(response: requests.Response) -> str:
    """Human readable message for a non-2xx upstream response."""
    message = f"Upstream request failed with status code {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return message
    if isinstance(body, dict):
        detail = body.get("message") or body.get("msg") or body.get("error")
        if detail:
            return f"{message}: {detail}"
    return message


def classify(response: requests.Response) -> Attempt:
    status = response.status_code
    if 200 <= status < 300:
        return Attempt(Outcome.SUCCESS, response=response)
    message = describe_failure(response)
    if status == 429:
        return Attempt(Outcome.RETRYABLE, error=UpstreamRateLimited(message, status))
    if status == 403:
        return Attempt(Outcome.RETRYABLE, error=UpstreamQuotaExceeded(message, status))
    return Attempt(Outcome.FATAL, error=UpstreamError(message, status))


class RotatingExecutor:
    def __init__(self, pool: CredentialPool, session_factory: SessionFactory = requests.Session) -> None:
        self.pool = pool
        self._session_factory = session_factory

    def _attempt(self, spec: UpstreamRequestSpec, key: str) -> Attempt:
        with self._session_factory() as session:
            try:
                response = send(session, spec, self.pool.headers_for(key))
            except requests.RequestException as exc:
                return Attempt(Outcome.FATAL, error=UpstreamError(str(exc)))
            return classify(response)

    def execute(self, spec: UpstreamRequestSpec) -> requests.Response:
        if not len(self.pool):
            raise ConfigurationError("No upstream API keys configured")

        last_error: Optional[UpstreamError] = None
        for index, key in enumerate(self.pool.keys, start=1):
            logger.info("Calling upstream", extra={"url": spec.url, "attempt": index})
            attempt = self._attempt(spec, key)
            if attempt.outcome is Outcome.SUCCESS:
                return cast(requests.Response, attempt.response)

            last_error = cast(UpstreamError, attempt.error)
            logger.warning(
                "Upstream key %d/%d failed: %s",
                index,
                len(self.pool),
                last_error.message,
                extra={"attempt": index, "status": last_error.status},
            )
            if attempt.outcome is Outcome.FATAL:
                raise last_error
            if index < len(self.pool):
                logger.info("Rotating to next key", extra={"attempt": index + 1})

        # The pool is non-empty, so at least one retryable error was recorded.
        exhausted = cast(UpstreamError, last_error)
        logger.error("All upstream keys exhausted", extra={"status": exhausted.status})
        raise exhausted

from typing import Optional


class RelayError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(RelayError):
    status_code = 400


class ConfigurationError(RelayError):
    pass


class UpstreamError(RelayError):
    """Upstream call failed. ``status`` is the HTTP status when one was received."""

    retryable = False

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class UpstreamRateLimited(UpstreamError):
    retryable = True


class UpstreamQuotaExceeded(UpstreamError):
    retryable = True


class StreamingFailure(RelayError):
    """Raised after response headers are committed; the connection is aborted."""

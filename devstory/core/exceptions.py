from enum import Enum
from typing import Dict, Optional


class DevStoryException(Exception):
    """Base exception for DevStory application errors."""
    pass


class InvalidInputError(DevStoryException):
    """Raised for invalid user input (bad URL, out-of-range parameters)."""
    pass


class UpstreamErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    UNPROCESSABLE = "unprocessable"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UPSTREAM = "upstream"


class UpstreamError(DevStoryException):
    """
    Raised when a GitHub API call fails.
    Built only by the GitHub client; callers branch on `kind`, never on the raw response.
    """

    def __init__(
        self,
        kind: UpstreamErrorKind,
        message: str,
        status: Optional[int] = None,
        rate_limit_reset: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.rate_limit_reset = rate_limit_reset

    def __repr__(self) -> str:
        return f"UpstreamError(kind={self.kind.value!r}, status={self.status!r}, message={self.message!r})"


class RateLimitExceeded(DevStoryException):
    """Raised when a client exceeds one of the API rate limits."""

    def __init__(self, retry_after: int, headers: Dict[str, str]):
        super().__init__("Too many requests. Please try again later.")
        self.retry_after = retry_after
        self.headers = headers


class ResourceNotFoundError(DevStoryException):
    """Raised when the repository exists but lacks a file a feature depends on."""
    pass

"""Exceptions for the Bitbucket API."""


class BitbucketAPIError(Exception):
    """Base exception for Bitbucket API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TokenExpiredError(BitbucketAPIError):
    """Token has expired or was revoked."""


class RateLimitError(BitbucketAPIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, 429)
        self.retry_after = retry_after


class NotAuthenticatedError(BitbucketAPIError):
    """User is not authenticated."""

    def __init__(self, authority: str | None = None):
        msg = "Not authenticated"
        if authority:
            msg += f" for '{authority}'"
        msg += ". Run 'bbpr login' first."
        super().__init__(msg)

"""API module for Bitbucket PR CLI."""

from bitbucket_pr.api.client import BitbucketClient
from bitbucket_pr.api.exceptions import (
    BitbucketAPIError,
    NotAuthenticatedError,
    RateLimitError,
    TokenExpiredError,
)
from bitbucket_pr.api.models import BitbucketModel, User

__all__ = [
    "BitbucketClient",
    "BitbucketAPIError",
    "NotAuthenticatedError",
    "RateLimitError",
    "TokenExpiredError",
    "BitbucketModel",
    "User",
]

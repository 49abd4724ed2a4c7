"""Authentication module for Bitbucket PR CLI.

Only the leaf modules are re-exported here; the session, listener and
store are imported from their own modules.
"""

from bitbucket_pr.auth.exceptions import (
    AuthError,
    AuthorizationDenied,
    CsrfMismatch,
    LoginTimeoutError,
    MalformedCallback,
    NetworkError,
    TokenExchangeFailed,
    UserDeclined,
)
from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.models import Credential, TokenPair

__all__ = [
    # Data
    "Credential",
    "HostIdentity",
    "TokenPair",
    # Errors
    "AuthError",
    "AuthorizationDenied",
    "CsrfMismatch",
    "LoginTimeoutError",
    "MalformedCallback",
    "NetworkError",
    "TokenExchangeFailed",
    "UserDeclined",
]

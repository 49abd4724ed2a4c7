"""Exceptions raised by the sign-in flow."""


class AuthError(Exception):
    """Base exception for all sign-in errors."""


class AuthorizationDenied(AuthError):
    """The provider redirected back with an ``error`` parameter."""

    def __init__(self, error: str, description: str | None = None):
        msg = f"Authorization denied: {error}"
        if description:
            msg += f" - {description}"
        super().__init__(msg)
        self.error = error
        self.description = description


class CsrfMismatch(AuthError):
    """The callback ``state`` was missing or did not match the session's."""

    def __init__(self, message: str = "State value did not match"):
        super().__init__(message)


class MalformedCallback(AuthError):
    """The callback had a valid state but no authorization code."""


class TokenExchangeFailed(AuthError):
    """The token endpoint did not return a usable access token."""


class NetworkError(AuthError):
    """Transport-level failure (connect, DNS, bind, timeout)."""


class UserDeclined(AuthError):
    """The user declined to sign in or to retry."""

    def __init__(self, authority: str | None = None):
        msg = "Sign in declined"
        if authority:
            msg += f" for {authority}"
        super().__init__(msg)
        self.authority = authority


class LoginTimeoutError(AuthError):
    """No callback arrived before the OAuth timeout expired."""

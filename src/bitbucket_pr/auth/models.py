"""Token and credential data."""

from dataclasses import dataclass
from typing import Self

from bitbucket_pr.auth.constants import OAUTH_USERNAME
from bitbucket_pr.auth.host import HostIdentity


@dataclass(frozen=True)
class TokenPair:
    """Tokens returned by one successful authorization code exchange."""

    access: str
    refresh: str | None = None


@dataclass(frozen=True)
class Credential:
    """Username and tokens for one host."""

    host: HostIdentity
    username: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None

    @classmethod
    def from_tokens(cls, host: HostIdentity, tokens: TokenPair) -> Self:
        """Build the credential produced by an OAuth sign-in."""
        return cls(
            host=host,
            username=OAUTH_USERNAME,
            access_token=tokens.access,
            refresh_token=tokens.refresh,
        )

    def has_token(self) -> bool:
        return bool(self.access_token)

    def has_refresh_token(self) -> bool:
        """Check if a refresh token was stored alongside the access token."""
        return bool(self.refresh_token)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "host": str(self.host),
            "username": self.username,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create from dictionary."""
        return cls(
            host=HostIdentity.from_remote(data["host"]),
            username=data.get("username"),
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
        )

"""Checks whether a stored token is still accepted by the API."""

import logging

import httpx

from bitbucket_pr.auth.constants import OAUTH_USERNAME, USER_AGENT, USER_ENDPOINT
from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.models import Credential

logger = logging.getLogger(__name__)


class CredentialValidator:
    """Validates tokens with a lightweight authenticated GET.

    An expired or revoked token is an expected outcome, so every failure is
    reported as ``None`` rather than raised.
    """

    def __init__(self, timeout: float = 30.0):
        self._timeout = timeout

    async def validate(
        self,
        host: HostIdentity,
        username: str | None = None,
        token: str | None = None,
        refresh: str | None = None,
    ) -> Credential | None:
        """Validate a token against the host's current-user endpoint.

        Args:
            host: Host the token belongs to
            username: Stored username (defaults to the OAuth username)
            token: Access token to check
            refresh: Refresh token to carry over into the result

        Returns:
            Credential when the API accepts the token, None otherwise
        """
        if not token:
            return None

        url = f"{host.api_base_url}{USER_ENDPOINT}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(
                    url,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                        "User-Agent": USER_AGENT,
                    },
                )
        except httpx.HTTPError as e:
            logger.debug(f"Token validation for {host.authority} failed: {e}")
            return None

        if not response.is_success:
            logger.info(
                f"Stored token for {host.authority} rejected (status {response.status_code})"
            )
            return None

        return Credential(
            host=host,
            username=username or OAUTH_USERNAME,
            access_token=token,
            refresh_token=refresh,
        )

"""Authorization code exchange against the Bitbucket token endpoint."""

import logging

import httpx

from bitbucket_pr.auth.constants import ACCESS_TOKEN_PATH
from bitbucket_pr.auth.exceptions import NetworkError, TokenExchangeFailed
from bitbucket_pr.auth.models import TokenPair

logger = logging.getLogger(__name__)


class TokenExchanger:
    """Trades an authorization code for a TokenPair.

    Codes are single use, so a failed exchange is never retried here.
    """

    def __init__(
        self,
        oauth_base_url: str,
        client_id: str,
        client_secret: str,
        timeout: float = 30.0,
    ):
        """Initialize the exchanger.

        Args:
            oauth_base_url: Base URL of the OAuth2 endpoints (e.g. https://bitbucket.org/site)
            client_id: OAuth consumer key
            client_secret: OAuth consumer secret
            timeout: HTTP timeout in seconds
        """
        self.token_url = f"{oauth_base_url.rstrip('/')}{ACCESS_TOKEN_PATH}"
        self._auth = (client_id, client_secret)
        self._timeout = timeout

    async def exchange(self, code: str) -> TokenPair:
        """Exchange the authorization code for access and refresh tokens.

        Args:
            code: The authorization code from the callback

        Returns:
            TokenPair with the access token and optional refresh token

        Raises:
            TokenExchangeFailed: If the response is not JSON or has no access_token
            NetworkError: If the request could not be sent
        """
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                response = await client.post(
                    self.token_url,
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                    },
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                    auth=self._auth,
                )
            except httpx.RequestError as e:
                logger.error(f"Network error during token exchange: {e}")
                raise NetworkError(f"Network error during token exchange: {e}") from e

        try:
            data = response.json()
        except ValueError:
            logger.error(
                f"Token endpoint returned a non-JSON response (status {response.status_code})"
            )
            raise TokenExchangeFailed(
                f"Token exchange failed: invalid response (status {response.status_code})"
            )

        if not isinstance(data, dict):
            raise TokenExchangeFailed("Token exchange failed: unexpected response format")

        if not response.is_success:
            error_msg = data.get("error_description") or data.get("error") or (
                f"status {response.status_code}"
            )
            logger.error(f"Token exchange failed: {error_msg}")
            raise TokenExchangeFailed(f"Token exchange failed: {error_msg}")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeFailed("No access_token in token response")

        refresh_token = data.get("refresh_token")
        logger.info(
            f"Token exchange successful, refresh_token: {'present' if refresh_token else 'absent'}"
        )
        return TokenPair(access=access_token, refresh=refresh_token)

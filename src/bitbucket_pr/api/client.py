"""HTTP client for the Bitbucket API with retry logic."""

from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bitbucket_pr.api.exceptions import (
    BitbucketAPIError,
    NotAuthenticatedError,
    RateLimitError,
    TokenExpiredError,
)
from bitbucket_pr.api.models import User
from bitbucket_pr.auth.constants import USER_AGENT, USER_ENDPOINT
from bitbucket_pr.auth.models import Credential
from bitbucket_pr.config import get_settings


class BitbucketClient:
    """Asynchronous API client bound to one credential."""

    def __init__(self, credential: Credential, timeout: int | None = None):
        self.credential = credential
        self._client: httpx.AsyncClient | None = None
        self._timeout = timeout or get_settings().timeout

    @property
    def base_url(self) -> str:
        """Get the base URL of the API for this credential's host."""
        return self.credential.host.api_base_url

    @property
    def authority(self) -> str:
        return self.credential.host.authority

    async def __aenter__(self) -> "BitbucketClient":
        """Enter context manager, creating HTTP client."""
        if not self.credential.has_token():
            raise NotAuthenticatedError(self.authority)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.credential.access_token}",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args) -> None:
        """Exit context manager, closing HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _check_client(self) -> None:
        """Ensure client is initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized - use 'async with' context manager")

    def _handle_response(self, response: httpx.Response) -> Any:
        """Handle API response, raising appropriate errors."""
        if response.status_code == 401:
            raise TokenExpiredError("Access token has expired", 401)

        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            raise RateLimitError("Rate limit exceeded", retry_after)

        if response.status_code >= 400:
            raise BitbucketAPIError(
                f"API error: {response.status_code} - {response.text}",
                response.status_code,
            )

        return response.json()

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Make an API request with retry logic."""
        self._check_client()
        assert self._client is not None

        response = await self._client.request(method, endpoint, **kwargs)
        return self._handle_response(response)

    async def get_user(self) -> User:
        """Get the signed-in user."""
        data = await self._request("GET", USER_ENDPOINT.lstrip("/"))
        return User.model_validate(data)

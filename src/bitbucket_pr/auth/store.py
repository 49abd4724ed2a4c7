"""In-memory cache of authenticated API clients, one per host.

The store decides when a user has to sign in:

- ``has_credential`` checks the cache, then validates a persisted token once
- ``login_with_confirmation`` asks before starting a sign in
- ``login`` runs sign in attempts until one succeeds or the user gives up

Concurrent ``login`` calls for the same host share a single attempt.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable

from bitbucket_pr.api.client import BitbucketClient
from bitbucket_pr.auth.exceptions import AuthError, UserDeclined
from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.host_configuration import HostConfiguration
from bitbucket_pr.auth.models import Credential
from bitbucket_pr.auth.session import AuthSession
from bitbucket_pr.auth.validator import CredentialValidator
from bitbucket_pr.cli.prompts import Prompter
from bitbucket_pr.cli.status import StatusIndicator
from bitbucket_pr.config import Settings, get_settings
from bitbucket_pr.telemetry import AUTH_CANCEL, AUTH_FAIL, AUTH_START, AUTH_SUCCESS, Telemetry

logger = logging.getLogger(__name__)

SIGNIN_COMMAND = "Sign in"
TRY_AGAIN = "Try again?"


class LoginState(str, Enum):
    """Progress of the most recent login for a host."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_TERMINAL = "failed_terminal"


class CredentialStore:
    """Maps each host to an authenticated client.

    A host mapped to None means the user declined to sign in; it is not
    prompted for again until ``reset()``.
    """

    def __init__(
        self,
        configuration: HostConfiguration,
        telemetry: Telemetry,
        ui: Prompter,
        session_factory: Callable[..., AuthSession] = AuthSession,
        validator: CredentialValidator | None = None,
        client_factory: Callable[[Credential], BitbucketClient] = BitbucketClient,
        indicator_factory: Callable[[str], StatusIndicator] = StatusIndicator,
        settings: Settings | None = None,
    ):
        self.configuration = configuration
        self.settings = settings or get_settings()
        self._telemetry = telemetry
        self._ui = ui
        self._session_factory = session_factory
        self._validator = validator or CredentialValidator(timeout=self.settings.timeout)
        self._client_factory = client_factory
        self._indicator_factory = indicator_factory

        self._clients: dict[str, BitbucketClient | None] = {}
        self._indicators: dict[str, StatusIndicator] = {}
        self._states: dict[str, LoginState] = {}
        self._inflight: dict[str, asyncio.Task] = {}

        self._unsubscribe = configuration.on_did_change(self._on_configuration_changed)

    @staticmethod
    def _resolve(remote: HostIdentity | str) -> HostIdentity:
        return remote if isinstance(remote, HostIdentity) else HostIdentity.from_remote(remote)

    def reset(self) -> None:
        """Forget all cached clients and login states, dispose indicators."""
        self._clients = {}
        self._states = {}
        for indicator in self._indicators.values():
            indicator.dispose()
        self._indicators = {}

    async def has_credential(self, remote: HostIdentity | str) -> bool:
        """Check whether a client is cached or a stored token still works."""
        host = self._resolve(remote)
        key = str(host)
        if key in self._clients:
            return True

        self.configuration.set_host(host)
        if self.configuration.token:
            credential = await self._validator.validate(
                host,
                self.configuration.username,
                self.configuration.token,
                self.configuration.refresh,
            )
            if credential is not None:
                self._clients[key] = self._client_factory(credential)
            else:
                logger.info(f"Stored token for {host.authority} is no longer valid")
                self.configuration.remove_host(host)

        self._update_indicator(host)
        return key in self._clients

    def get_credential(self, remote: HostIdentity | str) -> BitbucketClient | None:
        """Get the cached client for a host without any network activity."""
        return self._clients.get(str(self._resolve(remote)))

    async def login_with_confirmation(self, remote: HostIdentity | str) -> BitbucketClient | None:
        """Ask the user to sign in, then log in if they agree."""
        host = self._resolve(remote)
        answer = await self._ui.confirm(
            f"In order to use the Pull Requests functionality, "
            f"you need to sign in to {host.authority}",
            [SIGNIN_COMMAND],
        )
        if answer == SIGNIN_COMMAND:
            return await self.login(host)

        self._clients[str(host)] = None
        self._telemetry.on(AUTH_CANCEL)
        self._update_indicator(host)
        return None

    async def login(self, remote: HostIdentity | str) -> BitbucketClient | None:
        """Sign in to a host.

        Returns:
            The new client, or None if the user stopped retrying
        """
        host = self._resolve(remote)
        key = str(host)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._login(host))
            self._inflight[key] = task

            def forget(done: asyncio.Task) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(forget)
        else:
            logger.debug(f"Joining sign in already running for {host.authority}")

        return await asyncio.shield(task)

    async def _login(self, host: HostIdentity) -> BitbucketClient | None:
        key = str(host)
        self._telemetry.on(AUTH_START)
        client: BitbucketClient | None = None

        while True:
            self._states[key] = LoginState.ATTEMPTING
            try:
                session = self._session_factory(host, settings=self.settings)
                credential = await session.login()
            except AuthError as e:
                logger.error(f"Error signing in to {host.authority}: {e}")
                logger.debug("Sign in failure", exc_info=True)
                self._states[key] = LoginState.FAILED_RETRYABLE
                self._telemetry.on(AUTH_FAIL)

                answer = await self._ui.confirm(
                    f"Error signing in to {host.authority}", [TRY_AGAIN], error=True
                )
                if answer == TRY_AGAIN:
                    continue
                self._states[key] = LoginState.FAILED_TERMINAL
                break

            if self.configuration.host != host:
                self.configuration.set_host(host)
            self.configuration.update(
                credential.username, credential.access_token, credential.refresh_token
            )
            client = self._client_factory(credential)
            self._clients[key] = client
            self._states[key] = LoginState.SUCCEEDED
            await self._ui.notify(f"You are now signed in to {host.authority}")
            self._telemetry.on(AUTH_SUCCESS)
            break

        self._update_indicator(host)
        return client

    async def require_client(self, remote: HostIdentity | str) -> BitbucketClient:
        """Get a usable client, signing in if needed.

        Raises:
            UserDeclined: If the user declined to sign in
        """
        host = self._resolve(remote)
        key = str(host)

        if key in self._clients:
            client = self._clients[key]
        elif await self.has_credential(host):
            client = self._clients.get(key)
        else:
            client = await self.login_with_confirmation(host)

        if client is None:
            raise UserDeclined(host.authority)
        return client

    def login_state(self, remote: HostIdentity | str) -> LoginState:
        return self._states.get(str(self._resolve(remote)), LoginState.IDLE)

    def status_indicator(self, remote: HostIdentity | str) -> StatusIndicator:
        """Get the sign-in indicator for a host, creating it if needed."""
        return self._update_indicator(self._resolve(remote))

    def _update_indicator(self, host: HostIdentity) -> StatusIndicator:
        indicator = self._indicators.get(host.authority)
        created = indicator is None
        if indicator is None:
            indicator = self._indicator_factory(host.authority)
            self._indicators[host.authority] = indicator

        client = self._clients.get(str(host))
        username = client.credential.username if client is not None else None
        indicator.update(client is not None, username)
        if created:
            indicator.show()
        return indicator

    def _on_configuration_changed(self, configuration: HostConfiguration) -> None:
        # Drop a cached client whose stored token was removed
        host = configuration.host
        if host is None or configuration.token:
            return
        if self._clients.get(str(host)) is not None:
            logger.debug(f"Stored credential for {host.authority} removed, dropping client")
            del self._clients[str(host)]
            self._states.pop(str(host), None)
            self._update_indicator(host)

    def close(self) -> None:
        """Stop listening for configuration changes and reset."""
        self._unsubscribe()
        self.reset()

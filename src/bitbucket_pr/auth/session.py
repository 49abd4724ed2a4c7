"""One OAuth authorization code sign-in attempt.

An AuthSession pairs one CallbackListener with one TokenExchanger:

1. Generate a fresh CSRF state
2. Bind the callback listener, then open the authorization page
3. Wait for the redirect and take the authorization code from it
4. Exchange the code for tokens
5. Settle with a Credential, or with the first error raised on the way

The listener is closed by a single finalization step on every path.
"""

import asyncio
import base64
import logging
import os
import webbrowser
from typing import Callable
from urllib.parse import urlencode

from bitbucket_pr.auth.callback_listener import CallbackListener
from bitbucket_pr.auth.constants import AUTHORIZE_PATH
from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.models import Credential
from bitbucket_pr.auth.token_exchange import TokenExchanger
from bitbucket_pr.config import Settings, get_settings

logger = logging.getLogger(__name__)


def generate_state() -> str:
    """Generate a random state parameter for CSRF protection."""
    return base64.urlsafe_b64encode(os.urandom(32)).decode("utf-8").rstrip("=")


def _log_authorize_url(url: str) -> None:
    logger.warning(f"Open this URL in your browser to sign in: {url}")


class AuthSession:
    """Drives a single sign-in attempt for one host. Not reusable."""

    def __init__(
        self,
        host: HostIdentity,
        settings: Settings | None = None,
        listener: CallbackListener | None = None,
        exchanger: TokenExchanger | None = None,
        open_url: Callable[[str], object] | None = None,
        state_factory: Callable[[], str] = generate_state,
    ):
        """Initialize the session.

        Args:
            host: Host being signed in to
            settings: Settings to use (global settings if omitted)
            listener: Callback listener (built from settings if omitted)
            exchanger: Token exchanger (built from settings if omitted)
            open_url: Browser launcher passed to the default listener
            state_factory: Produces the CSRF state
        """
        self.host = host
        self.settings = settings or get_settings()
        self._state_factory = state_factory

        if open_url is None:
            open_url = webbrowser.open if self.settings.open_browser else _log_authorize_url

        self._listener = listener or CallbackListener(
            host=self.settings.oauth_callback_host,
            port=self.settings.oauth_callback_port,
            open_url=open_url,
            timeout=self.settings.oauth_timeout,
        )
        self._exchanger = exchanger or TokenExchanger(
            self.settings.oauth_base_url,
            self.settings.client_id,
            self.settings.client_secret,
            timeout=self.settings.timeout,
        )
        self._outcome: asyncio.Future[Credential] | None = None
        self._finished = False

    def authorize_url(self, state: str) -> str:
        """Get the provider URL the user is sent to."""
        params = {
            "client_id": self.settings.client_id,
            "response_type": "code",
            "state": state,
        }
        return f"{self.settings.oauth_base_url}{AUTHORIZE_PATH}?{urlencode(params)}"

    @property
    def done(self) -> bool:
        return self._outcome is not None and self._outcome.done()

    async def login(self) -> Credential:
        """Run the sign-in flow.

        Returns:
            Credential holding the exchanged tokens

        Raises:
            AuthError: Any failure from the listener or the exchange
            RuntimeError: If the session was already used
        """
        if self._outcome is not None:
            raise RuntimeError("AuthSession can only be used once")
        self._outcome = asyncio.get_running_loop().create_future()

        logger.info(f"Starting sign in to {self.host.authority}")
        state = self._state_factory()
        try:
            code = await self._listener.start(state, self.authorize_url(state))
            tokens = await self._exchanger.exchange(code)
            self._settle(result=Credential.from_tokens(self.host, tokens))
        except Exception as e:
            self._settle(exception=e)
        finally:
            await self._finish()

        return await self._outcome

    def _settle(
        self, result: Credential | None = None, exception: Exception | None = None
    ) -> bool:
        """Settle the outcome; only the first call has any effect."""
        assert self._outcome is not None
        if self._outcome.done():
            logger.warning(f"Sign in to {self.host.authority} already settled, ignoring")
            return False
        if exception is not None:
            self._outcome.set_exception(exception)
        else:
            self._outcome.set_result(result)
        return True

    async def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        try:
            await self._listener.close()
        finally:
            # Only reachable when login() itself was cancelled
            if self._outcome is not None and not self._outcome.done():
                self._outcome.cancel()

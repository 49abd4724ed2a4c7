"""Tests for a single sign-in attempt."""

import asyncio
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
import respx

from bitbucket_pr.auth.callback_listener import CallbackListener
from bitbucket_pr.auth.exceptions import (
    AuthorizationDenied,
    CsrfMismatch,
    NetworkError,
    TokenExchangeFailed,
)
from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.models import Credential, TokenPair
from bitbucket_pr.auth.session import AuthSession, generate_state
from bitbucket_pr.config import Settings

HOST = HostIdentity("https", "bitbucket.org")


@pytest.fixture
def settings():
    return Settings(client_id="client", client_secret="secret", open_browser=False)


@pytest.fixture
def listener():
    mock = MagicMock()
    mock.start = AsyncMock(return_value="xyz")
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def exchanger():
    mock = MagicMock()
    mock.exchange = AsyncMock(return_value=TokenPair("AT1", "RT1"))
    return mock


def make_session(settings, listener, exchanger) -> AuthSession:
    return AuthSession(
        HOST,
        settings=settings,
        listener=listener,
        exchanger=exchanger,
        state_factory=lambda: "abc123",
    )


class TestGenerateState:
    """Tests for CSRF state generation."""

    def test_url_safe_and_unique(self):
        first, second = generate_state(), generate_state()

        assert first != second
        assert len(first) == 43
        assert "=" not in first
        assert set(first) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_")


class TestAuthSession:
    """Tests for AuthSession.login."""

    def test_authorize_url(self, settings, listener, exchanger):
        session = make_session(settings, listener, exchanger)

        url = session.authorize_url("abc123")

        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
            "https://bitbucket.org/site/oauth2/authorize"
        )
        assert parse_qs(parts.query) == {
            "client_id": ["client"],
            "response_type": ["code"],
            "state": ["abc123"],
        }

    @pytest.mark.asyncio
    async def test_login_success(self, settings, listener, exchanger):
        """Tokens from the exchange end up in the credential."""
        session = make_session(settings, listener, exchanger)

        credential = await session.login()

        assert credential == Credential(HOST, "oauth", "AT1", "RT1")
        listener.start.assert_awaited_once_with("abc123", session.authorize_url("abc123"))
        exchanger.exchange.assert_awaited_once_with("xyz")
        listener.close.assert_awaited_once()
        assert session.done

    @pytest.mark.asyncio
    async def test_csrf_mismatch_skips_exchange(self, settings, listener, exchanger):
        """A bad state never reaches the token endpoint."""
        listener.start.side_effect = CsrfMismatch()
        session = make_session(settings, listener, exchanger)

        with pytest.raises(CsrfMismatch):
            await session.login()

        exchanger.exchange.assert_not_awaited()
        listener.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_denied(self, settings, listener, exchanger):
        listener.start.side_effect = AuthorizationDenied("access_denied")
        session = make_session(settings, listener, exchanger)

        with pytest.raises(AuthorizationDenied) as exc_info:
            await session.login()

        assert exc_info.value.error == "access_denied"
        listener.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exchange_failure(self, settings, listener, exchanger):
        exchanger.exchange.side_effect = TokenExchangeFailed("No access_token in token response")
        session = make_session(settings, listener, exchanger)

        with pytest.raises(TokenExchangeFailed):
            await session.login()

        listener.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_error(self, settings, listener, exchanger):
        """Errors outside the auth hierarchy propagate unchanged."""
        exchanger.exchange.side_effect = KeyError("boom")
        session = make_session(settings, listener, exchanger)

        with pytest.raises(KeyError):
            await session.login()

        listener.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancelled(self, settings, listener, exchanger):
        """Cancelling the attempt still closes the listener."""
        started = asyncio.Event()

        async def wait_forever(state, url):
            started.set()
            await asyncio.Event().wait()

        listener.start.side_effect = wait_forever
        session = make_session(settings, listener, exchanger)

        task = asyncio.ensure_future(session.login())
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        listener.close.assert_awaited_once()
        exchanger.exchange.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_use(self, settings, listener, exchanger):
        session = make_session(settings, listener, exchanger)
        await session.login()

        with pytest.raises(RuntimeError):
            await session.login()

    def test_default_collaborators_follow_settings(self, settings):
        settings = settings.model_copy(update={"oauth_callback_port": 0, "oauth_timeout": 45})

        session = AuthSession(HOST, settings=settings)

        assert isinstance(session._listener, CallbackListener)
        assert session._listener.port == 0
        assert session._exchanger.token_url == "https://bitbucket.org/site/oauth2/access_token"


class TestAuthSessionEndToEnd:
    """Sign in through a real listener with the token endpoint mocked."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_browser_redirect_to_credential(self, settings):
        respx.route(host="127.0.0.1").pass_through()
        token_route = respx.post("https://bitbucket.org/site/oauth2/access_token").mock(
            return_value=httpx.Response(200, json={"access_token": "AT1", "refresh_token": "RT1"})
        )
        visits = []

        def browser(url):
            state = parse_qs(urlsplit(url).query)["state"][0]

            async def redirect():
                async with httpx.AsyncClient() as client:
                    return await client.get(
                        f"http://127.0.0.1:{listener.port}/",
                        params={"code": "xyz", "state": state},
                    )

            visits.append(asyncio.ensure_future(redirect()))

        listener = CallbackListener(port=0, open_url=browser, timeout=10)
        session = AuthSession(HOST, settings=settings, listener=listener)

        credential = await session.login()

        assert credential == Credential(HOST, "oauth", "AT1", "RT1")
        assert (await visits[0]).status_code == 200
        assert token_route.calls.last.request.content == b"grant_type=authorization_code&code=xyz"
        assert listener.closed

    @pytest.mark.asyncio
    async def test_port_in_use_fails_attempt(self, settings):
        blocker = CallbackListener(port=0, open_url=lambda url: None, timeout=5)
        blocked = asyncio.ensure_future(blocker.start("s", "https://example.com"))
        while blocker.port == 0:
            await asyncio.sleep(0.01)

        opened = []
        session = AuthSession(
            HOST,
            settings=settings,
            listener=CallbackListener(port=blocker.port, open_url=opened.append),
        )
        try:
            with pytest.raises(NetworkError):
                await session.login()
        finally:
            blocked.cancel()
            await asyncio.gather(blocked, return_exceptions=True)

        assert opened == []

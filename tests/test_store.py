"""Tests for the credential store."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from bitbucket_pr.api.client import BitbucketClient
from bitbucket_pr.auth.exceptions import AuthorizationDenied, NetworkError, UserDeclined
from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.host_configuration import HostConfiguration
from bitbucket_pr.auth.models import Credential
from bitbucket_pr.auth.store import SIGNIN_COMMAND, TRY_AGAIN, CredentialStore, LoginState
from bitbucket_pr.config import Settings
from bitbucket_pr.telemetry import AUTH_CANCEL, AUTH_FAIL, AUTH_START, AUTH_SUCCESS, LoggingTelemetry

HOST = HostIdentity("https", "bitbucket.org")
REMOTE = "git@bitbucket.org:owner/repo.git"
CREDENTIAL = Credential(HOST, "oauth", "AT1", "RT1")


class ScriptedPrompter:
    """Answers prompts from a fixed list, dismissing once it runs out."""

    def __init__(self, *answers: str | None):
        self.answers = list(answers)
        self.confirms: list[tuple[str, list[str], bool]] = []
        self.notices: list[str] = []

    async def confirm(self, message, actions, *, error=False):
        self.confirms.append((message, list(actions), error))
        return self.answers.pop(0) if self.answers else None

    async def notify(self, message):
        self.notices.append(message)


class FakeSession:
    def __init__(self, outcome, gate: asyncio.Event | None):
        self.outcome = outcome
        self.gate = gate

    async def login(self) -> Credential:
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class ScriptedSessions:
    """Session factory whose sessions end with the given outcomes in turn."""

    def __init__(self, *outcomes, gate: asyncio.Event | None = None):
        self.outcomes = list(outcomes)
        self.gate = gate
        self.created: list[HostIdentity] = []

    def __call__(self, host, settings=None):
        self.created.append(host)
        return FakeSession(self.outcomes.pop(0), self.gate)


@pytest.fixture
def validator():
    mock = MagicMock()
    mock.validate = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def telemetry():
    return LoggingTelemetry()


@pytest.fixture
def make_store(mock_keyring, validator, telemetry):
    def factory(sessions=None, prompter=None):
        return CredentialStore(
            HostConfiguration(),
            telemetry,
            prompter or ScriptedPrompter(),
            session_factory=sessions or ScriptedSessions(),
            validator=validator,
            settings=Settings(),
        )

    return factory


class TestHasCredential:
    """Tests for has_credential and get_credential."""

    @pytest.mark.asyncio
    async def test_nothing_stored(self, make_store, validator):
        store = make_store()

        assert not await store.has_credential(REMOTE)
        assert store.get_credential(REMOTE) is None
        validator.validate.assert_not_awaited()

        indicator = store.status_indicator(REMOTE)
        assert indicator.text == "Sign in to bitbucket.org"
        assert indicator.command == "bbpr login --host bitbucket.org"
        assert indicator.visible

    @pytest.mark.asyncio
    async def test_stored_token_validated_once(self, make_store, validator, mock_keyring):
        """A valid stored token is checked once and then served from cache."""
        HostConfiguration(HOST).update("oauth", "AT1", "RT1")
        validator.validate.return_value = CREDENTIAL
        store = make_store()

        assert await store.has_credential(REMOTE)
        assert await store.has_credential("https://bitbucket.org/owner/repo")

        validator.validate.assert_awaited_once_with(HOST, "oauth", "AT1", "RT1")
        client = store.get_credential(HOST)
        assert isinstance(client, BitbucketClient)
        assert client.credential == CREDENTIAL
        assert store.status_indicator(HOST).text == "Signed in to bitbucket.org"

    @pytest.mark.asyncio
    async def test_rejected_token_removed(self, make_store, validator, mock_keyring):
        """An invalid stored token is deleted and not checked again."""
        HostConfiguration(HOST).update("oauth", "expired", None)
        store = make_store()

        assert not await store.has_credential(REMOTE)
        assert not await store.has_credential(REMOTE)

        validator.validate.assert_awaited_once()
        assert mock_keyring.store == {}


class TestLogin:
    """Tests for login and its retry loop."""

    @pytest.mark.asyncio
    async def test_success(self, make_store, telemetry, mock_keyring):
        """A successful attempt persists, caches and announces the credential."""
        prompter = ScriptedPrompter()
        store = make_store(ScriptedSessions(CREDENTIAL), prompter)

        client = await store.login(REMOTE)

        assert client is store.get_credential(HOST)
        assert client.credential == CREDENTIAL
        assert HostConfiguration(HOST).token == "AT1"
        assert prompter.notices == ["You are now signed in to bitbucket.org"]
        assert telemetry.counts == {AUTH_START: 1, AUTH_SUCCESS: 1}
        assert store.login_state(REMOTE) is LoginState.SUCCEEDED
        assert store.status_indicator(REMOTE).text == "Signed in to bitbucket.org"

    @pytest.mark.asyncio
    async def test_concurrent_logins_share_one_session(self, make_store, telemetry):
        gate = asyncio.Event()
        sessions = ScriptedSessions(CREDENTIAL, gate=gate)
        store = make_store(sessions)

        first = asyncio.ensure_future(store.login(REMOTE))
        second = asyncio.ensure_future(store.login("https://bitbucket.org/other/repo"))
        while not sessions.created:
            await asyncio.sleep(0)
        assert store.login_state(HOST) is LoginState.ATTEMPTING
        gate.set()
        results = await asyncio.gather(first, second)

        assert len(sessions.created) == 1
        assert results[0] is results[1]
        assert telemetry.counts[AUTH_START] == 1

    @pytest.mark.asyncio
    async def test_concurrent_logins_share_failure(self, make_store):
        """An unexpected error reaches every waiting caller."""
        gate = asyncio.Event()
        sessions = ScriptedSessions(RuntimeError("boom"), gate=gate)
        store = make_store(sessions)

        first = asyncio.ensure_future(store.login(REMOTE))
        second = asyncio.ensure_future(store.login(REMOTE))
        while not sessions.created:
            await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert len(sessions.created) == 1
        assert all(isinstance(r, RuntimeError) for r in results)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_login(self, make_store):
        gate = asyncio.Event()
        store = make_store(ScriptedSessions(CREDENTIAL, gate=gate))

        impatient = asyncio.ensure_future(store.login(REMOTE))
        patient = asyncio.ensure_future(store.login(REMOTE))
        await asyncio.sleep(0)
        impatient.cancel()
        gate.set()

        assert (await patient).credential == CREDENTIAL
        assert impatient.cancelled()

    @pytest.mark.asyncio
    async def test_retry_until_success(self, make_store, telemetry):
        """Two failures and two retries end in one success."""
        sessions = ScriptedSessions(
            NetworkError("refused"), AuthorizationDenied("access_denied"), CREDENTIAL
        )
        prompter = ScriptedPrompter(TRY_AGAIN, TRY_AGAIN)
        store = make_store(sessions, prompter)

        client = await store.login(REMOTE)

        assert client is not None
        assert len(sessions.created) == 3
        assert telemetry.counts == {AUTH_START: 1, AUTH_FAIL: 2, AUTH_SUCCESS: 1}
        assert prompter.confirms == [
            ("Error signing in to bitbucket.org", [TRY_AGAIN], True),
            ("Error signing in to bitbucket.org", [TRY_AGAIN], True),
        ]

    @pytest.mark.asyncio
    async def test_decline_retry(self, make_store, telemetry):
        sessions = ScriptedSessions(NetworkError("refused"), NetworkError("refused"))
        store = make_store(sessions, ScriptedPrompter(TRY_AGAIN, None))

        assert await store.login(REMOTE) is None

        assert len(sessions.created) == 2
        assert telemetry.counts == {AUTH_START: 1, AUTH_FAIL: 2}
        assert store.login_state(REMOTE) is LoginState.FAILED_TERMINAL
        assert store.get_credential(REMOTE) is None

    @pytest.mark.asyncio
    async def test_stored_token_removed_drops_client(self, make_store):
        store = make_store(ScriptedSessions(CREDENTIAL))
        await store.login(REMOTE)

        store.configuration.remove_host(HOST)

        assert store.get_credential(HOST) is None
        assert store.status_indicator(HOST).text == "Sign in to bitbucket.org"


class TestConfirmation:
    """Tests for login_with_confirmation and require_client."""

    @pytest.mark.asyncio
    async def test_decline_is_remembered(self, make_store, telemetry, validator):
        prompter = ScriptedPrompter(None)
        store = make_store(prompter=prompter)

        assert await store.login_with_confirmation(REMOTE) is None

        assert prompter.confirms == [
            (
                "In order to use the Pull Requests functionality, "
                "you need to sign in to bitbucket.org",
                [SIGNIN_COMMAND],
                False,
            )
        ]
        assert telemetry.counts == {AUTH_CANCEL: 1}
        assert await store.has_credential(REMOTE)
        assert store.get_credential(REMOTE) is None
        validator.validate.assert_not_awaited()

        with pytest.raises(UserDeclined):
            await store.require_client(REMOTE)
        assert len(prompter.confirms) == 1

    @pytest.mark.asyncio
    async def test_accept_logs_in(self, make_store, telemetry):
        store = make_store(ScriptedSessions(CREDENTIAL), ScriptedPrompter(SIGNIN_COMMAND))

        client = await store.login_with_confirmation(REMOTE)

        assert client.credential == CREDENTIAL
        assert telemetry.counts[AUTH_SUCCESS] == 1

    @pytest.mark.asyncio
    async def test_require_client_signs_in(self, make_store):
        store = make_store(ScriptedSessions(CREDENTIAL), ScriptedPrompter(SIGNIN_COMMAND))

        client = await store.require_client(REMOTE)

        assert client is store.get_credential(REMOTE)
        assert await store.require_client(REMOTE) is client

    @pytest.mark.asyncio
    async def test_require_client_uses_stored_token(self, make_store, validator):
        HostConfiguration(HOST).update("oauth", "AT1", "RT1")
        validator.validate.return_value = CREDENTIAL
        prompter = ScriptedPrompter()
        store = make_store(prompter=prompter)

        client = await store.require_client(REMOTE)

        assert client.credential == CREDENTIAL
        assert prompter.confirms == []


class TestReset:
    """Tests for reset."""

    @pytest.mark.asyncio
    async def test_reset_clears_cache_and_indicators(self, make_store):
        store = make_store(ScriptedSessions(CREDENTIAL))
        await store.login(REMOTE)
        indicator = store.status_indicator(REMOTE)

        store.reset()

        assert indicator.disposed
        assert not indicator.visible
        assert store.get_credential(REMOTE) is None
        assert store.login_state(REMOTE) is LoginState.IDLE
        assert store.status_indicator(REMOTE) is not indicator

    def test_reset_empty_store(self, make_store):
        make_store().reset()

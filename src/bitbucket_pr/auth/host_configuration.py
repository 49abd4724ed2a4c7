"""Persisted per-host credentials using keyring for secure storage."""

import json
import logging
from typing import Callable

import keyring

from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.models import Credential

logger = logging.getLogger(__name__)

SERVICE_NAME = "bitbucket-pr"

ChangeListener = Callable[["HostConfiguration"], None]


def _as_identity(host: HostIdentity | str) -> HostIdentity:
    return host if isinstance(host, HostIdentity) else HostIdentity.from_remote(host)


class HostConfiguration:
    """Username and tokens for the currently selected host.

    ``set_host`` loads whatever is stored for a host; ``update`` replaces the
    username, token and refresh token together, writes them to the keyring
    and notifies subscribers.
    """

    def __init__(self, host: HostIdentity | str | None = None):
        self.host: HostIdentity | None = None
        self.username: str | None = None
        self.token: str | None = None
        self.refresh: str | None = None
        self._listeners: list[ChangeListener] = []
        if host is not None:
            self.set_host(host)

    @staticmethod
    def _get_keyring_key(host: HostIdentity) -> str:
        """Get the keyring key for a host."""
        return f"{SERVICE_NAME}:{host}"

    def _load(self, host: HostIdentity) -> Credential | None:
        data_json = keyring.get_password(SERVICE_NAME, self._get_keyring_key(host))
        if not data_json:
            return None
        try:
            return Credential.from_dict(json.loads(data_json))
        except (json.JSONDecodeError, KeyError, ValueError):
            logger.warning(f"Ignoring unreadable stored credential for {host.authority}")
            return None

    def set_host(self, host: HostIdentity | str) -> None:
        """Select a host and load its stored credential, if any."""
        identity = _as_identity(host)
        stored = self._load(identity)
        self.host = identity
        self.username = stored.username if stored else None
        self.token = stored.access_token if stored else None
        self.refresh = stored.refresh_token if stored else None

    def remove_host(self, host: HostIdentity | str) -> bool:
        """Delete the stored credential for a host.

        Returns:
            True if a stored credential was deleted, False if none existed
        """
        identity = _as_identity(host)
        try:
            keyring.delete_password(SERVICE_NAME, self._get_keyring_key(identity))
            removed = True
        except keyring.errors.PasswordDeleteError:
            removed = False

        if identity == self.host and (self.username or self.token or self.refresh):
            self.username = self.token = self.refresh = None
            self._fire()
        return removed

    def update(
        self,
        username: str | None,
        token: str | None,
        refresh: str | None,
        raise_event: bool = True,
    ) -> bool:
        """Replace the stored credential for the current host.

        Returns:
            True if anything changed, False if the values were already stored
        """
        if self.host is None:
            raise RuntimeError("No host selected - call set_host() first")

        if (username, token, refresh) == (self.username, self.token, self.refresh):
            return False

        credential = Credential(
            host=self.host, username=username, access_token=token, refresh_token=refresh
        )
        keyring.set_password(
            SERVICE_NAME, self._get_keyring_key(self.host), json.dumps(credential.to_dict())
        )
        self.username, self.token, self.refresh = username, token, refresh
        logger.debug(f"Stored credential for {self.host.authority}")

        if raise_event:
            self._fire()
        return True

    @property
    def credential(self) -> Credential | None:
        """The current host's credential, or None without a token."""
        if self.host is None or not self.token:
            return None
        return Credential(
            host=self.host,
            username=self.username,
            access_token=self.token,
            refresh_token=self.refresh,
        )

    def on_did_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Subscribe to changes; returns a function that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _fire(self) -> None:
        for listener in list(self._listeners):
            listener(self)

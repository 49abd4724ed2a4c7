"""Shared fixtures."""

from unittest.mock import patch

import pytest

from bitbucket_pr.config import reset_settings


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a temp dir and clear cached settings."""
    for name in ("BBPR_HOST", "BBPR_TIMEOUT", "BBPR_OPEN_BROWSER", "BBPR_OAUTH_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "config.yaml"
    with patch("bitbucket_pr.config.CONFIG_PATH", config_path), patch(
        "bitbucket_pr.cli.commands.config.CONFIG_PATH", config_path
    ):
        reset_settings()
        yield config_path
        reset_settings()


@pytest.fixture
def mock_keyring():
    """Mock keyring module backed by a dict."""
    import keyring.errors

    store: dict[tuple[str, str], str] = {}

    def delete_password(service, key):
        if (service, key) not in store:
            raise keyring.errors.PasswordDeleteError("not found")
        del store[(service, key)]

    with patch("bitbucket_pr.auth.host_configuration.keyring") as mock:
        mock.errors = keyring.errors
        mock.get_password.side_effect = lambda service, key: store.get((service, key))
        mock.set_password.side_effect = lambda service, key, value: store.__setitem__(
            (service, key), value
        )
        mock.delete_password.side_effect = delete_password
        mock.store = store
        yield mock

"""Normalized host identity used as the credential cache key.

A repository remote can be written many ways (``https://``, ``http://``,
``ssh://``, ``git://`` or the scp-like ``git@host:owner/repo.git``) but the
API is always reached over https, so all of them collapse to the same
``(scheme, authority)`` pair.
"""

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from bitbucket_pr.auth.constants import API_PATH_PREFIX, CLOUD_API_URL, CLOUD_AUTHORITY

_SCP_REMOTE = re.compile(r"^(?:[^@/]+@)?(?P<host>[^:/\[\]]+):(?P<path>.*)$")
_DEFAULT_PORTS = {"http": 80, "https": 443}
_SUPPORTED_SCHEMES = {"http", "https", "ssh", "git", "git+ssh", "ssh+git"}


@dataclass(frozen=True)
class HostIdentity:
    """A normalized ``scheme://authority`` pair."""

    scheme: str
    authority: str

    def __str__(self) -> str:
        return f"{self.scheme}://{self.authority}"

    @property
    def url(self) -> str:
        return str(self)

    @property
    def is_cloud(self) -> bool:
        """True for bitbucket.org itself."""
        return self.authority == CLOUD_AUTHORITY

    @property
    def api_base_url(self) -> str:
        """Base URL of the REST API for this host.

        bitbucket.org serves its API from a dedicated host; other
        installations serve it under ``/2.0`` on the same authority.
        """
        if self.is_cloud:
            return CLOUD_API_URL
        return f"{self.url}{API_PATH_PREFIX}"

    @classmethod
    def from_remote(cls, remote: str) -> "HostIdentity":
        """Derive the host identity from a remote URL or bare host name.

        Args:
            remote: Remote URL (any git protocol), ``host`` or ``host:port``

        Returns:
            Normalized HostIdentity with scheme ``https``

        Raises:
            ValueError: If no host name can be extracted
        """
        value = (remote or "").strip()
        if not value:
            raise ValueError("Remote URL cannot be empty")

        if "://" not in value:
            match = _SCP_REMOTE.match(value)
            if match and not match.group("path").isdigit():
                value = f"ssh://{match.group('host')}/{match.group('path')}"
            else:
                value = f"https://{value}"

        parsed = urlsplit(value)
        scheme = parsed.scheme.lower()
        if scheme not in _SUPPORTED_SCHEMES:
            raise ValueError(f"Unsupported remote protocol: {parsed.scheme}")

        hostname = parsed.hostname
        if not hostname:
            raise ValueError(f"No host in remote URL: {remote}")

        try:
            port = parsed.port
        except ValueError:
            raise ValueError(f"Invalid port in remote URL: {remote}")

        authority = f"[{hostname}]" if ":" in hostname else hostname
        # ssh and git ports are not API ports
        if scheme in _DEFAULT_PORTS and port and port != _DEFAULT_PORTS[scheme]:
            authority = f"{authority}:{port}"

        return cls("https", authority)

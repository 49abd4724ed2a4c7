"""Local HTTP listener that receives the OAuth authorization redirect.

The listener is single use: it is bound for one sign-in attempt, settles its
outcome with the first callback that reaches ``/`` and is closed when
:meth:`CallbackListener.start` returns or raises. Requests for other paths
(the stylesheet and images referenced by the success page) are served from
the bundled resource directory and never settle the outcome.
"""

import asyncio
import html
import logging
import secrets
import webbrowser
from pathlib import Path
from typing import Callable

from aiohttp import web

from bitbucket_pr.auth.constants import (
    AUTH_SUCCESS_PAGE,
    CALLBACK_PATH,
    CALLBACK_PORT,
    RESOURCE_DIR,
)
from bitbucket_pr.auth.exceptions import (
    AuthorizationDenied,
    CsrfMismatch,
    LoginTimeoutError,
    MalformedCallback,
    NetworkError,
)

logger = logging.getLogger(__name__)

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}

_CONTENT_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".ico": "image/x-icon",
}


def _error_page(title: str, detail: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><title>Bitbucket - {html.escape(title)}</title></head>
<body style="font-family: system-ui; text-align: center; padding: 50px;">
    <h1>{html.escape(title)}</h1>
    <p>{html.escape(detail)}</p>
    <p>Please close this window and try again.</p>
</body>
</html>
"""


class CallbackListener:
    """One-shot callback listener for a single sign-in attempt."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = CALLBACK_PORT,
        open_url: Callable[[str], object] = webbrowser.open,
        resource_dir: Path = RESOURCE_DIR,
        timeout: float | None = None,
    ):
        """Initialize the listener.

        Args:
            host: Interface to bind
            port: Port to bind (0 picks a free port)
            open_url: Browser launcher, called once with the authorization URL
            resource_dir: Directory holding the success page and its assets
            timeout: Seconds to wait for the callback (None waits forever)
        """
        self.host = host
        self._port = port
        self._open_url = open_url
        self._resource_dir = resource_dir
        self._timeout = timeout
        self._expected_state: str | None = None
        self._outcome: asyncio.Future[str] | None = None
        self._runner: web.AppRunner | None = None
        self._started = False
        self._closed = False

        # Fixed set of names; nothing outside the resource directory is reachable
        self._assets = (
            {p.name: p for p in resource_dir.iterdir() if p.is_file()}
            if resource_dir.is_dir()
            else {}
        )

    @property
    def port(self) -> int:
        """Port the listener is bound to (the configured port until bound)."""
        if self._runner is not None and self._runner.addresses:
            return self._runner.addresses[0][1]
        return self._port

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}{CALLBACK_PATH}"

    async def start(self, expected_state: str, authorize_url: str) -> str:
        """Listen, open the authorization page and wait for the callback.

        The socket is bound before the browser is opened so an immediate
        redirect cannot be missed, and it is closed again on every exit path.

        Args:
            expected_state: CSRF state the callback must echo back
            authorize_url: Provider URL to open in the browser

        Returns:
            The authorization code

        Raises:
            AuthorizationDenied: The provider returned an error
            CsrfMismatch: The state was missing or wrong
            MalformedCallback: Valid state but no code
            LoginTimeoutError: No callback before the timeout
            NetworkError: The port could not be bound
        """
        if self._started:
            raise RuntimeError("CallbackListener can only be started once")
        self._started = True
        self._expected_state = expected_state
        self._outcome = asyncio.get_running_loop().create_future()

        try:
            await self._bind()
            self._launch_browser(authorize_url)
            try:
                return await asyncio.wait_for(
                    asyncio.shield(self._outcome), timeout=self._timeout
                )
            except asyncio.TimeoutError:
                self._settle(
                    exception=LoginTimeoutError(
                        f"No callback received within {self._timeout} seconds. "
                        "Please ensure you completed the authorization in your browser."
                    )
                )
                return await self._outcome
        finally:
            self._expected_state = None
            await self.close()

    async def close(self) -> None:
        """Close the listening socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._outcome is not None and not self._outcome.done():
            self._outcome.cancel()
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()
            logger.debug("OAuth callback listener closed")

    async def _bind(self) -> None:
        app = web.Application()
        app.router.add_get(CALLBACK_PATH, self._handle_callback)
        app.router.add_get("/{name}", self._handle_asset)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self._port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            raise NetworkError(
                f"Could not listen for the OAuth callback on port {self._port}: {e}"
            ) from e
        self._runner = runner
        logger.info(f"OAuth callback listener started on port {self.port}")

    def _launch_browser(self, url: str) -> None:
        try:
            self._open_url(url)
        except Exception as e:
            logger.warning(f"Could not open browser automatically: {e}")

    def _settle(self, result: str | None = None, exception: Exception | None = None) -> bool:
        """Settle the outcome once; later attempts are ignored."""
        if self._outcome is None or self._outcome.done():
            logger.debug("Ignoring callback outcome, listener already settled")
            return False
        if exception is not None:
            self._outcome.set_exception(exception)
        else:
            self._outcome.set_result(result)
        return True

    async def _respond(
        self, request: web.Request, status: int, body: bytes, content_type: str = "text/html"
    ) -> web.Response:
        # Fully written before the caller settles the outcome
        response = web.Response(
            status=status, body=body, content_type=content_type, headers=_SECURITY_HEADERS
        )
        await response.prepare(request)
        await response.write_eof()
        return response

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Handle the provider redirect to ``/``."""
        logger.info("Received OAuth callback")
        params = request.query

        if self._outcome is None or self._outcome.done():
            return await self._respond(
                request, 410, _error_page("Already handled", "This sign-in request was already completed.").encode()
            )

        error = params.get("error")
        if error:
            description = params.get("error_description")
            logger.error(f"OAuth error: {error} - {description}")
            response = await self._respond(
                request, 400, _error_page("Authorization Failed", description or error).encode()
            )
            self._settle(exception=AuthorizationDenied(error, description))
            return response

        state = params.get("state")
        expected = (self._expected_state or "").encode("utf-8")
        if not state or not secrets.compare_digest(state.encode("utf-8"), expected):
            logger.error("OAuth callback state did not match")
            response = await self._respond(
                request, 400, _error_page("Authorization Failed", "Invalid state parameter.").encode()
            )
            self._settle(exception=CsrfMismatch())
            return response

        code = params.get("code")
        if not code:
            logger.error("No authorization code in callback")
            response = await self._respond(
                request, 400, _error_page("Authorization Failed", "No authorization code received.").encode()
            )
            self._settle(exception=MalformedCallback("No authorization code in callback"))
            return response

        response = await self._respond_success(request)
        logger.info("Authorization code received successfully")
        self._settle(result=code)
        return response

    async def _respond_success(self, request: web.Request) -> web.Response:
        page = self._assets.get(AUTH_SUCCESS_PAGE)
        try:
            if page is None:
                raise FileNotFoundError(AUTH_SUCCESS_PAGE)
            body = page.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read success page: {e}")
            return await self._respond(request, 404, b"404: File Not Found!", "text/plain")
        return await self._respond(request, 200, body)

    async def _handle_asset(self, request: web.Request) -> web.Response:
        """Serve a file from the fixed resource set."""
        path = self._assets.get(request.match_info["name"])
        if path is None:
            return web.Response(status=404, text="404: File Not Found!")
        try:
            body = path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read resource {path.name}: {e}")
            return web.Response(status=404, text="404: File Not Found!")
        content_type = _CONTENT_TYPES.get(path.suffix, "application/octet-stream")
        return web.Response(body=body, content_type=content_type, headers=_SECURITY_HEADERS)

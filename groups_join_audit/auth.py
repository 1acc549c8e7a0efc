"""
Google OAuth authentication for the audit command.

Reuses the cached token when it is still valid. Otherwise runs the
authorization code flow against a short-lived local callback server:
the user opens the printed URL, Google redirects the browser to
http://localhost:8080/ with the code, and the code is exchanged for a token
that is cached for the next run.
"""

import logging
import socket
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

from flask import Flask, request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from werkzeug.serving import make_server

from .audit import SETTINGS_SCOPE
from .directory import DIRECTORY_SCOPE
from .exceptions import AuditError, ConfigError
from .token_store import load_token, save_token

logger = logging.getLogger(__name__)

SCOPES = [DIRECTORY_SCOPE, SETTINGS_SCOPE]

CONFIRMATION_BODY = "Authentication complete. You can close this window."
PLAIN_TEXT = {'Content-Type': 'text/plain; charset=utf-8'}

# Lets the confirmation page reach the browser before the listener stops
SHUTDOWN_GRACE = 1.0


class AuthorizationError(AuditError):
    """Raised when the browser callback reports an authorization error."""
    pass


class OAuthStateError(AuthorizationError):
    """Raised when OAuth state parameter validation fails.

    This could indicate a CSRF attempt or a callback from an older flow.
    """
    pass


class AuthorizationTimeoutError(AuthorizationError):
    """Raised when no callback arrives within the configured timeout."""
    pass


class CallbackServerError(AuditError):
    """Raised when the local callback server cannot listen."""
    pass


class TokenExchangeError(AuditError):
    """Raised when the authorization code cannot be exchanged for a token."""
    pass


def build_flow(config):
    """
    Create and return a Google OAuth flow for the configured client.

    Args:
        config: Config with the client secret and callback address

    Returns:
        Flow: Configured Google OAuth flow

    Raises:
        ConfigError: If the client secret cannot be turned into a flow
    """
    client_config = config.get_client_config()
    try:
        return Flow.from_client_config(
            client_config=client_config,
            scopes=SCOPES,
            redirect_uri=config.redirect_uri,
        )
    except ValueError as e:
        raise ConfigError(f"Unable to parse client secret file to config: {e}") from e


def create_callback_app(code_future: Future, expected_state: Optional[str] = None) -> Flask:
    """
    Build the Flask app that receives the OAuth redirect.

    The app is created per authorization and only knows about its own
    future, so nothing is registered globally.

    Args:
        code_future: Future resolved with the authorization code
        expected_state: State value sent with the authorization URL (optional)

    Returns:
        Flask: Application with a single ``/`` route
    """
    app = Flask(__name__)

    @app.route('/')
    def oauth_callback():
        """Handle OAuth callback from Google."""
        if code_future.done():
            return "Authorization already received.", 409, PLAIN_TEXT

        error = request.args.get('error')
        if error:
            code_future.set_exception(AuthorizationError(f"Authorization failed: {error}"))
            return f"Authentication error: {error}", 400, PLAIN_TEXT

        state = request.args.get('state')
        if expected_state is not None and state != expected_state:
            logger.warning(
                f"OAuth state mismatch - possible CSRF attempt. "
                f"Expected: {expected_state}, Got: {state}, "
                f"IP: {request.remote_addr}"
            )
            code_future.set_exception(OAuthStateError("Invalid authentication state"))
            return "Authentication failed: invalid state", 400, PLAIN_TEXT

        code = request.args.get('code')
        if not code:
            return "Missing authorization code", 400, PLAIN_TEXT

        code_future.set_result(code)
        return CONFIRMATION_BODY, 200, PLAIN_TEXT

    return app


def _listen(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ':' in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(5)
    except OSError:
        sock.close()
        raise
    return sock


class CallbackServer:
    """Local HTTP server running a WSGI app on a background thread."""

    def __init__(self, app, host: str, port: int):
        # werkzeug exits the process on bind errors, so bind here and hand over the socket
        try:
            sock = _listen(host, port)
        except OSError as e:
            raise CallbackServerError(f"Could not listen on {host}:{port}: {e}") from e
        try:
            self._server = make_server(host, port, app, threaded=False, fd=sock.fileno())
        finally:
            sock.close()
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._started = False
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        return self._server.socket.getsockname()[1]

    def start(self):
        logger.debug(f"Callback server listening on port {self.port}")
        self._thread.start()
        self._started = True

    def shutdown(self, grace: float = 0.0):
        """
        Stop the server.

        Args:
            grace: Seconds to wait before stopping; when set the call returns at once
        """
        if grace > 0:
            timer = threading.Timer(grace, self._stop)
            timer.daemon = True
            timer.start()
        else:
            self._stop()

    def _stop(self):
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        if self._started:
            self._server.shutdown()
        self._server.server_close()
        logger.debug("Callback server stopped")


def exchange_code(flow, code: str) -> Credentials:
    """
    Exchange an authorization code for credentials.

    Args:
        flow: Flow that produced the authorization URL
        code: Authorization code from Google

    Returns:
        Credentials: The new credentials, including the refresh token

    Raises:
        TokenExchangeError: If the token endpoint rejects the code or cannot be reached
    """
    try:
        flow.fetch_token(code=code)
    except Exception as e:
        logger.error(f"Token exchange failed: {type(e).__name__}: {e}")
        raise TokenExchangeError(f"Unable to retrieve token from web: {e}") from e
    return flow.credentials


def get_token_from_web(config) -> Credentials:
    """
    Run the browser authorization and return the new credentials.

    Blocks until the callback arrives or the configured timeout passes.

    Args:
        config: Config with the client secret, callback address and timeout

    Returns:
        Credentials: Credentials obtained from the authorization code

    Raises:
        CallbackServerError: If the callback server cannot listen
        AuthorizationError: If the callback reports an error or times out
        TokenExchangeError: If the code exchange fails
    """
    flow = build_flow(config)
    authorization_url, state = flow.authorization_url(access_type='offline')

    code_future = Future()
    server = CallbackServer(
        create_callback_app(code_future, expected_state=state),
        config.callback_host,
        config.callback_port,
    )
    server.start()

    print(f"Go to the following link in your browser and complete the authentication: \n{authorization_url}")
    try:
        code = code_future.result(timeout=config.callback_timeout)
    except FutureTimeoutError:
        server.shutdown()
        raise AuthorizationTimeoutError(
            f"No authorization received within {config.callback_timeout} seconds"
        ) from None
    except BaseException:
        server.shutdown()
        raise

    server.shutdown(grace=SHUTDOWN_GRACE)
    logger.info("Authorization code received")
    return exchange_code(flow, code)


def get_credentials(config) -> Credentials:
    """
    Get credentials from the token cache or a new browser authorization.

    The cached credentials carry the refresh token and client details, so
    the HTTP layer can refresh the access token on its own once it expires.

    Args:
        config: Config for this run

    Returns:
        Credentials: Credentials for the Directory and Groups Settings APIs
    """
    # The client secret is required even when a cached token is reused
    config.get_client_config()

    credentials = load_token(config.token_path, SCOPES)
    if credentials is None or not credentials.valid:
        logger.info("No valid cached token, starting browser authorization")
        credentials = get_token_from_web(config)
        save_token(config.token_path, credentials)
    else:
        print("Reusing existing token.")

    return credentials

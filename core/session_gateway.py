"""Google account session handling for SheetStock.

The gateway owns the OAuth credentials for the running process and exposes
the sign-in state to the rest of the application through a small
subscription interface.  Listeners are told about every real transition
exactly once; signing in while signed in (or out while signed out) does
nothing.  Credentials live in memory only.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from google.auth import jwt
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from core.scheduler import Scheduler
from settings import EditorSettings

logger = logging.getLogger(__name__)

SignInListener = Callable[[bool], None]
ErrorCallback = Callable[["AuthError"], None]
FlowFactory = Callable[[EditorSettings], Any]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class AuthError(Exception):
    """Raised when initialisation, sign-in or sign-out cannot complete."""


def _client_config(settings: EditorSettings) -> Dict[str, Dict[str, object]]:
    return {
        "installed": {
            "client_id": settings.client_id,
            "client_secret": settings.client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [settings.redirect_uri],
        }
    }


def default_flow_factory(settings: EditorSettings) -> InstalledAppFlow:
    """Create the installed-app OAuth flow described by ``settings``."""

    if settings.client_secrets_file:
        return InstalledAppFlow.from_client_secrets_file(settings.client_secrets_file, settings.scopes)
    return InstalledAppFlow.from_client_config(_client_config(settings), settings.scopes)


def _discovery_options(api: str, discovery_docs: Sequence[str]) -> Dict[str, object]:
    for url in discovery_docs:
        if f"{api}.googleapis.com" in url or f"/apis/{api}/" in url:
            return {"discoveryServiceUrl": url, "static_discovery": False}
    return {"static_discovery": True}


def _email_from_credentials(credentials) -> Optional[str]:
    token = getattr(credentials, "id_token", None)
    if not token:
        return None
    try:
        claims = jwt.decode(token, verify=False)
    except ValueError:
        logger.debug("Could not decode the ID token returned by Google", exc_info=True)
        return None
    email = claims.get("email")
    return str(email) if email else None


class SessionGateway:
    """Expose the Google sign-in state and the actions that change it."""

    def __init__(
        self,
        settings: EditorSettings,
        scheduler: Scheduler,
        *,
        flow_factory: Optional[FlowFactory] = None,
        error_callback: Optional[ErrorCallback] = None,
    ) -> None:
        self._settings = settings
        self._scheduler = scheduler
        self._flow_factory = flow_factory or default_flow_factory
        self.error_callback = error_callback
        self._listeners: List[SignInListener] = []
        self._credentials = None
        self._account_email: Optional[str] = None
        self._signed_in = False
        self._signing_in = False
        self._initialized = False
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> "SessionGateway":
        """Validate the OAuth configuration; raises :class:`AuthError` when unusable."""

        settings = self._settings
        if not settings.client_id and not settings.client_secrets_file:
            self.last_error = "An OAuth client ID or client secrets file must be configured."
            raise AuthError(self.last_error)
        if settings.client_secrets_file and not os.path.exists(settings.client_secrets_file):
            self.last_error = f"Client secrets file not found: {settings.client_secrets_file}"
            raise AuthError(self.last_error)
        if not settings.scopes:
            self.last_error = "At least one OAuth scope must be configured."
            raise AuthError(self.last_error)
        self._initialized = True
        self.last_error = None
        logger.info("Session gateway initialised for client %s", settings.client_id or settings.client_secrets_file)
        return self

    def currently_signed_in(self) -> bool:
        return self._signed_in

    @property
    def credentials(self):
        return self._credentials

    @property
    def account_email(self) -> Optional[str]:
        return self._account_email

    def subscribe(self, listener: SignInListener) -> Callable[[], None]:
        """Register ``listener`` for sign-in transitions and return an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def sign_in(self) -> None:
        if self._signed_in or self._signing_in:
            return
        if not self._initialized:
            self._fail(AuthError("The Google client has not been initialised."))
            return
        self._signing_in = True
        self._scheduler.submit(self._run_flow, self._on_flow_complete, self._on_flow_failed)

    def sign_out(self) -> None:
        if not self._signed_in:
            return
        self._credentials = None
        self._account_email = None
        logger.info("Signed out of Google")
        self._set_signed_in(False)

    def build_services(self) -> Tuple[Any, Any]:
        """Return ``(sheets, drive)`` API resources for the signed-in account."""

        if self._credentials is None:
            raise AuthError("Not signed in to Google.")
        settings = self._settings
        developer_key = settings.api_key or None
        sheets = build(
            "sheets",
            "v4",
            credentials=self._credentials,
            developerKey=developer_key,
            cache_discovery=False,
            **_discovery_options("sheets", settings.discovery_docs),
        )
        drive = build(
            "drive",
            "v3",
            credentials=self._credentials,
            developerKey=developer_key,
            cache_discovery=False,
            **_discovery_options("drive", settings.discovery_docs),
        )
        return sheets, drive

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run_flow(self):
        flow = self._flow_factory(self._settings)
        redirect = urlparse(self._settings.redirect_uri)
        return flow.run_local_server(
            host=redirect.hostname or "localhost",
            port=redirect.port or 0,
            prompt="select_account",
        )

    def _on_flow_complete(self, credentials) -> None:
        self._signing_in = False
        if credentials is None:
            self._fail(AuthError("Google sign-in returned no credentials."))
            return
        self._credentials = credentials
        self._account_email = _email_from_credentials(credentials)
        self.last_error = None
        logger.info("Signed in to Google as %s", self._account_email or "unknown account")
        self._set_signed_in(True)

    def _on_flow_failed(self, exc: Exception) -> None:
        self._signing_in = False
        logger.warning("Google sign-in failed: %s", exc, exc_info=True)
        self._fail(AuthError(str(exc) or "Failed to sign in"))

    def _fail(self, error: AuthError) -> None:
        self.last_error = str(error)
        if self.error_callback is None:
            return
        try:
            self.error_callback(error)
        except Exception:  # pragma: no cover - UI callback guard
            logger.debug("Auth error callback failed", exc_info=True)

    def _set_signed_in(self, value: bool) -> None:
        if value == self._signed_in:
            return
        self._signed_in = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.debug("Sign-in listener failed", exc_info=True)


__all__ = [
    "AuthError",
    "SessionGateway",
    "default_flow_factory",
]

"""Google OAuth authorization using Authlib.

This module provides the authorization provider used by the Sheets adapter:
- Lazy loading of the OAuth client secret and the stored token
- Automatic token refresh with scope preservation
- Token storage as JSON readable by ``Credentials.from_authorized_user_info``

The token lives at ``<token_dir>/<token_file>``. Nothing is read from disk
until the first call that needs the session, so constructing a provider is
free of I/O. One provider may be shared by concurrent adapter calls running
in worker threads; session creation, refresh and token writes are serialized.
"""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import requests
from authlib.integrations.requests_client import OAuth2Session
from authlib.oauth2 import OAuth2Error
from google.oauth2.credentials import Credentials as GoogleCredentials

from gsheets_model.google.exceptions import (
    AuthorizationRequired,
    CredentialsNotFoundError,
    ScopeMismatchError,
    TokenError,
)

logger = logging.getLogger(__name__)


# Short names accepted in place of full scope URLs
SCOPES = {
    "sheets": "https://www.googleapis.com/auth/spreadsheets",
    "sheets_readonly": "https://www.googleapis.com/auth/spreadsheets.readonly",
    "drive": "https://www.googleapis.com/auth/drive",
    "drive_readonly": "https://www.googleapis.com/auth/drive.readonly",
    "drive_file": "https://www.googleapis.com/auth/drive.file",
}


def _expiry_to_timestamp(expiry: str | float | None) -> float | None:
    """Parse a stored expiry (ISO-8601 or epoch seconds) to epoch seconds."""
    if expiry and isinstance(expiry, str):
        return datetime.fromisoformat(expiry.replace("Z", "+00:00")).timestamp()
    return expiry


def _timestamp_to_expiry(expires_at: float | None) -> str | None:
    """Format epoch seconds the way google-auth writes token expiry."""
    if not expires_at:
        return None
    dt = datetime.fromtimestamp(expires_at, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


class GoogleAuth:
    """Google OAuth authorization provider.

    Hands out authorized ``google.oauth2.credentials.Credentials`` for the
    requested scopes, refreshing the stored token when it has expired.

    Example:
        >>> auth = GoogleAuth(
        ...     "https://www.googleapis.com/auth/spreadsheets",
        ...     token_file="token.json",
        ...     token_dir="~/.config/gsheets-model",
        ...     client_secret_file="client_secret.json",
        ... )
        >>> if not auth.is_authorized():
        ...     print(f"Visit: {auth.get_authorization_url()}")
        ...     auth.fetch_token(input("Paste redirect URL: "))
        >>> creds = auth.authorize()
    """

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(
        self,
        scopes: str,
        token_file: str | Path,
        token_dir: str | Path,
        client_secret_file: str | Path,
    ):
        """Initialize the provider.

        Args:
            scopes: Space-separated scopes, as short names (e.g. "sheets")
                   or full URLs.
            token_file: Name of the token file inside ``token_dir``.
            token_dir: Directory holding the token file.
            client_secret_file: Path to the OAuth client secret JSON.
        """
        self.token_dir = Path(token_dir).expanduser()
        self.token_path = self.token_dir / token_file
        self.client_secret_path = Path(client_secret_file).expanduser()

        self.required_scopes = [SCOPES.get(scope, scope) for scope in scopes.split()]

        self.client_id: str | None = None
        self.client_secret: str | None = None
        self._session: OAuth2Session | None = None
        # Reentrant: authorize() -> get_credentials() -> session -> _save_token()
        self._lock = threading.RLock()

        self._state: str | None = None
        self.last_refresh: datetime | None = None
        self.refresh_count = 0

    def _missing_scopes(self, granted: set[str]) -> set[str]:
        return set(self.required_scopes) - granted

    @property
    def session(self) -> OAuth2Session:
        """OAuth2 session, created on first use from the client secret and stored token."""
        with self._lock:
            if self._session is None:
                self.client_id, self.client_secret = self._load_client_credentials()
                self._session = OAuth2Session(
                    client_id=self.client_id,
                    client_secret=self.client_secret,
                    scope=" ".join(self.required_scopes),
                    redirect_uri="http://localhost:0",
                    token=self._load_token(),
                    update_token=self._save_token,
                    token_endpoint=self.TOKEN_URL,
                    grant_type="refresh_token",
                    token_endpoint_auth_method="client_secret_post",
                )
            return self._session

    def _load_client_credentials(self) -> tuple[str, str]:
        """Read client id and secret from an 'installed' or 'web' client secret file."""
        if not self.client_secret_path.exists():
            raise CredentialsNotFoundError(str(self.client_secret_path))

        with open(self.client_secret_path) as f:
            secret = json.load(f)

        app = secret.get("installed") or secret.get("web")
        if not app:
            raise ValueError(
                "Invalid client secret format. Expected 'installed' or 'web' key."
            )
        return app["client_id"], app["client_secret"]

    def _load_token(self) -> dict[str, Any] | None:
        """Load the stored token in Authlib form, or None if absent or unusable."""
        if not self.token_path.exists():
            logger.info(f"No existing token found at {self.token_path}")
            return None

        try:
            with open(self.token_path) as f:
                stored = json.load(f)
            expires_at = _expiry_to_timestamp(stored.get("expiry"))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load token: {e}")
            return None

        granted = set(stored.get("scopes", []))
        missing = self._missing_scopes(granted)
        if missing:
            logger.warning(f"Token missing required scopes: {missing}")
            return None

        logger.info(f"Loaded token from {self.token_path}")
        return {
            "access_token": stored.get("token"),
            "refresh_token": stored.get("refresh_token"),
            "token_type": stored.get("type", "Bearer"),
            "expires_at": expires_at,
            "scope": " ".join(stored.get("scopes", [])),
        }

    def _save_token(
        self,
        token: dict[str, Any],
        refresh_token: str | None = None,
        access_token: str | None = None,
    ):
        """Persist a token; also Authlib's ``update_token`` hook after refresh."""
        if access_token:
            token["access_token"] = access_token
        if refresh_token:
            token["refresh_token"] = refresh_token

        granted = set(token.get("scope", "").split())
        missing = self._missing_scopes(granted)
        if missing:
            raise ScopeMismatchError(missing)

        stored = {
            "token": token["access_token"],
            "refresh_token": token.get("refresh_token"),
            "token_uri": self.TOKEN_URL,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scopes": sorted(granted),
            "type": token.get("token_type", "Bearer"),
            "expiry": _timestamp_to_expiry(token.get("expires_at")),
        }

        with self._lock:
            self.token_dir.mkdir(parents=True, exist_ok=True)
            with open(self.token_path, "w") as f:
                json.dump(stored, f, indent=2)

            self.last_refresh = datetime.now()
            self.refresh_count += 1

        logger.info(f"Token saved to {self.token_path}")

    def _is_expired(self, token: dict[str, Any]) -> bool:
        expires_at = token.get("expires_at")
        return bool(expires_at) and expires_at < datetime.now().timestamp()

    def is_authorized(self) -> bool:
        """Check if a token with all required scopes is available."""
        token = self.session.token
        if not token:
            return False
        return not self._missing_scopes(set(token.get("scope", "").split()))

    def get_authorization_url(self) -> str:
        """Start the OAuth consent flow and return the URL the user must visit."""
        authorization_url, state = self.session.create_authorization_url(
            self.AUTHORIZE_URL,
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
        )

        self._state = state
        return authorization_url

    def fetch_token(self, authorization_response: str) -> dict[str, Any]:
        """Complete the consent flow and persist the token.

        Args:
            authorization_response: The full redirect URL from the OAuth callback.

        Returns:
            The fetched OAuth token dict.
        """
        with self._lock:
            token = self.session.fetch_token(
                self.TOKEN_URL,
                authorization_response=authorization_response,
                client_secret=self.client_secret,
            )
            self._save_token(token)
        return token

    def get_credentials(self) -> GoogleCredentials:
        """Get Google Credentials for API client libraries.

        Raises:
            TokenError: If not authorized or token refresh fails.
        """
        with self._lock:
            if not self.is_authorized():
                raise TokenError("Not authorized or missing required scopes")

            session = self.session
            # Checked under the lock so concurrent callers refresh once
            if self._is_expired(session.token):
                logger.info("Token expired, refreshing...")
                try:
                    session.refresh_token(
                        self.TOKEN_URL,
                        refresh_token=session.token.get("refresh_token"),
                    )
                except OAuth2Error as e:
                    raise TokenError(f"Failed to refresh token: {e}") from e

            token = dict(session.token)

        return GoogleCredentials(
            token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            token_uri=self.TOKEN_URL,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=self.required_scopes,
        )

    def authorize(self) -> GoogleCredentials:
        """Return authorized credentials, refreshing the token if needed.

        Raises:
            CredentialsNotFoundError: If the client secret file is missing.
            AuthorizationRequired: If there is no stored token with the
                required scopes.
            TokenError: If the token could not be refreshed.
        """
        with self._lock:
            if not self.is_authorized():
                raise AuthorizationRequired(
                    self.get_authorization_url(),
                    f"No usable token at {self.token_path}. "
                    "Run 'gsheets-model auth' to authorize.",
                )
            return self.get_credentials()

    def revoke_token(self):
        """Revoke the current token and clear local storage."""
        with self._lock:
            token = self.session.token
            if not token:
                logger.warning("No token to revoke")
                return

            try:
                self.session.post(self.REVOKE_URL, params={"token": token["access_token"]})
            except requests.RequestException as e:
                logger.warning(f"Failed to revoke token remotely: {e}")

            self.token_path.unlink(missing_ok=True)
            # Next use reloads from disk, where the token no longer exists
            self._session = None

        logger.info("Token revoked successfully")

    def get_token_info(self) -> dict[str, Any]:
        """Summarize the current token: status, scopes, time to expiry, refresh stats."""
        token = self.session.token
        if not token:
            return {"status": "no_token"}

        expires_at = token.get("expires_at")
        if expires_at:
            remaining = max(0, expires_at - datetime.now().timestamp())
            expires_in = str(timedelta(seconds=remaining))
        else:
            expires_in = "unknown"

        return {
            "status": "expired" if self._is_expired(token) else "valid",
            "scopes": token.get("scope", "").split(),
            "expires_in": expires_in,
            "has_refresh_token": bool(token.get("refresh_token")),
            "refresh_count": self.refresh_count,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
        }

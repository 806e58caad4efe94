"""Google OAuth authorization for the Sheets adapter."""

from gsheets_model.google.exceptions import (
    AuthorizationRequired,
    CredentialsNotFoundError,
    GoogleAuthError,
    ScopeMismatchError,
    TokenError,
)
from gsheets_model.google.oauth import SCOPES, GoogleAuth

__all__ = [
    "GoogleAuth",
    "SCOPES",
    "GoogleAuthError",
    "CredentialsNotFoundError",
    "TokenError",
    "ScopeMismatchError",
    "AuthorizationRequired",
]

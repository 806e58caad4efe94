"""Google authorization exceptions."""


class GoogleAuthError(Exception):
    """Base exception for Google authorization errors."""

    pass


class CredentialsNotFoundError(GoogleAuthError):
    """Raised when the OAuth client secret file is not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Client secret file not found at {path}. "
            "Please download OAuth credentials from Google Cloud Console."
        )


class TokenError(GoogleAuthError):
    """Raised when there's an issue with the OAuth token."""

    pass


class ScopeMismatchError(GoogleAuthError):
    """Raised when token scopes don't match required scopes."""

    def __init__(self, missing_scopes: set[str]):
        self.missing_scopes = missing_scopes
        super().__init__(f"Token missing required scopes: {missing_scopes}")


class AuthorizationRequired(GoogleAuthError):
    """Raised when no usable token exists and the user must grant consent."""

    def __init__(self, authorization_url: str, message: str | None = None):
        self.authorization_url = authorization_url
        super().__init__(
            message or f"Authorization required. Visit: {authorization_url}"
        )

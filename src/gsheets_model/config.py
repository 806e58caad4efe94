"""Adapter configuration from the environment.

Settings are read from environment variables, optionally seeded from a
``.env`` file in the working directory:

    GSHEETS_SCOPES              - comma-separated scopes (default: sheets)
    GSHEETS_TOKEN_FILE          - token file name (default: token.json)
    GSHEETS_TOKEN_DIR           - token directory (default: ~/.config/gsheets-model)
    GSHEETS_CLIENT_SECRET_FILE  - OAuth client secret (default: <token dir>/client_secret.json)
    GSHEETS_USER_ID             - user id (default: me)

Variables already present in the environment take precedence over ``.env``.
"""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_DIR = Path("~/.config/gsheets-model")
DEFAULT_TOKEN_FILE = "token.json"
DEFAULT_CLIENT_SECRET_FILE = "client_secret.json"
DEFAULT_SCOPES = ["sheets"]
DEFAULT_USER_ID = "me"


@dataclass
class ModelSettings:
    """Constructor arguments for ``GsheetsModel``."""

    google_scopes: list[str]
    token_file: str
    token_dir: str
    client_secret_file: str
    user_id: str = DEFAULT_USER_ID


def _load_env_file(env_path: Path) -> dict[str, str]:
    """Load environment variables from a file.

    Args:
        env_path: Path to .env file.

    Returns:
        Dictionary of loaded variables.
    """
    loaded = {}
    if not env_path.exists():
        return loaded

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            # Only set if not already in environment (env vars take precedence)
            if key and key not in os.environ:
                os.environ[key] = value
                loaded[key] = value

    return loaded


def parse_scopes(scope_str: str | None) -> list[str]:
    """Parse comma-separated scopes."""
    if not scope_str:
        return list(DEFAULT_SCOPES)
    return [s.strip() for s in scope_str.split(",") if s.strip()]


def load_model_settings(env_file: str | Path | None = None) -> ModelSettings:
    """Resolve adapter settings from ``.env`` and the environment.

    Args:
        env_file: Path to a .env file. Defaults to ``.env`` in the working directory.
    """
    _load_env_file(Path(env_file) if env_file else Path.cwd() / ".env")

    token_dir = os.environ.get("GSHEETS_TOKEN_DIR") or str(DEFAULT_CONFIG_DIR)
    client_secret_file = os.environ.get("GSHEETS_CLIENT_SECRET_FILE") or str(
        Path(token_dir) / DEFAULT_CLIENT_SECRET_FILE
    )

    return ModelSettings(
        google_scopes=parse_scopes(os.environ.get("GSHEETS_SCOPES")),
        token_file=os.environ.get("GSHEETS_TOKEN_FILE") or DEFAULT_TOKEN_FILE,
        token_dir=token_dir,
        client_secret_file=client_secret_file,
        user_id=os.environ.get("GSHEETS_USER_ID") or DEFAULT_USER_ID,
    )

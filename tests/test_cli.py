"""Tests for the gsheets-model CLI and its configuration."""

import json
import os
import time
from unittest.mock import patch

import pytest

from gsheets_model import cli
from gsheets_model.config import load_model_settings, parse_scopes
from gsheets_model.google import GoogleAuth, TokenError

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"


def write_secret(path, secret=None):
    secret = secret or {"installed": {"client_id": "cid", "client_secret": "csecret"}}
    path.write_text(json.dumps(secret))


def write_token(path, expiry="2099-01-01T00:00:00Z"):
    token = {
        "token": "access",
        "refresh_token": "refresh",
        "scopes": [SHEETS_SCOPE],
        "expiry": expiry,
    }
    path.write_text(json.dumps(token))


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Point all settings at a temporary directory."""
    for key in list(os.environ):
        if key.startswith("GSHEETS_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("GSHEETS_TOKEN_DIR", str(tmp_path))
    return tmp_path


class TestConfig:
    """Test settings resolution."""

    def test_parse_scopes_default(self):
        """Should default to the sheets scope."""
        assert parse_scopes(None) == ["sheets"]

    def test_parse_scopes_strips(self):
        """Should split and strip comma-separated scopes."""
        assert parse_scopes(" sheets , drive_file,") == ["sheets", "drive_file"]

    def test_defaults(self, env):
        """Should fill defaults relative to the token directory."""
        settings = load_model_settings(env / "missing.env")
        assert settings.google_scopes == ["sheets"]
        assert settings.token_file == "token.json"
        assert settings.token_dir == str(env)
        assert settings.client_secret_file == str(env / "client_secret.json")
        assert settings.user_id == "me"

    def test_env_file_loaded(self, env, monkeypatch):
        """Should read settings from a .env file."""
        env_file = env / ".env"
        env_file.write_text(
            "# comment\n"
            'GSHEETS_TOKEN_FILE="sheets-token.json"\n'
            "GSHEETS_USER_ID='other'\n"
        )
        # Registered with monkeypatch so values loaded from the file are undone
        for key in ("GSHEETS_TOKEN_FILE", "GSHEETS_USER_ID"):
            monkeypatch.setenv(key, "")
            monkeypatch.delenv(key)

        settings = load_model_settings(env_file)

        assert settings.token_file == "sheets-token.json"
        assert settings.user_id == "other"

    def test_environment_takes_precedence(self, env, monkeypatch):
        """Should not override variables already in the environment."""
        env_file = env / ".env"
        env_file.write_text("GSHEETS_USER_ID=from-file\n")
        monkeypatch.setenv("GSHEETS_USER_ID", "from-env")

        assert load_model_settings(env_file).user_id == "from-env"


class TestCli:
    """Test CLI commands."""

    def test_no_command_prints_help(self, env, capsys):
        """Should print help and succeed without a command."""
        assert cli.main([]) == 0
        assert "gsheets-model" in capsys.readouterr().out

    def test_status_without_secret(self, env, capsys):
        """Should fail when the client secret is missing."""
        assert cli.main(["--env-file", str(env / "none.env"), "status"]) == 1
        assert "Client secret file not found" in capsys.readouterr().out

    def test_append_invalid_json(self, env, capsys):
        """Should reject --values that is not JSON."""
        code = cli.main(
            ["--env-file", str(env / "none.env"), "append", "SHEET1", "A1", "--values", "[["]
        )
        assert code == 1
        assert "Invalid JSON" in capsys.readouterr().out

    def test_append_calls_model(self, env, capsys):
        """Should map arguments onto append_value and print the response."""
        with patch("gsheets_model.sheets.GsheetsModel") as model_cls:

            async def fake_append(**kwargs):
                return {"updates": {"updatedRows": 1}, "echo": kwargs["ret_fields"]}

            model_cls.return_value.append_value = fake_append
            code = cli.main(
                [
                    "--env-file",
                    str(env / "none.env"),
                    "append",
                    "SHEET1",
                    "Sheet1!A1",
                    "--values",
                    '[["a", 1]]',
                    "--fields",
                    "updates.updatedRows,spreadsheetId",
                ]
            )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["echo"] == ["updates.updatedRows", "spreadsheetId"]

    def test_batch_get_auth_error(self, env, capsys):
        """Should print authorization errors and exit non-zero."""
        with patch("gsheets_model.sheets.GsheetsModel") as model_cls:

            async def failing_batch_get(**kwargs):
                raise TokenError("Failed to refresh token")

            model_cls.return_value.batch_get_values = failing_batch_get
            code = cli.main(
                ["--env-file", str(env / "none.env"), "batch-get", "SHEET1", "--ranges", "A1:B2"]
            )

        assert code == 1
        assert "Failed to refresh token" in capsys.readouterr().out

    def test_batch_get_bad_secret_format(self, env, capsys):
        """Should report an unreadable client secret instead of raising."""
        write_secret(env / "client_secret.json", {"other": {}})

        code = cli.main(
            ["--env-file", str(env / "none.env"), "batch-get", "SHEET1", "--ranges", "A1"]
        )

        assert code == 1
        assert "Invalid client secret format" in capsys.readouterr().out

    def test_batch_get_rejected_parameter(self, env, capsys):
        """Should report a parameter the client library rejects before sending."""
        write_secret(env / "client_secret.json")
        write_token(env / "token.json")

        code = cli.main(
            [
                "--env-file",
                str(env / "none.env"),
                "batch-get",
                "SHEET1",
                "--major-dimension",
                "DIAGONAL",
            ]
        )

        assert code == 1
        assert "majorDimension" in capsys.readouterr().out

    def test_status_bad_secret_format(self, env, capsys):
        """Should fail cleanly when the client secret has the wrong shape."""
        write_secret(env / "client_secret.json", {"other": {}})
        assert cli.main(["--env-file", str(env / "none.env"), "status"]) == 1
        assert "Invalid client secret format" in capsys.readouterr().out

    def test_status_valid_token(self, env, capsys):
        """Should print the token status."""
        write_secret(env / "client_secret.json")
        write_token(env / "token.json")

        assert cli.main(["--env-file", str(env / "none.env"), "status"]) == 0
        assert "Status     : valid" in capsys.readouterr().out


class TestAuthCommand:
    """Test the interactive auth command."""

    @pytest.fixture
    def run_auth(self, env):
        write_secret(env / "client_secret.json")

        def run(*extra):
            return cli.main(["--env-file", str(env / "none.env"), "auth", *extra])

        return run

    def test_already_authorized(self, env, run_auth, capsys):
        """Should not prompt when a valid token exists."""
        write_token(env / "token.json")

        with patch("builtins.input") as prompt:
            assert run_auth() == 0

        prompt.assert_not_called()
        assert "Already authorized" in capsys.readouterr().out

    def test_no_redirect_url_aborts(self, run_auth, capsys):
        """Should abort when no redirect URL is pasted."""
        with (
            patch("builtins.input", return_value="  "),
            patch("gsheets_model.cli.webbrowser.open") as browser,
        ):
            assert run_auth() == 1

        browser.assert_called_once()
        assert "accounts.google.com" in browser.call_args.args[0]
        assert "No URL provided" in capsys.readouterr().out

    def test_consent_saves_token(self, env, run_auth, capsys):
        """Should exchange the pasted redirect URL and show the new status."""

        def fake_fetch(self, redirect_url):
            write_token(env / "token.json")
            return {}

        with (
            patch("builtins.input", return_value="http://localhost:0/?code=abc&state=x"),
            patch("gsheets_model.cli.webbrowser.open") as browser,
            patch.object(GoogleAuth, "fetch_token", autospec=True, side_effect=fake_fetch) as fetch,
        ):
            assert run_auth("--no-browser") == 0

        browser.assert_not_called()
        assert fetch.call_args.args[1] == "http://localhost:0/?code=abc&state=x"
        assert "Token saved to" in capsys.readouterr().out

    def test_fetch_failure(self, run_auth, capsys):
        """Should report a failed token exchange."""
        with (
            patch("builtins.input", return_value="http://localhost:0/?error=access_denied"),
            patch.object(GoogleAuth, "fetch_token", side_effect=ValueError("access_denied")),
        ):
            assert run_auth("--no-browser") == 1

        assert "access_denied" in capsys.readouterr().out

    def test_expired_token_refreshed(self, env, run_auth, capsys):
        """Should refresh an expired token without prompting."""
        write_token(env / "token.json", expiry="2000-01-01T00:00:00Z")

        def fake_refresh(self):
            self.session.token["expires_at"] = time.time() + 3600
            write_token(env / "token.json")

        with (
            patch("builtins.input") as prompt,
            patch.object(GoogleAuth, "get_credentials", autospec=True, side_effect=fake_refresh),
        ):
            assert run_auth() == 0

        prompt.assert_not_called()
        assert "Token refreshed successfully!" in capsys.readouterr().out


class TestRevokeCommand:
    """Test the revoke command."""

    def test_revoke(self, env, capsys):
        """Should revoke through the provider."""
        write_secret(env / "client_secret.json")
        write_token(env / "token.json")

        with patch.object(GoogleAuth, "revoke_token") as revoke:
            assert cli.main(["--env-file", str(env / "none.env"), "revoke"]) == 0

        revoke.assert_called_once_with()
        assert "Token revoked" in capsys.readouterr().out

    def test_revoke_without_secret(self, env, capsys):
        """Should succeed with nothing to revoke when no client secret exists."""
        assert cli.main(["--env-file", str(env / "none.env"), "revoke"]) == 0
        assert "No credentials to revoke" in capsys.readouterr().out

    def test_revoke_bad_secret_format(self, env, capsys):
        """Should fail cleanly when the client secret has the wrong shape."""
        write_secret(env / "client_secret.json", {"other": {}})
        assert cli.main(["--env-file", str(env / "none.env"), "revoke"]) == 1

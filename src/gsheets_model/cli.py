"""CLI for gsheets-model.

Usage:
    gsheets-model auth                                   # Interactive OAuth login
    gsheets-model status                                 # Show OAuth token status
    gsheets-model revoke                                 # Revoke OAuth token
    gsheets-model append <id> <range> --values JSON      # Append values
    gsheets-model batch-get <id> --ranges A1:B2 ...      # Read ranges

Settings come from GSHEETS_* environment variables (see gsheets_model.config).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import webbrowser

from gsheets_model.config import ModelSettings, load_model_settings
from gsheets_model.google import CredentialsNotFoundError, GoogleAuth, GoogleAuthError


def _get_auth(settings: ModelSettings) -> GoogleAuth:
    return GoogleAuth(
        " ".join(settings.google_scopes),
        settings.token_file,
        settings.token_dir,
        settings.client_secret_file,
    )


def cmd_auth(settings: ModelSettings, no_browser: bool = False) -> int:
    """Interactive Google OAuth login."""
    print("=" * 60)
    print("GSHEETS-MODEL GOOGLE LOGIN")
    print("=" * 60)

    auth = _get_auth(settings)

    try:
        info = auth.get_token_info()
    except (CredentialsNotFoundError, ValueError) as e:
        print(f"\nError: {e}")
        print("Set GSHEETS_CLIENT_SECRET_FILE to your OAuth client secret")
        return 1

    if auth.is_authorized() and info["status"] == "valid":
        print("\nAlready authorized with valid token")
        return cmd_status(settings)

    if info["status"] == "expired":
        print("\nToken expired, attempting refresh...")
        try:
            auth.get_credentials()  # Triggers refresh
            if auth.get_token_info()["status"] == "valid":
                print("Token refreshed successfully!")
                return cmd_status(settings)
        except GoogleAuthError as e:
            print(f"Refresh failed: {e}")
            print("Starting new authorization flow...")

    print(f"\nScopes: {', '.join(auth.required_scopes)}")
    print("\nA browser window will open for Google consent.")
    print("After granting access, copy the redirect URL back here.\n")

    url = auth.get_authorization_url()
    print(f"Authorization URL:\n{url}\n")

    if not no_browser:
        webbrowser.open(url)

    redirect_url = input("Paste redirect URL: ").strip()
    if not redirect_url:
        print("No URL provided; aborting.")
        return 1

    try:
        auth.fetch_token(redirect_url)
    except Exception as e:
        print(f"\nError: {e}")
        return 1

    print(f"\nToken saved to {auth.token_path}")
    return cmd_status(settings)


def cmd_status(settings: ModelSettings) -> int:
    """Show Google OAuth token status."""
    auth = _get_auth(settings)

    try:
        info = auth.get_token_info()
    except (CredentialsNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    if info["status"] == "no_token":
        print("No token found - run 'gsheets-model auth'")
        return 1

    print(f"Token      : {auth.token_path}")
    print(f"Status     : {info['status']}")
    print(f"Scopes     : {', '.join(info.get('scopes', []))}")
    print(f"Expires in : {info.get('expires_in', 'unknown')}")
    return 0


def cmd_revoke(settings: ModelSettings) -> int:
    """Revoke Google OAuth token."""
    auth = _get_auth(settings)

    try:
        auth.revoke_token()
    except CredentialsNotFoundError:
        print("No credentials to revoke")
        return 0
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print("Token revoked and local cache cleared")
    return 0


def _run_model_call(settings: ModelSettings, method: str, **kwargs) -> int:
    """Run one adapter coroutine and print its JSON response."""
    from gsheets_model.sheets import GsheetsModel

    model = GsheetsModel(
        google_scopes=settings.google_scopes,
        token_file=settings.token_file,
        token_dir=settings.token_dir,
        client_secret_file=settings.client_secret_file,
        user_id=settings.user_id,
    )

    try:
        response = asyncio.run(getattr(model, method)(**kwargs))
    except Exception as e:
        print(f"Error: {e}")
        return 1

    print(json.dumps(response, indent=2))
    return 0


def cmd_append(settings: ModelSettings, args: argparse.Namespace) -> int:
    """Append values to a sheet."""
    try:
        values = json.loads(args.values)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON for --values: {e}")
        return 1

    if not isinstance(values, list) or not all(isinstance(row, list) for row in values):
        print("Error: --values must be a JSON list of rows, e.g. '[[\"a\", 1]]'")
        return 1

    resource = {"values": values}
    if args.major_dimension:
        resource["majorDimension"] = args.major_dimension

    return _run_model_call(
        settings,
        "append_value",
        spreadsheet_id=args.spreadsheet_id,
        range_notation=args.range,
        resource=resource,
        include_values_in_response=True if args.include_values else None,
        ret_fields=_parse_fields(args.fields),
    )


def cmd_batch_get(settings: ModelSettings, args: argparse.Namespace) -> int:
    """Read values from one or more ranges."""
    return _run_model_call(
        settings,
        "batch_get_values",
        spreadsheet_id=args.spreadsheet_id,
        major_dimension=args.major_dimension,
        ranges=args.ranges,
        ret_fields=_parse_fields(args.fields),
    )


def _parse_fields(fields: str | None) -> list[str] | None:
    """Parse comma-separated response fields."""
    if not fields:
        return None
    return [f.strip() for f in fields.split(",") if f.strip()]


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="gsheets-model",
        description="Append to and read from Google Sheets with managed OAuth tokens",
    )
    parser.add_argument("--env-file", help="Path to .env file (default: ./.env)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    # auth command
    auth_parser = subparsers.add_parser("auth", help="Interactive OAuth login")
    auth_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )

    # status command
    subparsers.add_parser("status", help="Show token status")

    # revoke command
    subparsers.add_parser("revoke", help="Revoke token")

    # append command
    append_parser = subparsers.add_parser("append", help="Append values to a sheet")
    append_parser.add_argument("spreadsheet_id", help="Spreadsheet ID")
    append_parser.add_argument("range", help="A1 notation range, e.g. Sheet1!A1")
    append_parser.add_argument(
        "--values", required=True, help='JSON list of rows, e.g. \'[["a", 1]]\''
    )
    append_parser.add_argument("--major-dimension", help="ROWS or COLUMNS")
    append_parser.add_argument(
        "--include-values",
        action="store_true",
        help="Include the appended values in the response",
    )
    append_parser.add_argument("--fields", help="Comma-separated response fields")

    # batch-get command
    batch_parser = subparsers.add_parser("batch-get", help="Read values from ranges")
    batch_parser.add_argument("spreadsheet_id", help="Spreadsheet ID")
    batch_parser.add_argument("--ranges", nargs="+", help="A1 notation ranges")
    batch_parser.add_argument("--major-dimension", help="ROWS or COLUMNS")
    batch_parser.add_argument("--fields", help="Comma-separated response fields")

    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    settings = load_model_settings(args.env_file)

    if args.command == "auth":
        return cmd_auth(settings, args.no_browser)
    elif args.command == "status":
        return cmd_status(settings)
    elif args.command == "revoke":
        return cmd_revoke(settings)
    elif args.command == "append":
        return cmd_append(settings, args)
    elif args.command == "batch-get":
        return cmd_batch_get(settings, args)

    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Google Sheets values adapter implementation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httplib2
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from gsheets_model.config import DEFAULT_USER_ID, load_model_settings
from gsheets_model.google import GoogleAuth
from gsheets_model.sheets.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Values are parsed as if typed into the UI: formulas evaluate, dates parse
VALUE_INPUT_OPTION = "USER_ENTERED"

REQUIRED_PARAMS = ("google_scopes", "token_file", "token_dir", "client_secret_file")

# Shorthand accepted for the API's COLUMNS dimension
DIMENSION_ALIASES = {"COLS": "COLUMNS"}


def _dimension(major_dimension: str) -> str:
    return DIMENSION_ALIASES.get(major_dimension, major_dimension)


@dataclass
class ValueRange:
    """Cell values to write, in the shape of the API's ValueRange body."""

    values: list[list[Any]]
    major_dimension: str | None = None

    def to_body(self) -> dict[str, Any]:
        """Render as a request body."""
        body: dict[str, Any] = {"values": self.values}
        if self.major_dimension:
            body["majorDimension"] = _dimension(self.major_dimension)
        return body


class GsheetsModel:
    """Thin adapter over the Sheets ``spreadsheets.values`` API.

    Each call authorizes through ``GoogleAuth``, forwards the request and
    returns the raw API response. Errors from authorization or from the API
    propagate unchanged; nothing is retried.

    Usage:
        model = GsheetsModel(
            google_scopes=["https://www.googleapis.com/auth/spreadsheets"],
            token_file="token.json",
            token_dir="~/.config/gsheets-model",
            client_secret_file="~/.config/gsheets-model/client_secret.json",
        )

        await model.append_value(
            "SPREADSHEET_ID",
            "Sheet1!A1",
            ValueRange([["Alice", 30]]),
            ret_fields=["updates.updatedRange"],
        )

        await model.batch_get_values("SPREADSHEET_ID", ranges=["Sheet1!A1:B2"])
    """

    def __init__(
        self,
        google_scopes: list[str] | None = None,
        token_file: str | None = None,
        token_dir: str | None = None,
        client_secret_file: str | None = None,
        user_id: str | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            google_scopes: Scopes this instance is granted. Required.
            token_file: Name of the token file inside ``token_dir``. Required.
            token_dir: Directory holding the access token. Required.
            client_secret_file: Path to the OAuth client secret, used when no
                token exists yet. Required.
            user_id: User id. Defaults to "me".

        Raises:
            ConfigurationError: If a required parameter is not set.
        """
        self.user_id = DEFAULT_USER_ID if user_id is None else user_id

        params = {
            "google_scopes": google_scopes or None,
            "token_file": token_file,
            "token_dir": token_dir,
            "client_secret_file": client_secret_file,
        }
        for name in REQUIRED_PARAMS:
            if params[name] is None:
                raise ConfigurationError(name)

        self._google_auth = GoogleAuth(
            " ".join(google_scopes),
            token_file,
            token_dir,
            client_secret_file,
        )

        # Bundled discovery document; the transport is supplied per request
        self._sheets = build(
            "sheets",
            "v4",
            http=httplib2.Http(),
            static_discovery=True,
            cache_discovery=False,
        )

    @classmethod
    def from_env(cls, env_file: str | None = None) -> GsheetsModel:
        """Create an adapter from ``GSHEETS_*`` environment settings."""
        settings = load_model_settings(env_file)
        return cls(
            google_scopes=settings.google_scopes,
            token_file=settings.token_file,
            token_dir=settings.token_dir,
            client_secret_file=settings.client_secret_file,
            user_id=settings.user_id,
        )

    async def _authorize(self) -> AuthorizedHttp:
        """Get a fresh authorized transport for one request."""
        credentials = await asyncio.to_thread(self._google_auth.authorize)
        return AuthorizedHttp(credentials, http=httplib2.Http())

    async def append_value(
        self,
        spreadsheet_id: str,
        range_notation: str,
        resource: ValueRange | dict[str, Any],
        include_values_in_response: bool | None = None,
        ret_fields: list[str] | None = None,
    ) -> dict[str, Any]:
        """Append values to a sheet.

        Args:
            spreadsheet_id: Spreadsheet ID.
            range_notation: A1 notation of the range to append after (e.g. "Sheet1!A1").
            resource: Values to insert, with an optional major dimension.
            include_values_in_response: Return the values of the appended cells.
            ret_fields: Response fields to return, e.g. ["updates.updatedRange"].

        Returns:
            The API response, unmodified.
        """
        http = await self._authorize()

        if isinstance(resource, ValueRange):
            body = resource.to_body()
        elif resource.get("majorDimension") in DIMENSION_ALIASES:
            body = {**resource, "majorDimension": _dimension(resource["majorDimension"])}
        else:
            body = resource
        params: dict[str, Any] = {
            "spreadsheetId": spreadsheet_id,
            "range": range_notation,
            "body": body,
            "valueInputOption": VALUE_INPUT_OPTION,
        }

        if include_values_in_response is not None:
            params["includeValuesInResponse"] = include_values_in_response
        if ret_fields:
            params["fields"] = ",".join(ret_fields)

        logger.debug(f"Appending to {spreadsheet_id} range {range_notation}")
        request = self._sheets.spreadsheets().values().append(**params)
        return await asyncio.to_thread(request.execute, http=http)

    async def batch_get_values(
        self,
        spreadsheet_id: str,
        major_dimension: str | None = None,
        ranges: str | list[str] | None = None,
        ret_fields: list[str] | None = None,
    ) -> dict[str, Any]:
        """Get values from one or more ranges of a spreadsheet.

        Args:
            spreadsheet_id: Spreadsheet ID.
            major_dimension: "ROWS" or "COLUMNS" ("COLS" is accepted). Defaults to the API's choice.
            ranges: A1 notation range, or a list of them.
            ret_fields: Response fields to return, e.g. ["valueRanges.values"].

        Returns:
            The API response, unmodified.
        """
        http = await self._authorize()

        params: dict[str, Any] = {"spreadsheetId": spreadsheet_id}

        if major_dimension:
            params["majorDimension"] = _dimension(major_dimension)
        if ranges:
            params["ranges"] = ranges
        if ret_fields:
            params["fields"] = ",".join(ret_fields)

        logger.debug(f"Batch get from {spreadsheet_id} ranges {ranges}")
        request = self._sheets.spreadsheets().values().batchGet(**params)
        return await asyncio.to_thread(request.execute, http=http)

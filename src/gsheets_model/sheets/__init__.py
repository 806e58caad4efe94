"""Google Sheets values adapter with OAuth authorization.

Usage:
    from gsheets_model.sheets import GsheetsModel

    model = GsheetsModel.from_env()

    # Append a row
    await model.append_value("SPREADSHEET_ID", "Sheet1!A1", {"values": [["Bob", 25]]})

    # Read ranges
    response = await model.batch_get_values("SPREADSHEET_ID", ranges="Sheet1!A1:C10")

OAuth Setup:
    1. Download OAuth credentials from Google Cloud Console
    2. Point GSHEETS_CLIENT_SECRET_FILE at them
    3. Authorize: gsheets-model auth
"""

from __future__ import annotations

from gsheets_model.sheets.client import VALUE_INPUT_OPTION, GsheetsModel, ValueRange
from gsheets_model.sheets.exceptions import ConfigurationError

__all__ = ["GsheetsModel", "ValueRange", "ConfigurationError", "VALUE_INPUT_OPTION"]

"""Google Sheets values adapter with OAuth token management."""

from gsheets_model.sheets import ConfigurationError, GsheetsModel, ValueRange

__all__ = ["GsheetsModel", "ValueRange", "ConfigurationError"]

"""Sheets adapter exceptions."""


class ConfigurationError(ValueError):
    """Raised when a required adapter parameter is not set."""

    def __init__(self, param: str):
        self.param = param
        super().__init__(f"Gsheets Model - required parameter not set: {param}")

"""
DateValidator - validates that a text field is a real calendar date.
"""

from datetime import datetime
from typing import Any

from .base_validator import BaseValidator


class DateValidator(BaseValidator):
    """
    Accepts only values that round-trip through the format, so "2025-1-5"
    and "2025-02-30" both fail under the default "%Y-%m-%d".

    Parameters:
    - format: strptime format (default "%Y-%m-%d")
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.date_format = self.parameters.get("format", "%Y-%m-%d")

    def validate(self, value: Any, header: dict[str, Any]) -> None:
        if value is None:
            return

        text = str(value).strip()
        try:
            parsed = datetime.strptime(text, self.date_format)
        except ValueError:
            self.fail(f"Value '{text}' is not a date in format {self.date_format}")
            return

        if parsed.strftime(self.date_format) != text:
            self.fail(f"Value '{text}' is not a date in format {self.date_format}")

    @property
    def rule_type(self) -> str:
        return "date"

"""
UrlValidator - validates that a field holds an absolute http(s) URL.
"""

from typing import Any
from urllib.parse import urlparse

from .base_validator import BaseValidator


class UrlValidator(BaseValidator):
    """
    Parameters:
    - schemes: Allowed URL schemes (default ["http", "https"])
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.schemes = tuple(self.parameters.get("schemes", ("http", "https")))

    def validate(self, value: Any, header: dict[str, Any]) -> None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return

        try:
            parsed = urlparse(str(value).strip())
        except ValueError:
            self.fail(f"Value '{value}' is not a valid URL")
            return

        if parsed.scheme not in self.schemes or not parsed.netloc:
            self.fail(f"Value '{value}' is not a valid URL")

    @property
    def rule_type(self) -> str:
        return "url"

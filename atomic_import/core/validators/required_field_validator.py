"""
RequiredFieldValidator - ensures a header field is present and not empty.
"""

from typing import Any

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Fails if the field is missing, None or a blank string
    (blank strings pass with allow_empty_string=True).
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.allow_empty_string = self.parameters.get("allow_empty_string", False)

    def validate(self, value: Any, header: dict[str, Any]) -> None:
        if self.field_name not in header:
            self.fail("Field is missing")

        if value is None:
            self.fail("Field value is null")

        if not self.allow_empty_string and isinstance(value, str) and value.strip() == "":
            self.fail("Field value is empty string")

    @property
    def rule_type(self) -> str:
        return "required_field"

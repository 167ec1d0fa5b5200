"""
Common interface for header field rules.

A rule's ``message`` parameter, when set, replaces the default failure text.
That text is what the user sees on the failed group.
"""

from abc import ABC, abstractmethod
from typing import Any, NoReturn


class ValidationError(Exception):
    """One failed rule on one header field."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        super().__init__(f"{field_name} ({rule_name}): {message}")
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message


class BaseValidator(ABC):
    """
    A rule bound to one header field.

    Subclasses read their settings from ``parameters`` in __init__ and raise
    through ``fail()`` from validate().
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        self.field_name = field_name
        self.parameters = dict(parameters or {})

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Key of this rule in the validator registry."""

    @abstractmethod
    def validate(self, value: Any, header: dict[str, Any]) -> None:
        """Raise ValidationError when ``value`` (taken from ``header``) breaks the rule."""

    def fail(self, default_message: str) -> NoReturn:
        raise ValidationError(self.rule_type, self.field_name, self.parameters.get("message") or default_message)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.field_name} {self.parameters}>"

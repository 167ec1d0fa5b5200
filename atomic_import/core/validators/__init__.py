"""
Validation rule implementations.

Provides validators for required fields, regex patterns, calendar dates,
numeric ranges and URLs, plus the GroupValidator that runs them.
"""

from .base_validator import BaseValidator, ValidationError
from .date_validator import DateValidator
from .group_validator import GroupValidator
from .range_validator import RangeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator
from .url_validator import UrlValidator

__all__ = [
    "BaseValidator",
    "DateValidator",
    "GroupValidator",
    "RangeValidator",
    "RegexValidator",
    "RequiredFieldValidator",
    "UrlValidator",
    "ValidationError",
]

"""
Pattern rule for header fields such as order ids and SKU codes.
"""

import re
from typing import Any

from .base_validator import BaseValidator


def _compile(pattern: Any, flags: list[str] | int) -> re.Pattern:
    if isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str) or not pattern:
        raise ValueError("regex rule needs a non-empty 'pattern' string")

    # YAML rules name their flags, e.g. flags: [IGNORECASE]
    if isinstance(flags, list):
        try:
            flags = sum((re.RegexFlag[name.upper()] for name in flags), re.RegexFlag(0))
        except KeyError as e:
            raise ValueError(f"Unknown regex flag: {e.args[0]}") from e
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ValueError(f"Invalid regex pattern {pattern!r}: {e}") from e


class RegexValidator(BaseValidator):
    """
    Checks a field against a pattern.

    Parameters:
    - pattern: str or compiled pattern
    - flags: int or list of flag names
    - full_match: require the whole value to match (default: search semantics,
      so anchors in the pattern decide)
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.pattern = _compile(self.parameters.get("pattern"), self.parameters.get("flags", 0))
        self.full_match = bool(self.parameters.get("full_match", False))

    def validate(self, value: Any, header: dict[str, Any]) -> None:
        if value is None or value == "":
            return

        text = str(value)
        found = self.pattern.fullmatch(text) if self.full_match else self.pattern.search(text)
        if found is None:
            self.fail(f"'{text}' does not match {self.pattern.pattern}")

    @property
    def rule_type(self) -> str:
        return "regex"

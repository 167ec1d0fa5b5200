"""
Numeric bounds for fields such as cost_price and stock_quantity.
"""

import math
import operator
from numbers import Real
from typing import Any

from .base_validator import BaseValidator

# parameter -> (check that must hold, failure text)
_BOUNDS = {
    "min": (operator.ge, "is less than minimum"),
    "min_exclusive": (operator.gt, "must be greater than"),
    "max": (operator.le, "exceeds maximum"),
    "max_exclusive": (operator.lt, "must be less than"),
}


class RangeValidator(BaseValidator):
    """
    Checks that a number is finite and inside the configured bounds.

    Parameters: any of min, max (inclusive), min_exclusive, max_exclusive.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.bounds = {name: self.parameters[name] for name in _BOUNDS if self.parameters.get(name) is not None}
        if not self.bounds:
            raise ValueError(f"range rule on {field_name} needs one of: {', '.join(_BOUNDS)}")

    def validate(self, value: Any, header: dict[str, Any]) -> None:
        if value is None:
            return
        if isinstance(value, bool) or not isinstance(value, Real):
            self.fail(f"{value!r} is not numeric ({type(value).__name__})")
        if not math.isfinite(value):
            self.fail(f"{value} is not a finite number")

        for name, bound in self.bounds.items():
            holds, text = _BOUNDS[name]
            if not holds(value, bound):
                self.fail(f"{value} {text} {bound}")

    @property
    def rule_type(self) -> str:
        return "range"

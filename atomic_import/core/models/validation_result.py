"""
ValidationResult model representing the outcome of validating a group (ephemeral).
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValidationResult(BaseModel):
    """
    Outcome of validating one group before any write.

    Attributes:
        group_key: Which group was validated
        passed: Overall validation status
        passed_rules: Rules that succeeded
        failed_rules: Rules that failed
        errors: Human-readable failure messages, in check order
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "group_key": "store-1_112-0000001",
                "passed": False,
                "passed_rules": ["amazon_order_id_required"],
                "failed_rules": ["order_date_format"],
                "errors": ["Invalid order_date format (expected: YYYY-MM-DD)"],
            }
        }
    )

    group_key: str
    passed: bool
    passed_rules: list[str] = Field(default_factory=list)
    failed_rules: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @field_validator("errors")
    @classmethod
    def check_passed_consistency(cls, v, info):
        """passed=True implies no errors."""
        if info.data.get("passed") and len(v) > 0:
            raise ValueError("passed=True but errors is not empty")
        return v

    @property
    def message(self) -> str:
        return "; ".join(self.errors)

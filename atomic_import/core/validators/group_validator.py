"""
GroupValidator: all-or-nothing pre-write check of one group.

Runs header rules and line checks and collects every failure. A group
with any failure is rejected before a single write is made.
"""

from typing import Any

from atomic_import.core.models import Group, ValidationResult
from atomic_import.core.rules.rule_config import EntityRuleSet, default_rule_set
from atomic_import.observability.logger import get_logger

from .base_validator import BaseValidator, ValidationError
from .date_validator import DateValidator
from .range_validator import RangeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator
from .url_validator import UrlValidator

logger = get_logger(__name__)

# Header rules run in this order; line checks run between format and range.
_PHASES = {
    "required_field": 0,
    "regex": 1,
    "date": 1,
    "url": 1,
    "range": 2,
}
_LINE_PHASE = 2


class GroupValidator:
    """
    Validates groups of one entity kind against an EntityRuleSet.
    """

    VALIDATOR_REGISTRY: dict[str, type[BaseValidator]] = {
        "required_field": RequiredFieldValidator,
        "regex": RegexValidator,
        "date": DateValidator,
        "range": RangeValidator,
        "url": UrlValidator,
    }

    def __init__(self, rule_set: EntityRuleSet):
        self.rule_set = rule_set
        self.validators: list[tuple[int, str, BaseValidator]] = []
        self._build_validators()

    @classmethod
    def for_kind(cls, entity_kind: str) -> "GroupValidator":
        """Validator with the built-in rules for an entity kind."""
        return cls(default_rule_set(entity_kind))

    def _build_validators(self) -> None:
        for rule in self.rule_set.rules:
            if not rule.get("enabled", True):
                continue

            rule_name = rule["rule_name"]
            rule_type = rule["rule_type"]

            validator_class = self.VALIDATOR_REGISTRY.get(rule_type)
            if not validator_class:
                raise ValueError(f"Unknown rule type: {rule_type}")

            try:
                validator = validator_class(rule["field_name"], rule.get("parameters", {}))
            except ValueError as e:
                raise ValueError(f"Failed to create validator for rule '{rule_name}': {e}") from e

            self.validators.append((_PHASES[rule_type], rule_name, validator))

        # Stable sort keeps config order within a phase
        self.validators.sort(key=lambda item: item[0])

    def validate(self, group: Group) -> ValidationResult:
        """
        Validate one group.

        Args:
            group: Group to check

        Returns:
            ValidationResult listing every failure in check order
        """
        errors: list[str] = []
        passed_rules: list[str] = []
        failed_rules: list[str] = []

        lines_checked = False
        for phase, rule_name, validator in self.validators:
            if phase >= _LINE_PHASE and not lines_checked:
                self._check_lines(group, errors, failed_rules)
                lines_checked = True
            self._run_rule(group.header, rule_name, validator, errors, passed_rules, failed_rules)

        if not lines_checked:
            self._check_lines(group, errors, failed_rules)

        if errors:
            logger.debug(
                f"Group {group.display_key} failed validation: {'; '.join(errors)}",
                extra={"group_key": group.business_key, "failed_rules": failed_rules},
            )

        return ValidationResult(
            group_key=group.business_key,
            passed=not errors,
            passed_rules=passed_rules,
            failed_rules=failed_rules,
            errors=errors,
        )

    def _run_rule(
        self,
        header: dict[str, Any],
        rule_name: str,
        validator: BaseValidator,
        errors: list[str],
        passed_rules: list[str],
        failed_rules: list[str],
    ) -> None:
        try:
            validator.validate(header.get(validator.field_name), header)
            passed_rules.append(rule_name)
        except ValidationError as e:
            failed_rules.append(rule_name)
            errors.append(e.message)

    def _check_lines(self, group: Group, errors: list[str], failed_rules: list[str]) -> None:
        if not self.rule_set.requires_lines:
            return

        if not group.lines:
            failed_rules.append("lines_present")
            errors.append(self.rule_set.empty_lines_message)
            return

        label = self.rule_set.line_reference_label
        for number, line in enumerate(group.lines, start=1):
            if not line.resolved:
                failed_rules.append(f"line_{number}_reference")
                errors.append(f"Line {number}: {label} not found")
            if line.quantity is None or line.quantity <= 0:
                failed_rules.append(f"line_{number}_quantity")
                errors.append(f"Line {number}: Invalid quantity")

"""
Rule configuration management.

Loads per-entity validation rules from YAML files and provides the
built-in rule sets used when no file is configured.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from atomic_import.core.errors import ConfigError


class EntityRuleSet(BaseModel):
    """
    Validation rules for one entity kind.

    Attributes:
        entity_kind: "order" or "sku"
        rules: Header rule dicts (rule_name, rule_type, field_name, parameters, enabled)
        requires_lines: Whether a group must carry at least one line
        empty_lines_message: Failure text for a group without lines
        line_reference_label: Name of the line reference in line errors
    """

    entity_kind: str
    rules: list[dict[str, Any]] = Field(default_factory=list)
    requires_lines: bool = False
    empty_lines_message: str = "Group has no valid line items"
    line_reference_label: str = "SKU"


class RuleConfigLoader:
    """
    Loads validation rules from a YAML configuration file.

    Expected YAML format:
    ```yaml
    order:
      requires_lines: true
      empty_lines_message: "Order has no valid line items"
      rules:
        amazon_order_id:
          - type: required_field
            message: "Missing amazon_order_id"
        order_date:
          - type: date
            params:
              format: "%Y-%m-%d"
            message: "Invalid order_date format (expected: YYYY-MM-DD)"
    sku:
      rules:
        cost_price:
          - type: range
            params:
              min_exclusive: 0
    ```
    """

    def __init__(self, config_path: str | Path):
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_all(self) -> dict[str, EntityRuleSet]:
        """
        Load every entity section of the file.

        Raises:
            ConfigError: If the YAML is invalid or a rule is malformed
        """
        try:
            with open(self.config_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(config, dict) or not config:
            raise ConfigError("Rule configuration must map entity kinds to rule sections")

        return {kind: self._parse_section(kind, section) for kind, section in config.items()}

    def load(self, entity_kind: str) -> EntityRuleSet:
        """Load the section for one entity kind."""
        sections = self.load_all()
        if entity_kind not in sections:
            raise ConfigError(f"No rules configured for entity kind '{entity_kind}'")
        return sections[entity_kind]

    def _parse_section(self, entity_kind: str, section: dict[str, Any]) -> EntityRuleSet:
        if not isinstance(section, dict):
            raise ConfigError(f"Section '{entity_kind}' must be a mapping")

        rules = []
        for field_name, field_rule_list in (section.get("rules") or {}).items():
            if not isinstance(field_rule_list, list):
                raise ConfigError(f"Rules for field '{field_name}' must be a list")
            for idx, rule_def in enumerate(field_rule_list):
                rules.append(self._parse_rule(field_name, rule_def, idx))

        defaults = EntityRuleSet(entity_kind=entity_kind)
        return EntityRuleSet(
            entity_kind=entity_kind,
            rules=rules,
            requires_lines=section.get("requires_lines", defaults.requires_lines),
            empty_lines_message=section.get("empty_lines_message", defaults.empty_lines_message),
            line_reference_label=section.get("line_reference_label", defaults.line_reference_label),
        )

    def _parse_rule(self, field_name: str, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
        if not isinstance(rule_def, dict) or "type" not in rule_def:
            raise ConfigError(f"Rule for field '{field_name}' is missing 'type'")

        rule_type = rule_def["type"]
        rule_name = rule_def.get("name", f"{field_name}_{rule_type}_{idx}")

        parameters = dict(rule_def.get("params", rule_def.get("parameters", {})) or {})
        if rule_def.get("message"):
            parameters["message"] = rule_def["message"]

        return {
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "enabled": rule_def.get("enabled", True),
        }


class RuleConfigBuilder:
    """
    Programmatically build rule configurations (for defaults and tests).
    """

    def __init__(self):
        self.rules: list[dict[str, Any]] = []

    def _add(self, rule_name: str, rule_type: str, field_name: str,
             parameters: dict[str, Any], message: str | None) -> "RuleConfigBuilder":
        if message:
            parameters["message"] = message
        self.rules.append({
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "enabled": True,
        })
        return self

    def add_required_field(self, field_name: str, message: str | None = None,
                           allow_empty_string: bool = False) -> "RuleConfigBuilder":
        """Add a required field rule."""
        return self._add(f"{field_name}_required", "required_field", field_name,
                         {"allow_empty_string": allow_empty_string}, message)

    def add_regex(self, field_name: str, pattern: str, message: str | None = None) -> "RuleConfigBuilder":
        """Add a regex validation rule."""
        return self._add(f"{field_name}_regex", "regex", field_name, {"pattern": pattern}, message)

    def add_date(self, field_name: str, date_format: str = "%Y-%m-%d",
                 message: str | None = None) -> "RuleConfigBuilder":
        """Add a calendar date rule."""
        return self._add(f"{field_name}_format", "date", field_name, {"format": date_format}, message)

    def add_range(
        self,
        field_name: str,
        min_value: float | None = None,
        max_value: float | None = None,
        min_exclusive: float | None = None,
        message: str | None = None,
    ) -> "RuleConfigBuilder":
        """Add a range validation rule."""
        params: dict[str, Any] = {}
        if min_value is not None:
            params["min"] = min_value
        if max_value is not None:
            params["max"] = max_value
        if min_exclusive is not None:
            params["min_exclusive"] = min_exclusive
        return self._add(f"{field_name}_range", "range", field_name, params, message)

    def add_url(self, field_name: str, message: str | None = None) -> "RuleConfigBuilder":
        """Add a URL rule."""
        return self._add(f"{field_name}_url", "url", field_name, {}, message)

    def build(self) -> list[dict[str, Any]]:
        return self.rules


def default_rule_set(entity_kind: str) -> EntityRuleSet:
    """Built-in rules matching config/validation_rules.yaml."""
    if entity_kind == "order":
        rules = (
            RuleConfigBuilder()
            .add_required_field("amazon_order_id", "Missing amazon_order_id")
            .add_required_field("order_date", "Missing order_date")
            .add_date("order_date", message="Invalid order_date format (expected: YYYY-MM-DD)")
            .add_required_field("store_id", "Missing store assignment")
            .build()
        )
        return EntityRuleSet(
            entity_kind="order",
            rules=rules,
            requires_lines=True,
            empty_lines_message="Order has no valid line items",
            line_reference_label="SKU",
        )

    if entity_kind == "sku":
        cost_message = "Invalid cost_price (must be > 0)"
        rules = (
            RuleConfigBuilder()
            .add_required_field("sku_code", "Missing sku_code")
            .add_required_field("product_name", "Missing product_name")
            .add_required_field("cost_price", cost_message)
            .add_url("image_url", "Invalid image_url")
            .add_range("cost_price", min_exclusive=0, message=cost_message)
            .add_range("stock_quantity", min_value=0, message="Invalid stock quantity (must be >= 0)")
            .build()
        )
        return EntityRuleSet(entity_kind="sku", rules=rules)

    raise ConfigError(f"Unknown entity kind: {entity_kind}")

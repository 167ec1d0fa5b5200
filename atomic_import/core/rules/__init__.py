"""
Rule configuration: YAML loading, programmatic building and built-in defaults.
"""

from .rule_config import EntityRuleSet, RuleConfigBuilder, RuleConfigLoader, default_rule_set

__all__ = ["EntityRuleSet", "RuleConfigBuilder", "RuleConfigLoader", "default_rule_set"]

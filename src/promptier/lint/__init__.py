"""
promptier.lint：可插拔的规则引擎 + 语义检查适配器。
"""

from .ignores import IGNORE_ALL, parse_ignored_rules
from .linter import Linter, create_linter, define_rule, lint
from .rules.heuristic import HEURISTIC_RULES
from .semantic import SemanticRule, create_semantic_rule, parse_semantic_response, reset_linter_prompt_cache
from .types import Finding, LintContext, LintResult, LintRule, LintStats, ModelFacts, RuleConfig, parse_rule_config

__all__ = [
    "Finding",
    "HEURISTIC_RULES",
    "IGNORE_ALL",
    "LintContext",
    "LintResult",
    "LintRule",
    "LintStats",
    "Linter",
    "ModelFacts",
    "RuleConfig",
    "SemanticRule",
    "create_linter",
    "create_semantic_rule",
    "define_rule",
    "lint",
    "parse_ignored_rules",
    "parse_rule_config",
    "parse_semantic_response",
    "reset_linter_prompt_cache",
]

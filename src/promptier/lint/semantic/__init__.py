from .parser import CATEGORY_MAP, parse_semantic_response
from .rule import SEMANTIC_RULE_ID, SemanticOutcome, SemanticRule, create_semantic_rule
from .system_prompt import linter_prompt, render_linter_prompt, reset_linter_prompt_cache

__all__ = [
    "CATEGORY_MAP",
    "SEMANTIC_RULE_ID",
    "SemanticOutcome",
    "SemanticRule",
    "create_semantic_rule",
    "linter_prompt",
    "parse_semantic_response",
    "render_linter_prompt",
    "reset_linter_prompt_cache",
]

"""
promptier：带溯源的 prompt 渲染流水线 + 可插拔的 lint 规则引擎。
"""

from .config import PromptierConfig, load_config
from .core import (
    CompiledPrompt,
    Finding,
    Fragment,
    Prompt,
    PromptBuilder,
    PromptierError,
    ProvenanceTable,
    RenderError,
    Section,
    SectionType,
    prompt,
)
from .lint import LintResult, LintRule, Linter, create_linter, define_rule, lint
from .llm import LLMClient, OllamaClient

__version__ = "0.1.0"

__all__ = [
    "CompiledPrompt",
    "Finding",
    "Fragment",
    "LLMClient",
    "LintResult",
    "LintRule",
    "Linter",
    "OllamaClient",
    "Prompt",
    "PromptBuilder",
    "PromptierConfig",
    "PromptierError",
    "ProvenanceTable",
    "RenderError",
    "Section",
    "SectionType",
    "create_linter",
    "define_rule",
    "lint",
    "load_config",
    "prompt",
]

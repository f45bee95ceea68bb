"""
promptier.core：片段组合、渲染与溯源。
"""

from .errors import ConfigError, FragmentLoadError, PromptierError, ProviderError, RenderError
from .fragment import Fragment, parse_front_matter
from .models import ModelConfig, ModelRegistry, get_model_config, model_registry, register_model
from .prompt import DEFAULT_MODEL, Prompt, PromptBuilder, prompt
from .section import Section, ToolDefinition
from .source_map import ProvenanceMapping, ProvenanceTable
from .tokens import TokenCounter, count_tokens, estimate_tokens
from .types import (
    CompiledPrompt,
    Finding,
    FragmentDefinition,
    FragmentMetadata,
    FragmentReference,
    Origin,
    Position,
    PromptMetadata,
    PromptOptions,
    RenderedSection,
    SectionConfig,
    SectionType,
)

__all__ = [
    "CompiledPrompt",
    "ConfigError",
    "DEFAULT_MODEL",
    "Finding",
    "Fragment",
    "FragmentDefinition",
    "FragmentLoadError",
    "FragmentMetadata",
    "FragmentReference",
    "ModelConfig",
    "ModelRegistry",
    "Origin",
    "Position",
    "Prompt",
    "PromptBuilder",
    "PromptMetadata",
    "PromptOptions",
    "PromptierError",
    "ProvenanceMapping",
    "ProvenanceTable",
    "ProviderError",
    "RenderError",
    "RenderedSection",
    "Section",
    "SectionConfig",
    "SectionType",
    "TokenCounter",
    "ToolDefinition",
    "count_tokens",
    "estimate_tokens",
    "get_model_config",
    "model_registry",
    "parse_front_matter",
    "prompt",
    "register_model",
]

"""
模型能力表（Model Capability Lookup）

把模型 id 映射为 {context_window, preferred_format, supports_caching, tokenizer}：
精确匹配内置表 -> 自定义注册 -> 按名称模式推断模型家族 -> 安全默认值。
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, replace
from typing import Callable, Literal

from .types import FormatName

logger = logging.getLogger(__name__)

TokenizerName = Literal["cl100k_base", "o200k_base", "custom"]
ModelFamily = Literal["claude", "gpt", "gemini", "unknown"]


@dataclass(frozen=True)
class ModelConfig:
    """
    模型配置（Model Configuration）

    custom_tokenizer 仅在 tokenizer="custom" 时使用。
    """

    id: str
    context_window: int
    preferred_format: FormatName
    supports_caching: bool
    tokenizer: TokenizerName = "cl100k_base"
    supports_system_prompt: bool = True
    cache_min_prefix_tokens: int | None = None
    cache_cost_multiplier: float | None = None
    custom_tokenizer: Callable[[str], int] | None = None


_FAMILY_PATTERNS: list[tuple[ModelFamily, re.Pattern[str]]] = [
    ("claude", re.compile(r"claude|anthropic", re.IGNORECASE)),
    ("gpt", re.compile(r"gpt|openai|o1-|o3-", re.IGNORECASE)),
    ("gemini", re.compile(r"gemini|google", re.IGNORECASE)),
]

_FAMILY_DEFAULTS: dict[ModelFamily, ModelConfig] = {
    "claude": ModelConfig(
        id="",
        context_window=200_000,
        preferred_format="xml",
        supports_caching=True,
        cache_min_prefix_tokens=1024,
        cache_cost_multiplier=0.1,
    ),
    "gpt": ModelConfig(id="", context_window=128_000, preferred_format="markdown", supports_caching=False, tokenizer="o200k_base"),
    "gemini": ModelConfig(id="", context_window=1_000_000, preferred_format="markdown", supports_caching=False),
    "unknown": ModelConfig(id="", context_window=8192, preferred_format="plain", supports_caching=False),
}


def detect_model_family(model_id: str) -> ModelFamily:
    for family, pattern in _FAMILY_PATTERNS:
        if pattern.search(model_id):
            return family
    return "unknown"


def _family_config(model_id: str, family: ModelFamily, **overrides) -> ModelConfig:
    return replace(_FAMILY_DEFAULTS[family], id=model_id, **overrides)


BUILTIN_MODELS: dict[str, ModelConfig] = {
    "claude-opus-4-20250514": _family_config("claude-opus-4-20250514", "claude"),
    "claude-sonnet-4-20250514": _family_config("claude-sonnet-4-20250514", "claude"),
    "claude-haiku-3-20250514": _family_config("claude-haiku-3-20250514", "claude"),
    "gpt-4o": _family_config("gpt-4o", "gpt"),
    "gpt-4o-mini": _family_config("gpt-4o-mini", "gpt"),
    "gpt-4-turbo": _family_config("gpt-4-turbo", "gpt", tokenizer="cl100k_base"),
    "gemini-1.5-pro": _family_config("gemini-1.5-pro", "gemini", context_window=2_000_000),
    "gemini-1.5-flash": _family_config("gemini-1.5-flash", "gemini"),
}


class ModelRegistry:
    """
    进程级模型注册表（Process-scoped Model Registry）

    生命周期：模块导入时创建一次（`model_registry`），之后可读可写。
    写操作加锁；多线程并发注册/查询时无需额外同步。
    """

    def __init__(self, builtins: dict[str, ModelConfig] | None = None) -> None:
        self._builtins = dict(BUILTIN_MODELS if builtins is None else builtins)
        self._custom: dict[str, ModelConfig] = {}
        self._lock = threading.Lock()

    def register(self, model_id: str, config: ModelConfig) -> ModelConfig:
        """注册自定义模型（id 以参数为准）"""
        registered = replace(config, id=model_id)
        with self._lock:
            if model_id in self._custom:
                logger.debug(f"模型 '{model_id}' 已注册，将被覆盖")
            self._custom[model_id] = registered
        return registered

    def unregister(self, model_id: str) -> None:
        with self._lock:
            self._custom.pop(model_id, None)

    def clear_custom(self) -> None:
        with self._lock:
            self._custom.clear()

    def get(self, model_id: str) -> ModelConfig:
        """
        获取模型配置。

        解析顺序：内置精确匹配 -> 自定义注册 -> 家族推断（未知家族使用安全默认值）
        """
        builtin = self._builtins.get(model_id)
        if builtin is not None:
            return builtin
        with self._lock:
            custom = self._custom.get(model_id)
        if custom is not None:
            return custom
        return _family_config(model_id, detect_model_family(model_id))


model_registry = ModelRegistry()


def get_model_config(model_id: str, registry: ModelRegistry | None = None) -> ModelConfig:
    return (registry or model_registry).get(model_id)


def register_model(model_id: str, config: ModelConfig) -> ModelConfig:
    return model_registry.register(model_id, config)


def supports_caching(model_id: str) -> bool:
    return get_model_config(model_id).supports_caching


def preferred_format(model_id: str) -> FormatName:
    return get_model_config(model_id).preferred_format


def context_window(model_id: str) -> int:
    return get_model_config(model_id).context_window


def is_known_family(model_id: str) -> bool:
    return detect_model_family(model_id) != "unknown"
